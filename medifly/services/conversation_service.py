"""
Conversation controller: owns one chat session's turns, result cache and busy flag.
Entry point for free-text submissions and action clicks.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from medifly.models.domain import (
    ActionItem,
    ConversationTurn,
    DoctorResult,
    HospitalResult,
    result_route,
)
from medifly.models.schemas import NormalizedResponse
from medifly.services.action_engine import ActionEngine, Navigator, ScriptedResponder
from medifly.services.assistant_service import AssistantService
from medifly.services.query_analyzer import classify_search_type, mentions_provider
from medifly.services.response_normalizer import normalize_response
from medifly.services.search_service import SearchService
from medifly.services.webhook_client import WebhookClient
from medifly.utils.responses import load_responses
from medifly.utils.logger import get_logger
from medifly.utils.metrics import SessionMetrics, record_error

logger = get_logger(__name__)
RESPONSES = load_responses()

RETRY_MESSAGE = "retry_message"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Conversation:
    """Append-only, insertion-ordered sequence of turns."""

    def __init__(self):
        self._turns: list[ConversationTurn] = []

    def append(self, turn: ConversationTurn) -> ConversationTurn:
        self._turns.append(turn)
        return turn

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> ConversationTurn | None:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(tuple(self._turns))


class ConversationController:
    """
    One chat session.

    Turns are appended in the order their replies complete, which can differ
    from the order actions were clicked. In-flight calls are never cancelled.
    While a reply is pending the controller is busy and rejects new input.
    """

    def __init__(
        self,
        search_service: SearchService,
        webhook_client: WebhookClient,
        navigator: Navigator,
        scripted: ScriptedResponder | None = None,
        assistant: AssistantService | None = None,
        clock: Callable[[], str] = utc_timestamp,
        session_id: str | None = None,
    ):
        """
        Args:
            search_service: Search dispatcher with this session's result cache
            webhook_client: Conversational webhook (chat and tool calls)
            navigator: Client-side router
            scripted: Canned branches (defaults to the YAML-backed responder)
            assistant: When set, free text is answered by the assistant
                instead of the webhook
            clock: Timestamp factory for new turns
            session_id: Chat session id (random by default)
        """
        self.search_service = search_service
        self.webhook_client = webhook_client
        self.navigator = navigator
        self.assistant = assistant
        self.clock = clock
        self.session_id = session_id or str(uuid.uuid4())

        self.engine = ActionEngine(search_service, webhook_client, navigator, scripted)
        self.conversation = Conversation()
        self.metrics = SessionMetrics()
        self.is_responding = False
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return self.conversation.turns

    async def handle_action(self, action: ActionItem) -> ConversationTurn | None:
        """
        Resolves a clicked action into at most one new AI turn.

        Returns:
            The appended turn, or None for navigation or when busy

        Never raises: failures become an error turn offering "Try again".
        """
        if action.kind == "action" and action.target == RETRY_MESSAGE:
            original = (action.parameters or {}).get("originalMessage") or action.query
            return await self.submit_text(original or "")

        if self.is_responding:
            logger.warning("action_rejected_busy", label=action.label)
            return None

        self.is_responding = True
        self.metrics.start_dispatch(action.kind)
        try:
            reply = await self.engine.resolve(action)
            if reply is None:
                return None
            return self._append_ai(reply)
        except Exception as e:
            logger.error(
                "action_failed",
                exc_info=True,
                kind=action.kind,
                label=action.label,
                error=str(e),
            )
            record_error(type(e).__name__)
            return self._append_error(
                RESPONSES["errors"]["action_failed"].format(label=action.label),
                retry=action.model_copy(update={"label": RESPONSES["errors"]["retry_label"]}),
            )
        finally:
            self.metrics.end_dispatch(action.kind)
            self.is_responding = False

    async def submit_text(self, text: str) -> ConversationTurn | None:
        """
        Sends a free-text message and appends the user turn and the reply.

        Messages mentioning hospitals or doctors also refresh the results
        panel with a best-effort background search.

        Returns:
            The appended AI turn, or None for blank input or when busy
        """
        text = text.strip()
        if not text:
            return None
        if self.is_responding:
            logger.warning("message_rejected_busy")
            return None

        self.conversation.append(
            ConversationTurn(role="user", text=text, timestamp=self.clock())
        )

        self.is_responding = True
        self.metrics.start_dispatch("text")
        try:
            if self.assistant is not None:
                payload = await self.assistant.respond(text)
            else:
                payload = await self.webhook_client.send_message(text)
            turn = self._append_ai(normalize_response(payload))
        except Exception as e:
            logger.error("message_failed", exc_info=True, error=str(e))
            record_error(type(e).__name__)
            return self._append_error(
                RESPONSES["errors"]["message_failed"],
                retry=ActionItem(
                    kind="action",
                    label=RESPONSES["errors"]["retry_label"],
                    query=text,
                    target=RETRY_MESSAGE,
                    parameters={"originalMessage": text},
                ),
            )
        finally:
            self.metrics.end_dispatch("text")
            self.is_responding = False

        if mentions_provider(text):
            self._start_background_search(text)
        return turn

    def open_result(self, result: HospitalResult | DoctorResult) -> None:
        """Navigates to a result card's detail page."""
        self.navigator.navigate(result_route(result))

    async def wait_for_background(self) -> None:
        """Waits for pending background searches (they never raise)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks)

    def close(self) -> dict[str, Any]:
        """Ends the session and returns its metrics."""
        return self.metrics.finalize()

    def _start_background_search(self, text: str) -> None:
        task = asyncio.create_task(self._background_search(text))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _background_search(self, text: str) -> None:
        search_type = classify_search_type(text)
        try:
            await self.search_service.search(text, search_type)
        except Exception as e:
            logger.debug("background_search_failed", search_type=search_type, error=str(e))

    def _append_ai(self, reply: NormalizedResponse) -> ConversationTurn:
        return self.conversation.append(
            ConversationTurn(
                role="ai",
                text=reply.message,
                timestamp=self.clock(),
                actions=reply.actions,
            )
        )

    def _append_error(self, text: str, retry: ActionItem) -> ConversationTurn:
        return self.conversation.append(
            ConversationTurn(
                role="ai",
                text=text,
                timestamp=self.clock(),
                actions=(retry,),
                is_error=True,
            )
        )
