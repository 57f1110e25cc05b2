"""
Console entry point for the Medifly chat assistant.
Type a message, or /N to click the N-th action of the last reply.
"""

import asyncio
from medifly import config
from medifly.builder import build_controller, create_http_client
from medifly.models.domain import ConversationTurn
from medifly.utils.inline_markdown import render_message, to_ansi
from medifly.utils.logger import configure_logging, get_logger, set_session_id

configure_logging(level=config.LOG_LEVEL, use_structured=config.STRUCTURED_LOGS)

logger = get_logger(__name__)


class ConsoleNavigator:
    """Prints route changes instead of switching pages."""

    def navigate(self, path: str) -> None:
        print(f"\n-> Navigating to {path}")


def print_turn(turn: ConversationTurn) -> None:
    prefix = "[error] " if turn.is_error else ""
    print(f"\nAssistant: {prefix}")
    for line in render_message(turn.text):
        print(to_ansi(line))
    for index, action in enumerate(turn.actions or (), start=1):
        print(f"  /{index} {action.label}")


def print_results(controller) -> None:
    service = controller.search_service
    if service.error:
        print(f"\n[search error] {service.error}")
        return
    if not service.results:
        return
    print(f"\n--- {service.search_type.title()} results for \"{service.query}\" ---")
    for result in service.results:
        print(f"  {result.name} | rating {result.rating:.1f} | match {result.similarity:.0f}%")


async def run_console_chat():
    """Async main loop for console chat interaction."""
    config.check_env_vars()

    async with create_http_client() as http_client:
        controller = build_controller(http_client, ConsoleNavigator())
        set_session_id(controller.session_id)
        logger.info("conversation_started", session_id=controller.session_id)

        print("\n" + "=" * 60)
        print("Medifly Assistant - Type 'exit' or 'quit' to stop")
        print("=" * 60 + "\n")

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
                if user_input.lower() in ["exit", "quit"]:
                    break

                last = controller.conversation.last
                if user_input.startswith("/") and user_input[1:].isdigit():
                    index = int(user_input[1:]) - 1
                    actions = (last.actions or ()) if last else ()
                    if not 0 <= index < len(actions):
                        print("No such action.")
                        continue
                    turn = await controller.handle_action(actions[index])
                else:
                    turn = await controller.submit_text(user_input)

                if turn is not None:
                    print_turn(turn)
                await controller.wait_for_background()
                print_results(controller)

            except KeyboardInterrupt:
                logger.info("conversation_interrupted_by_user")
                break

        controller.close()
        logger.info("conversation_ended", session_id=controller.session_id)
        print("\nGoodbye! Take care.")


if __name__ == "__main__":
    asyncio.run(run_console_chat())
