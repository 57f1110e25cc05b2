"""
Client for the external conversational webhook.
Returns decoded JSON as-is; shaping it is the response normalizer's job.
"""

from typing import Any
import httpx

from medifly.utils.logger import get_logger

logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class WebhookRequestError(Exception):
    """Raised when a chat message cannot be delivered or is rejected."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolCallError(Exception):
    """Raised when the webhook rejects a tool call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _decode_body(response: httpx.Response) -> Any:
    # Webhooks sometimes answer with bare text; the normalizer handles strings
    try:
        return response.json()
    except ValueError:
        return response.text


class WebhookClient:
    """
    Posts chat messages and tool calls to the webhook URL.
    """

    def __init__(self, webhook_url: str, http_client: httpx.AsyncClient):
        """
        Args:
            webhook_url: Fixed webhook URL
            http_client: Shared async HTTP client (owned by the caller)
        """
        self.webhook_url = webhook_url
        self.http_client = http_client

    async def send_message(self, message: str) -> Any:
        """
        Sends a free-text chat message.

        Returns:
            Decoded response body

        Raises:
            WebhookRequestError: On network failure, non-2xx status, or
                an explicit `{"success": false}` envelope
        """
        logger.info("webhook_message_started", length=len(message))
        try:
            response = await self.http_client.post(
                self.webhook_url, json={"message": message.strip()}, headers=JSON_HEADERS
            )
        except httpx.HTTPError as e:
            logger.error("webhook_message_failed", exc_info=True, error=str(e))
            raise WebhookRequestError(f"Webhook request failed: {e}") from e

        if not response.is_success:
            logger.error("webhook_message_rejected", status_code=response.status_code)
            raise WebhookRequestError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        payload = _decode_body(response)
        if isinstance(payload, dict) and payload.get("success") is False:
            error = payload.get("error") or "Unknown API error"
            logger.error("webhook_message_unsuccessful", error=error)
            raise WebhookRequestError(str(error), status_code=response.status_code)

        logger.info("webhook_message_completed", status_code=response.status_code)
        return payload

    async def call_tool(
        self, target: str | None, parameters: dict[str, Any] | None
    ) -> Any:
        """
        Invokes a tool through the webhook.

        Returns:
            Decoded response body

        Raises:
            ToolCallError: On network failure or non-2xx status
        """
        body = {"action": "tool_call", "target": target, "parameters": parameters or {}}
        logger.info("tool_call_started", target=target)
        try:
            response = await self.http_client.post(
                self.webhook_url, json=body, headers=JSON_HEADERS
            )
        except httpx.HTTPError as e:
            logger.error("tool_call_failed", exc_info=True, target=target, error=str(e))
            raise ToolCallError(f"Tool call '{target}' failed: {e}") from e

        if not response.is_success:
            logger.error(
                "tool_call_rejected", target=target, status_code=response.status_code
            )
            raise ToolCallError(
                f"Tool call '{target}' failed with status {response.status_code}",
                status_code=response.status_code,
            )

        logger.info("tool_call_completed", target=target)
        return _decode_body(response)
