"""Push transports."""

import asyncio
from abc import ABC, abstractmethod

import httpx

from nudgepush.core.config import get_settings
from nudgepush.core.errors import PushTransportError
from nudgepush.core.logging import get_logger
from nudgepush.models.push import PushMessage, TokenResult

logger = get_logger(__name__)

# FCM v1 error statuses mapped to the Admin SDK error codes
FCM_ERROR_CODES = {
    "UNREGISTERED": "messaging/registration-token-not-registered",
    "SENDER_ID_MISMATCH": "messaging/mismatched-credential",
    "QUOTA_EXCEEDED": "messaging/message-rate-exceeded",
    "UNAVAILABLE": "messaging/server-unavailable",
    "INTERNAL": "messaging/internal-error",
    "THIRD_PARTY_AUTH_ERROR": "messaging/third-party-auth-error",
    "INVALID_ARGUMENT": "messaging/invalid-argument",
    "NOT_FOUND": "messaging/registration-token-not-registered",
}


class PushTransport(ABC):
    """Sends one payload to many device tokens."""

    @abstractmethod
    async def send_each(self, message: PushMessage) -> list[TokenResult]:
        """Send the message to every token in it.

        Returns:
            One result per token, in token order

        Raises:
            PushTransportError: If the batch could not be attempted at all
        """

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass


class FCMTransport(PushTransport):
    """Firebase Cloud Messaging HTTP v1 transport.

    FCM v1 accepts one token per request, so a batch is sent as concurrent
    requests over a shared client.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._settings = get_settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.fcm_timeout)

    @property
    def send_url(self) -> str:
        return (
            f"{self._settings.fcm_base_url.rstrip('/')}"
            f"/projects/{self._settings.fcm_project_id}/messages:send"
        )

    async def send_each(self, message: PushMessage) -> list[TokenResult]:
        if not self._settings.fcm_project_id or not self._settings.fcm_access_token:
            raise PushTransportError("FCM is not configured")

        headers = {"Authorization": f"Bearer {self._settings.fcm_access_token}"}
        return list(
            await asyncio.gather(
                *(self._send_one(token, message, headers) for token in message.tokens)
            )
        )

    async def _send_one(self, token: str, message: PushMessage, headers: dict[str, str]) -> TokenResult:
        payload = {
            "message": {
                "token": token,
                "notification": message.notification.model_dump(),
                "data": message.data,
                "android": message.android,
                "apns": message.apns,
            }
        }

        try:
            response = await self._client.post(self.send_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("FCM request failed", error=str(e))
            return TokenResult(token=token, success=False, error_code="messaging/network-error")

        body = self._json_body(response)

        if response.status_code == 200:
            if body is None:
                logger.warning("Unexpected FCM response body", status=response.status_code)
                return TokenResult(token=token, success=False, error_code="messaging/invalid-response")
            return TokenResult(token=token, success=True, message_id=body.get("name"))

        error_code = self._error_code(response.status_code, body)
        logger.debug("FCM send rejected", status=response.status_code, error_code=error_code)
        return TokenResult(token=token, success=False, error_code=error_code)

    @staticmethod
    def _json_body(response: httpx.Response) -> dict | None:
        """Response body as a JSON object, or None if it is anything else."""
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    @staticmethod
    def _error_code(status_code: int, body: dict | None) -> str:
        error = body.get("error") if body else None
        if not isinstance(error, dict):
            return f"messaging/http-{status_code}"

        status = str(error.get("status") or "")
        details = error.get("details")
        for detail in details if isinstance(details, list) else []:
            fcm_code = detail.get("errorCode") if isinstance(detail, dict) else None
            if fcm_code:
                status = str(fcm_code)
                break

        message = str(error.get("message") or "")
        if status == "INVALID_ARGUMENT" and "registration token" in message.lower():
            return "messaging/invalid-registration-token"
        return FCM_ERROR_CODES.get(status, f"messaging/{status.lower() or 'unknown-error'}")

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
