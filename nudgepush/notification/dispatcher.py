"""Push dispatcher: batched fan-out of one notification to many tokens."""

from nudgepush.core.clock import utcnow
from nudgepush.core.errors import PushTransportError
from nudgepush.core.logging import get_logger
from nudgepush.models.push import (
    PushMessage,
    PushNotification,
    PushPriority,
    PushResult,
    TokenResult,
)
from nudgepush.notification.transport import FCMTransport, PushTransport
from nudgepush.observability.metrics import INVALID_TOKENS, PUSH_MESSAGES

logger = get_logger(__name__)

ANDROID_CHANNEL_HIGH = "bible_speak_high"
ANDROID_CHANNEL_DEFAULT = "bible_speak_default"


class PushDispatcher:
    """Dispatcher for sending push notifications to device tokens."""

    def __init__(self, transport: PushTransport | None = None):
        """Initialize dispatcher.

        Args:
            transport: Push transport, FCM by default
        """
        self._transport = transport or FCMTransport()

    async def send(
        self,
        tokens: list[str],
        notification: PushNotification,
        data: dict[str, str],
    ) -> PushResult:
        """Send one notification to all tokens in a single batched call.

        An empty token list is a no-op. Transport failures are reported as
        failed tokens rather than raised. Invalid tokens are identified on
        the result but left in the registry.

        Args:
            tokens: Target device tokens
            notification: Title and body
            data: String metadata; ``type`` and ``priority`` are expected

        Returns:
            Success and failure counts with per-token results
        """
        if not tokens:
            logger.debug("No tokens to send")
            return PushResult()

        message = self._build_message(tokens, notification, data)
        push_type = data.get("type", "unknown")

        try:
            results = await self._transport.send_each(message)
        except PushTransportError as e:
            logger.error("Push transport error", type=push_type, tokens=len(tokens), error=str(e))
            results = self._fail_all(tokens)
        except Exception as e:
            logger.error(
                "Unexpected push transport failure",
                type=push_type,
                tokens=len(tokens),
                error=str(e),
                exc_info=True,
            )
            results = self._fail_all(tokens)

        result = PushResult.from_results(results)
        PUSH_MESSAGES.labels(type=push_type, status="success").inc(result.success_count)
        PUSH_MESSAGES.labels(type=push_type, status="failure").inc(result.failure_count)

        logger.info(
            "Push sent",
            type=push_type,
            success=result.success_count,
            failed=result.failure_count,
        )

        invalid = result.invalid_tokens
        if invalid:
            # TODO: prune invalid tokens from the registry once clients re-register reliably
            INVALID_TOKENS.inc(len(invalid))
            logger.warning("Invalid push tokens", type=push_type, count=len(invalid))

        return result

    async def close(self) -> None:
        await self._transport.close()

    @staticmethod
    def _fail_all(tokens: list[str]) -> list[TokenResult]:
        return [
            TokenResult(token=token, success=False, error_code="transport-error")
            for token in tokens
        ]

    def _build_message(
        self,
        tokens: list[str],
        notification: PushNotification,
        data: dict[str, str],
    ) -> PushMessage:
        high = data.get("priority") == PushPriority.HIGH.value
        return PushMessage(
            tokens=tokens,
            notification=notification,
            data={**data, "timestamp": str(int(utcnow().timestamp() * 1000))},
            android={
                "priority": "high",
                "notification": {
                    "channel_id": ANDROID_CHANNEL_HIGH if high else ANDROID_CHANNEL_DEFAULT,
                    "sound": "default",
                },
            },
            apns={"payload": {"aps": {"sound": "default", "badge": 1}}},
        )
