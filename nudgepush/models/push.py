"""Push notification payload and result models."""

from enum import Enum

from pydantic import BaseModel, Field

INVALID_TOKEN_ERRORS = frozenset(
    {
        "messaging/invalid-registration-token",
        "messaging/registration-token-not-registered",
    }
)


class PushPriority(str, Enum):
    """Logical priority carried in push data."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PushNotification(BaseModel):
    """Visible notification content."""

    title: str
    body: str


class PushMessage(BaseModel):
    """A batched push request: one payload for many device tokens."""

    tokens: list[str]
    notification: PushNotification
    data: dict[str, str] = Field(default_factory=dict)
    android: dict = Field(default_factory=dict)
    apns: dict = Field(default_factory=dict)


class TokenResult(BaseModel):
    """Delivery result for a single token."""

    token: str
    success: bool
    error_code: str | None = None
    message_id: str | None = None

    @property
    def invalid_token(self) -> bool:
        return not self.success and self.error_code in INVALID_TOKEN_ERRORS


class PushResult(BaseModel):
    """Aggregated result of a batched send."""

    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    results: list[TokenResult] = Field(default_factory=list)

    @property
    def invalid_tokens(self) -> list[str]:
        """Tokens the transport reported as invalid or unregistered."""
        return [r.token for r in self.results if r.invalid_token]

    @classmethod
    def from_results(cls, results: list[TokenResult]) -> "PushResult":
        success = sum(1 for r in results if r.success)
        return cls(success_count=success, failure_count=len(results) - success, results=results)
