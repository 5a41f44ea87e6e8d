"""Prometheus metrics definitions."""

from prometheus_client import Counter

NUDGES_PROCESSED = Counter(
    "nudgepush_nudges_processed_total",
    "Nudge events processed, by terminal outcome",
    ["outcome"],
)

PUSH_MESSAGES = Counter(
    "nudgepush_push_messages_total",
    "Per-token push results",
    ["type", "status"],
)

INVALID_TOKENS = Counter(
    "nudgepush_invalid_tokens_total",
    "Tokens reported invalid or unregistered by the transport",
)

DIGEST_RECIPIENTS = Counter(
    "nudgepush_digest_recipients_total",
    "Users notified by scheduled digest jobs",
    ["job"],
)
