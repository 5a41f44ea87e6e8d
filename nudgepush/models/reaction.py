"""Reaction records batched into digest pushes."""

from datetime import datetime

from pydantic import BaseModel, Field

from nudgepush.core.clock import utcnow


class Reaction(BaseModel):
    """A reaction one user left on another user's recitation."""

    id: str
    to_user_id: str
    from_user_id: str
    from_user_name: str = ""
    emoji: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    notified: bool = False
