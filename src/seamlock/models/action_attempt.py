"""Action attempt model returned by lock/unlock endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from seamlock.models._base import SeamBaseModel


class ActionAttempt(SeamBaseModel):
    """Provider acknowledgement of a lock/unlock request."""

    action_attempt_id: str = ""
    action_type: str = ""
    status: str = ""
    """``pending``, ``success`` or ``error``."""
    error: dict[str, Any] | None = Field(default=None)

    @property
    def failed(self) -> bool:
        return self.status == "error"

    @property
    def error_message(self) -> str:
        if isinstance(self.error, dict):
            return str(self.error.get("message") or self.error.get("type") or "unknown error")
        return "unknown error"
