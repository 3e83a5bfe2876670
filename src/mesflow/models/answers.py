"""Per-client decision answers."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClientAnswer(BaseModel):
    """A client's chosen outcome for one decision."""

    selected_outcome: str
    rationale: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class ClientAnswerSet(BaseModel):
    """All answers for one client, versioned for optimistic concurrency.

    ``version`` increases by one on every successful save.
    """

    client: str
    version: int = 0
    answers: dict[str, ClientAnswer] = Field(default_factory=dict)

    def selected(self, decision_id: str) -> str | None:
        answer = self.answers.get(decision_id)
        return answer.selected_outcome if answer else None
