"""Core domain entities for the voting bounded context."""

from __future__ import annotations

from pydantic import BaseModel, Field

from voice_dj.domain.shared.types import NonEmptyStr


class SkipVoteRecord(BaseModel):
    """Set of users who voted to skip one target (a track id or playlist id)."""

    target_id: NonEmptyStr
    voters: set[str] = Field(default_factory=set)
    triggered: bool = False

    @property
    def vote_count(self) -> int:
        return len(self.voters)

    def has_voted(self, voter: str) -> bool:
        return voter in self.voters

    def add_vote(self, voter: str) -> bool:
        """Add a vote. Returns False when the voter had already voted."""
        if self.has_voted(voter):
            return False
        self.voters.add(voter)
        return True

    def ratio(self, listener_count: int) -> float:
        return self.vote_count / max(listener_count, 1)

    def is_threshold_met(self, listener_count: int, ratio: float) -> bool:
        return self.ratio(listener_count) >= ratio
