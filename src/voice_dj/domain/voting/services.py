"""
Voting Domain Services

Skip-vote aggregation against a listener-count threshold.
"""

from __future__ import annotations

import logging
import math
import threading

from voice_dj.domain.shared.messages import LogTemplates
from voice_dj.domain.voting.entities import SkipVoteRecord
from voice_dj.domain.voting.value_objects import VoteResult

logger = logging.getLogger(__name__)

_RATIO_EPSILON = 1e-9


class SkipVoteAggregator:
    """Tracks skip votes per target and decides when a skip goes through.

    One record exists per target id (the playing track's id, or the id of
    the playlist it came from). The listener count is supplied by the
    caller on every vote, so the threshold follows whoever is currently in
    the channel. All methods are serialised by a lock.
    """

    def __init__(self) -> None:
        self._records: dict[str, SkipVoteRecord] = {}
        self._lock = threading.Lock()

    def cast_vote(
        self,
        target_id: str,
        voter: str,
        listener_count: int,
        ratio: float,
        *,
        admin: bool = False,
    ) -> VoteResult:
        """Record a vote and report what happened.

        An admin vote skips unconditionally and leaves the vote set alone.
        A target only reports THRESHOLD_MET once; later votes for the same
        live target get ALREADY_SKIPPING.
        """
        if admin:
            logger.info(LogTemplates.VOTE_ADMIN_SKIP, voter, target_id)
            return VoteResult.ADMIN_SKIP

        with self._lock:
            record = self._records.get(target_id)
            if record is None:
                record = SkipVoteRecord(target_id=target_id)
                self._records[target_id] = record

            if record.triggered:
                return VoteResult.ALREADY_SKIPPING

            if not record.add_vote(voter):
                return VoteResult.ALREADY_VOTED

            logger.debug(
                LogTemplates.VOTE_RECORDED, voter, target_id, record.vote_count, listener_count
            )

            if record.is_threshold_met(listener_count, ratio - _RATIO_EPSILON):
                record.triggered = True
                logger.info(LogTemplates.VOTE_THRESHOLD_MET, target_id, record.vote_count)
                return VoteResult.THRESHOLD_MET

            return VoteResult.VOTE_RECORDED

    def register_vote(
        self,
        target_id: str,
        voter: str,
        listener_count: int,
        ratio: float,
        *,
        admin: bool = False,
    ) -> bool:
        """Record a vote; True when the target should be skipped now."""
        return self.cast_vote(
            target_id, voter, listener_count, ratio, admin=admin
        ).action_executed

    def reset(self, target_id: str) -> None:
        with self._lock:
            if self._records.pop(target_id, None) is not None:
                logger.debug(LogTemplates.VOTE_RESET, target_id)

    def reset_all(self) -> None:
        with self._lock:
            self._records.clear()

    def vote_count(self, target_id: str) -> int:
        with self._lock:
            record = self._records.get(target_id)
            return record.vote_count if record else 0

    def voters(self, target_id: str) -> frozenset[str]:
        with self._lock:
            record = self._records.get(target_id)
            return frozenset(record.voters) if record else frozenset()

    def votes_needed(self, target_id: str, listener_count: int, ratio: float) -> int:
        """Votes still missing before ``target_id`` reaches the threshold."""
        return max(0, self.votes_required(listener_count, ratio) - self.vote_count(target_id))

    @staticmethod
    def votes_required(listener_count: int, ratio: float) -> int:
        """Number of distinct voters needed to reach ``ratio`` of the listeners."""
        required = math.ceil(max(listener_count, 1) * ratio - _RATIO_EPSILON)
        return max(1, required)
