"""
Voting Domain Value Objects

Immutable value objects for the voting bounded context.
"""

from enum import Enum


class VoteTarget(Enum):
    """What a skip vote is aimed at."""

    TRACK = "track"  # Skip the current track
    PLAYLIST = "playlist"  # Skip the rest of the current playlist

    @property
    def noun(self) -> str:
        """Get the noun used in chat replies."""
        return {
            VoteTarget.TRACK: "song",
            VoteTarget.PLAYLIST: "playlist",
        }[self]


class VoteResult(Enum):
    """Results of attempting to cast a skip vote."""

    # Successful outcomes
    VOTE_RECORDED = "vote_recorded"  # Vote counted, threshold not yet met
    THRESHOLD_MET = "threshold_met"  # Vote crossed the threshold
    ADMIN_SKIP = "admin_skip"  # Admin bypassed the ratio

    # Vote not counted outcomes
    ALREADY_VOTED = "already_voted"  # Same voter voted before
    ALREADY_SKIPPING = "already_skipping"  # Threshold was crossed earlier
    NO_PLAYING = "no_playing"  # Nothing is playing
    NO_PLAYLIST = "no_playlist"  # Current track is not from a playlist

    @property
    def is_success(self) -> bool:
        return self in {
            VoteResult.VOTE_RECORDED,
            VoteResult.THRESHOLD_MET,
            VoteResult.ADMIN_SKIP,
        }

    @property
    def action_executed(self) -> bool:
        """Check if this result means the skip was carried out."""
        return self in {VoteResult.THRESHOLD_MET, VoteResult.ADMIN_SKIP}
