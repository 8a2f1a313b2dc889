"""
Voting Bounded Context

Domain logic for per-track and per-playlist skip voting.
"""

from voice_dj.domain.voting.entities import SkipVoteRecord
from voice_dj.domain.voting.services import SkipVoteAggregator
from voice_dj.domain.voting.value_objects import VoteResult, VoteTarget

__all__ = [
    # Entities
    "SkipVoteRecord",
    # Value Objects
    "VoteResult",
    "VoteTarget",
    # Services
    "SkipVoteAggregator",
]
