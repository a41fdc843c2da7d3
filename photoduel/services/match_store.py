"""
Match Store: in-process holder for match states between rounds.

Each match carries its own asyncio.Lock. Rounds for one match are
serialized by holding that lock for the whole play_round call; different
matches never contend.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from photoduel.models.failure import FailureKind, KnownError
from photoduel.models.match import MatchState

logger = logging.getLogger(__name__)

# Oldest matches are evicted beyond this many
DEFAULT_MAX_MATCHES = 1000


class MatchNotFoundError(KnownError):
    """No stored match has the given identifier."""

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message="This match could not be found. It may have expired.",
            detail=f"match_id={match_id}",
            suggestion="Start a new match.",
            status_code=404,
        )


@dataclass
class StoredMatch:
    """A match state plus the lock serializing its rounds."""

    match_id: str
    player_id: str
    state: MatchState
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


@dataclass
class MatchStore:
    """Match states keyed by match_id, in insertion order."""

    max_matches: int = DEFAULT_MAX_MATCHES
    _matches: dict[str, StoredMatch] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._matches)

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._matches

    def create(self, player_id: str, state: MatchState) -> StoredMatch:
        """Store a new match under a fresh identifier."""
        while len(self._matches) >= self.max_matches:
            evicted = next(iter(self._matches))
            del self._matches[evicted]
            logger.info("MATCH_EVICTED", extra={"match_id": evicted})

        stored = StoredMatch(match_id=uuid.uuid4().hex, player_id=player_id, state=state)
        self._matches[stored.match_id] = stored
        return stored

    def get(self, match_id: str) -> StoredMatch:
        """
        Look up a match.

        Raises:
            MatchNotFoundError: If the match is unknown
        """
        stored = self._matches.get(match_id)
        if stored is None:
            raise MatchNotFoundError(match_id)
        return stored

    @asynccontextmanager
    async def locked(self, match_id: str) -> AsyncIterator[StoredMatch]:
        """
        Hold a match's lock for the duration of the block.

        Raises:
            MatchNotFoundError: If the match is unknown
        """
        stored = self.get(match_id)
        async with stored.lock:
            yield stored


_store: MatchStore | None = None


def get_match_store() -> MatchStore:
    """Get the process-wide match store."""
    global _store
    if _store is None:
        _store = MatchStore()
    return _store


def reset_match_store() -> None:
    """Drop every stored match (for testing)."""
    global _store
    _store = None
