"""
Match models: hands, usage counters, round outcomes and match state.

MatchState is the aggregate root of a battle. The round engine never
mutates a state it was given: every resolved round produces a fresh
MatchState, so a rejected choice leaves the caller's state untouched.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from photoduel.models.card import Card


class PlayerSide(str, Enum):
    """The two seats of a match. PLAYER2 is the CPU opponent."""

    PLAYER1 = "player1"
    PLAYER2 = "player2"

    @property
    def opponent(self) -> "PlayerSide":
        return PlayerSide.PLAYER2 if self is PlayerSide.PLAYER1 else PlayerSide.PLAYER1


class Winner(str, Enum):
    """Winner of a round or of a whole match."""

    PLAYER1 = "player1"
    PLAYER2 = "player2"
    DRAW = "draw"


class ComparisonType(str, Enum):
    """Axis family a round was decided on."""

    FIXED_STAT = "fixed_stat"
    THEME = "theme"
    NO_CONTEST = "no_contest"


class MatchStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    MATCH_OVER = "match_over"


@dataclass(frozen=True)
class Hand:
    """
    A player's cards for one match.

    The same cards are reused every round; only usage counts change.
    """

    cards: tuple[Card, ...]

    def __contains__(self, card_id: object) -> bool:
        return any(card.card_id == card_id for card in self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def get(self, card_id: str) -> Card | None:
        """Card with the given identifier, or None if not held."""
        for card in self.cards:
            if card.card_id == card_id:
                return card
        return None

    @property
    def card_ids(self) -> list[str]:
        return [card.card_id for card in self.cards]


@dataclass(frozen=True)
class PlayedCard:
    """
    One side of a resolved round.

    Attributes:
        card: The card played, or None when the side had nothing to play
        value: Resolved value on the round's axis; None when unavailable
    """

    card: Card | None
    value: int | None = None

    @classmethod
    def no_card(cls) -> "PlayedCard":
        """Sentinel for a side that could not play in a no-contest round."""
        return cls(card=None, value=None)

    @property
    def was_played(self) -> bool:
        return self.card is not None

    @property
    def card_id(self) -> str | None:
        return self.card.card_id if self.card is not None else None


@dataclass(frozen=True)
class RoundOutcome:
    """
    Immutable record of one resolved round.

    Attributes:
        round_number: Round this outcome resolved
        comparison_type: Fixed stat, theme, or no contest
        comparison_detail: Stat key or theme label; None for no contest
        player1: Player 1's card and value
        player2: Player 2's card and value
        winner: Round winner (DRAW covers ties and unrated rounds)
    """

    round_number: int
    comparison_type: ComparisonType
    comparison_detail: str | None
    player1: PlayedCard
    player2: PlayedCard
    winner: Winner

    @property
    def player1_delta(self) -> int:
        return 1 if self.winner is Winner.PLAYER1 else 0

    @property
    def player2_delta(self) -> int:
        return 1 if self.winner is Winner.PLAYER2 else 0

    @property
    def score_change(self) -> dict[str, int]:
        return {
            PlayerSide.PLAYER1.value: self.player1_delta,
            PlayerSide.PLAYER2.value: self.player2_delta,
        }


@dataclass
class MatchState:
    """
    Everything needed to resume a match between rounds.

    Attributes:
        player1_hand: Player 1's dealt hand
        player2_hand: Player 2's dealt hand
        player1_usage: Player 1 card_id -> times played
        player2_usage: Player 2 card_id -> times played
        player1_score: Rounds won by player 1
        player2_score: Rounds won by player 2
        round_number: Round awaiting a choice (starts at 1)
        last_outcome: Most recently resolved round
        status: IN_PROGRESS until a termination condition holds
        winner: Match winner once the match is over
    """

    player1_hand: Hand
    player2_hand: Hand
    player1_usage: dict[str, int] = field(default_factory=dict)
    player2_usage: dict[str, int] = field(default_factory=dict)
    player1_score: int = 0
    player2_score: int = 0
    round_number: int = 1
    last_outcome: RoundOutcome | None = None
    status: MatchStatus = MatchStatus.IN_PROGRESS
    winner: Winner | None = None

    @property
    def is_over(self) -> bool:
        return self.status is MatchStatus.MATCH_OVER

    @property
    def rounds_played(self) -> int:
        return self.round_number - 1

    def hand(self, side: PlayerSide) -> Hand:
        return self.player1_hand if side is PlayerSide.PLAYER1 else self.player2_hand

    def usage(self, side: PlayerSide) -> dict[str, int]:
        return self.player1_usage if side is PlayerSide.PLAYER1 else self.player2_usage

    def usage_count(self, side: PlayerSide, card_id: str) -> int:
        return self.usage(side).get(card_id, 0)
