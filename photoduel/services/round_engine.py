"""
Round Engine: the card battle state machine.

States:
    AwaitingChoice(state) -> RoundResolved(state', outcome)
        -> AwaitingChoice(state')   when the match continues
        -> MatchOver(state')        when a score or round limit is hit

INVARIANTS:
- Validation failures raise before anything is computed; the caller's
  MatchState is never mutated, every resolved round returns a new one
- A card is played at most `usage_cap` times by its owner per match
- At most one side scores per round; draws and no-contest rounds score 0
- The round number advances by exactly one per resolved round
- Oracle failures never abort a round; the affected value becomes None
  and any comparison involving None is a draw
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from photoduel.models.card import Card
from photoduel.models.failure import FailureKind, KnownError
from photoduel.models.match import (
    ComparisonType,
    Hand,
    MatchState,
    MatchStatus,
    PlayedCard,
    PlayerSide,
    RoundOutcome,
    Winner,
)
from photoduel.models.rules import DEFAULT_RULES, GameRules
from photoduel.services.hand_assembler import assemble_hand
from photoduel.services.random_source import RandomSource, get_random_source
from photoduel.services.rating_oracle import RatingOracle, rate_with_retries

logger = logging.getLogger(__name__)


# =============================================================================
# SURFACED ERRORS
# =============================================================================


class MatchAlreadyOverError(KnownError):
    """A round was submitted after the match ended."""

    def __init__(self, winner: Winner | None = None):
        self.winner = winner
        super().__init__(
            kind=FailureKind.MATCH_ALREADY_OVER,
            message="This match has already ended.",
            detail=f"winner={winner.value}" if winner else None,
            suggestion="Start a new match to keep playing.",
            status_code=409,
        )


class CardNotInHandError(KnownError):
    """The chosen card is not part of the active player's hand."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.CARD_NOT_IN_HAND,
            message="That card is not in your hand.",
            detail=f"card_id={card_id}",
            suggestion="Choose one of the cards in your hand.",
            status_code=400,
        )


class CardUsageLimitExceededError(KnownError):
    """The chosen card has already been played the maximum number of times."""

    def __init__(self, card_id: str, count: int, limit: int):
        self.card_id = card_id
        self.count = count
        self.limit = limit
        super().__init__(
            kind=FailureKind.CARD_USAGE_LIMIT_EXCEEDED,
            message=f"This card has already been played {count} times.",
            detail=f"card_id={card_id} count={count} limit={limit}",
            suggestion="Choose a different card.",
            status_code=400,
        )


# =============================================================================
# WINNER LOGIC
# =============================================================================


def decide_round_winner(value1: int | None, value2: int | None) -> Winner:
    """
    Compare two resolved values.

    Strictly greater wins. Equal values draw, and so does any comparison
    involving a missing value.
    """
    if value1 is None or value2 is None:
        return Winner.DRAW
    if value1 > value2:
        return Winner.PLAYER1
    if value2 > value1:
        return Winner.PLAYER2
    return Winner.DRAW


def decide_match_winner(player1_score: int, player2_score: int) -> Winner:
    """Higher score takes the match; equal scores are a match draw."""
    if player1_score > player2_score:
        return Winner.PLAYER1
    if player2_score > player1_score:
        return Winner.PLAYER2
    return Winner.DRAW


@dataclass(frozen=True)
class RoundResolution:
    """Result of play_round: the round's outcome and the next match state."""

    outcome: RoundOutcome
    state: MatchState

    @property
    def match_over(self) -> bool:
        return self.state.is_over


# =============================================================================
# ENGINE
# =============================================================================


class RoundEngine:
    """
    Resolves card battle rounds.

    The engine holds no match data. It is configured once with the rules,
    the rating oracle and a random source, and can serve any number of
    matches; callers serialize rounds for any one match.
    """

    def __init__(
        self,
        oracle: RatingOracle,
        rules: GameRules = DEFAULT_RULES,
        rng: RandomSource | None = None,
    ) -> None:
        self.oracle = oracle
        self.rules = rules
        self.rng = rng or get_random_source()

    # -------------------------------------------------------------------------
    # Match setup
    # -------------------------------------------------------------------------

    def new_match(self, player1_hand: Hand, player2_hand: Hand) -> MatchState:
        """
        Create the initial state: round 1, scores 0, no cards used.

        Raises:
            ValueError: If either hand is not exactly `hand_size` cards
        """
        for side, hand in ((PlayerSide.PLAYER1, player1_hand), (PlayerSide.PLAYER2, player2_hand)):
            if len(hand) != self.rules.hand_size:
                raise ValueError(
                    f"{side.value} hand has {len(hand)} cards, expected {self.rules.hand_size}"
                )
        return MatchState(player1_hand=player1_hand, player2_hand=player2_hand)

    def deal_match(self, eligible_cards: Sequence[Card]) -> MatchState:
        """
        Deal both hands from one card pool and start a match.

        The CPU opponent's hand is sampled independently from the same
        pool, so the same card may sit in both hands.

        Raises:
            InsufficientCardsError: If the pool cannot fill a hand
        """
        player1_hand = assemble_hand(eligible_cards, self.rng, self.rules.hand_size)
        player2_hand = assemble_hand(eligible_cards, self.rng, self.rules.hand_size)
        return self.new_match(player1_hand, player2_hand)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_terminal(self, player1_score: int, player2_score: int, round_number: int) -> bool:
        """True when a score limit is reached or the round cap has been played."""
        return (
            player1_score >= self.rules.score_to_win
            or player2_score >= self.rules.score_to_win
            or round_number > self.rules.round_cap
        )

    def playable_cards(
        self, state: MatchState, side: PlayerSide, exclude_card_id: str | None = None
    ) -> list[Card]:
        """Cards in a side's hand still under the usage cap, in hand order."""
        return [
            card
            for card in state.hand(side)
            if state.usage_count(side, card.card_id) < self.rules.usage_cap
            and card.card_id != exclude_card_id
        ]

    def validate_choice(self, state: MatchState, card_id: str, active: PlayerSide) -> Card:
        """
        Check that a card may be played this round.

        Returns:
            The chosen card from the active player's hand

        Raises:
            MatchAlreadyOverError: If the match has ended
            CardNotInHandError: If the card is not in the active hand
            CardUsageLimitExceededError: If the card is at the usage cap
        """
        if state.is_over or self.is_terminal(
            state.player1_score, state.player2_score, state.round_number
        ):
            raise MatchAlreadyOverError(state.winner)

        card = state.hand(active).get(card_id)
        if card is None:
            raise CardNotInHandError(card_id)

        count = state.usage_count(active, card_id)
        if count >= self.rules.usage_cap:
            raise CardUsageLimitExceededError(card_id, count, self.rules.usage_cap)

        return card

    # -------------------------------------------------------------------------
    # Round resolution
    # -------------------------------------------------------------------------

    async def play_round(
        self,
        state: MatchState,
        card_id: str,
        active: PlayerSide = PlayerSide.PLAYER1,
    ) -> RoundResolution:
        """
        Play one round with the active player's chosen card.

        The opponent's card and the comparison axis are chosen by the
        engine. Theme rounds rate both photos concurrently.

        Args:
            state: Current match state (not modified)
            card_id: Card the active player chose
            active: Side making the choice

        Returns:
            RoundResolution with the outcome and the next state

        Raises:
            MatchAlreadyOverError, CardNotInHandError, CardUsageLimitExceededError
        """
        active_card = self.validate_choice(state, card_id, active)
        opponent = active.opponent

        candidates = self.playable_cards(state, opponent, exclude_card_id=card_id)
        if not candidates:
            logger.info(
                "NO_CONTEST_ROUND",
                extra={"round_number": state.round_number, "card_id": card_id},
            )
            outcome = self._build_outcome(
                round_number=state.round_number,
                comparison_type=ComparisonType.NO_CONTEST,
                comparison_detail=None,
                active=active,
                active_played=PlayedCard(card=active_card, value=None),
                opponent_played=PlayedCard.no_card(),
            )
            return self._advance(state, outcome)

        opponent_card = self.rng.choose_one(candidates)
        comparison_type, detail = self.choose_comparison()

        if comparison_type is ComparisonType.FIXED_STAT:
            active_value: int | None = active_card.stat(detail)
            opponent_value: int | None = opponent_card.stat(detail)
        else:
            active_value, opponent_value = await self._rate_theme(
                detail, active_card, opponent_card
            )

        outcome = self._build_outcome(
            round_number=state.round_number,
            comparison_type=comparison_type,
            comparison_detail=detail,
            active=active,
            active_played=PlayedCard(card=active_card, value=active_value),
            opponent_played=PlayedCard(card=opponent_card, value=opponent_value),
        )
        return self._advance(state, outcome)

    def choose_comparison(self) -> tuple[ComparisonType, str]:
        """Pick the round's axis: a fixed stat or a theme."""
        if self.rng.next_float() < self.rules.fixed_stat_probability:
            return ComparisonType.FIXED_STAT, self.rng.choose_one(self.rules.stat_keys)
        return ComparisonType.THEME, self.rng.choose_one(self.rules.themes)

    async def _rate_theme(
        self, theme: str, active_card: Card, opponent_card: Card
    ) -> tuple[int | None, int | None]:
        prompt = self.rules.theme_prompt(theme)
        active_value, opponent_value = await asyncio.gather(
            rate_with_retries(
                self.oracle,
                active_card.image_url,
                prompt,
                self.rules.score_scale,
                self.rules.oracle_attempts,
            ),
            rate_with_retries(
                self.oracle,
                opponent_card.image_url,
                prompt,
                self.rules.score_scale,
                self.rules.oracle_attempts,
            ),
        )
        return active_value, opponent_value

    def _build_outcome(
        self,
        round_number: int,
        comparison_type: ComparisonType,
        comparison_detail: str | None,
        active: PlayerSide,
        active_played: PlayedCard,
        opponent_played: PlayedCard,
    ) -> RoundOutcome:
        if active is PlayerSide.PLAYER1:
            player1, player2 = active_played, opponent_played
        else:
            player1, player2 = opponent_played, active_played

        if comparison_type is ComparisonType.NO_CONTEST:
            winner = Winner.DRAW
        else:
            winner = decide_round_winner(player1.value, player2.value)

        return RoundOutcome(
            round_number=round_number,
            comparison_type=comparison_type,
            comparison_detail=comparison_detail,
            player1=player1,
            player2=player2,
            winner=winner,
        )

    def _advance(self, state: MatchState, outcome: RoundOutcome) -> RoundResolution:
        """Apply a resolved round to a copy of the state and check termination."""
        player1_usage = dict(state.player1_usage)
        player2_usage = dict(state.player2_usage)
        for usage, played in ((player1_usage, outcome.player1), (player2_usage, outcome.player2)):
            if played.card_id is not None:
                usage[played.card_id] = usage.get(played.card_id, 0) + 1

        player1_score = state.player1_score + outcome.player1_delta
        player2_score = state.player2_score + outcome.player2_delta
        round_number = state.round_number + 1

        status = MatchStatus.IN_PROGRESS
        winner: Winner | None = None
        if self.is_terminal(player1_score, player2_score, round_number):
            status = MatchStatus.MATCH_OVER
            winner = decide_match_winner(player1_score, player2_score)

        next_state = replace(
            state,
            player1_usage=player1_usage,
            player2_usage=player2_usage,
            player1_score=player1_score,
            player2_score=player2_score,
            round_number=round_number,
            last_outcome=outcome,
            status=status,
            winner=winner,
        )

        logger.info(
            "ROUND_RESOLVED",
            extra={
                "round_number": outcome.round_number,
                "comparison_type": outcome.comparison_type.value,
                "comparison_detail": outcome.comparison_detail,
                "player1_value": outcome.player1.value,
                "player2_value": outcome.player2.value,
                "round_winner": outcome.winner.value,
            },
        )
        if winner is not None:
            logger.info(
                "MATCH_OVER",
                extra={
                    "player1_score": player1_score,
                    "player2_score": player2_score,
                    "match_winner": winner.value,
                    "rounds_played": next_state.rounds_played,
                },
            )

        return RoundResolution(outcome=outcome, state=next_state)
