"""
Hand Assembler: deals a player's starting hand.

INVARIANTS:
- A dealt hand holds exactly `hand_size` distinct cards
- Cards are drawn uniformly at random, without replacement
- The caller's card pool is never mutated
- Pools smaller than the hand size fail with InsufficientCardsError
"""

import logging
from collections.abc import Sequence

from photoduel.models.card import Card
from photoduel.models.failure import FailureKind, KnownError
from photoduel.models.match import Hand
from photoduel.models.rules import HAND_SIZE
from photoduel.services.random_source import RandomSource, get_random_source

logger = logging.getLogger(__name__)


class InsufficientCardsError(KnownError):
    """
    Raised when a player's pool cannot fill a hand.

    A match cannot start. Not retried internally.
    """

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(
            kind=FailureKind.INSUFFICIENT_CARDS,
            message=(
                f"At least {required} battle-ready photos are needed to start a match. "
                f"You have {actual}."
            ),
            detail=f"required={required} actual={actual}",
            suggestion="Post more photos with images and generate their card stats.",
            status_code=400,
        )


def assemble_hand(
    eligible_cards: Sequence[Card],
    rng: RandomSource | None = None,
    hand_size: int = HAND_SIZE,
) -> Hand:
    """
    Deal a hand from a pool of eligible cards.

    Args:
        eligible_cards: The player's battle-ready cards
        rng: Random source; defaults to the shared system source
        hand_size: Number of cards to deal

    Returns:
        Hand of `hand_size` cards sampled without replacement

    Raises:
        InsufficientCardsError: If the pool holds fewer than `hand_size` cards
    """
    # Repeated identifiers count once
    pool = list({card.card_id: card for card in eligible_cards}.values())
    if len(pool) < hand_size:
        raise InsufficientCardsError(required=hand_size, actual=len(pool))

    source = rng or get_random_source()
    hand = Hand(cards=tuple(source.shuffled(pool)[:hand_size]))

    logger.info(
        "HAND_ASSEMBLED",
        extra={"pool_size": len(pool), "card_ids": hand.card_ids},
    )
    return hand
