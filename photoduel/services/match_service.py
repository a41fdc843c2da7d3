"""
Match service: starts matches from a player's stored card pool.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from photoduel.db.operations import card_to_model, get_eligible_cards
from photoduel.models.match import MatchState
from photoduel.models.rules import DEFAULT_RULES
from photoduel.services.rating_oracle import get_rating_oracle
from photoduel.services.round_engine import RoundEngine


async def start_match(session: AsyncSession, player_id: str, engine: RoundEngine) -> MatchState:
    """
    Deal a new match for a player.

    Both hands come from the player's battle-ready cards.

    Raises:
        InsufficientCardsError: If the player has too few battle-ready cards
    """
    db_cards = await get_eligible_cards(session, player_id)
    cards = [card_to_model(db_card) for db_card in db_cards]
    return engine.deal_match(cards)


_engine: RoundEngine | None = None


def get_round_engine() -> RoundEngine:
    """
    Get the default round engine.

    Returns:
        Singleton RoundEngine using the default rules and oracle
    """
    global _engine
    if _engine is None:
        _engine = RoundEngine(oracle=get_rating_oracle(), rules=DEFAULT_RULES)
    return _engine


def reset_round_engine() -> None:
    """Drop the cached engine (for testing)."""
    global _engine
    _engine = None
