"""
Database CRUD operations.

Provides async functions for registering battle cards, storing their
enrichment, and reading a player's eligible card pool.
"""

from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from photoduel.config import CARD_POOL_WINDOW
from photoduel.models.card import Card
from photoduel.models.db import BattleCardDB

# --- Card Operations ---


async def get_card(session: AsyncSession, card_id: str) -> BattleCardDB | None:
    """
    Get a card by its identifier.

    Returns None if the card does not exist.
    """
    result = await session.execute(select(BattleCardDB).where(BattleCardDB.card_id == card_id))
    return result.scalar_one_or_none()


async def get_cards_by_owner(session: AsyncSession, owner_id: str) -> list[BattleCardDB]:
    """Get every card an owner has registered, newest first."""
    result = await session.execute(
        select(BattleCardDB)
        .where(BattleCardDB.owner_id == owner_id)
        .order_by(BattleCardDB.created_at.desc(), BattleCardDB.card_id)
    )
    return list(result.scalars().all())


async def get_eligible_cards(
    session: AsyncSession, owner_id: str, limit: int = CARD_POOL_WINDOW
) -> list[BattleCardDB]:
    """
    Get an owner's battle-ready cards.

    A card is battle-ready when it has an image, a stat vector and an
    effect description. Newest cards first, at most `limit` of them.
    """
    result = await session.execute(
        select(BattleCardDB)
        .where(
            BattleCardDB.owner_id == owner_id,
            BattleCardDB.image_url != "",
            BattleCardDB.stats.is_not(None),
            BattleCardDB.effect_description.is_not(None),
        )
        .order_by(BattleCardDB.created_at.desc(), BattleCardDB.card_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def upsert_card(
    session: AsyncSession,
    card_id: str,
    owner_id: str,
    image_url: str,
    caption: str | None = None,
) -> BattleCardDB:
    """
    Insert or update a card.

    Updating a card's image clears its enrichment, since the stored
    stats described the old photo.
    """
    existing = await get_card(session, card_id)

    if existing:
        if existing.image_url != image_url:
            existing.stats = None
            existing.effect_description = None
        existing.owner_id = owner_id
        existing.image_url = image_url
        existing.caption = caption
        await session.flush()
        return existing

    db_card = BattleCardDB(
        card_id=card_id,
        owner_id=owner_id,
        image_url=image_url,
        caption=caption,
    )
    session.add(db_card)
    await session.flush()
    return db_card


async def save_card_enrichment(
    session: AsyncSession,
    card_id: str,
    stats: Mapping[str, int],
    effect_description: str,
) -> BattleCardDB | None:
    """
    Store the stat vector and effect generated for a card.

    Returns None if the card does not exist.
    """
    db_card = await get_card(session, card_id)
    if db_card is None:
        return None

    db_card.stats = dict(stats)
    db_card.effect_description = effect_description
    await session.flush()
    return db_card


async def delete_card(session: AsyncSession, card_id: str) -> bool:
    """
    Delete a card.

    Returns True if deleted, False if not found.
    """
    db_card = await get_card(session, card_id)
    if not db_card:
        return False

    await session.delete(db_card)
    return True


def card_to_model(db_card: BattleCardDB) -> Card:
    """Convert a database card to a domain model."""
    return Card.from_stats(
        card_id=db_card.card_id,
        image_url=db_card.image_url,
        stats=db_card.stats,
        effect=db_card.effect_description,
        caption=db_card.caption,
    )
