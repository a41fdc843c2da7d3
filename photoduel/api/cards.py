"""
Card API endpoints.

Registers post photos as battle cards and generates their stats.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from photoduel.db import card_to_model, delete_card, get_cards_by_owner, upsert_card
from photoduel.db.database import get_session
from photoduel.models.rules import HAND_SIZE
from photoduel.services.card_enrichment import CardNotFoundError, enrich_card
from photoduel.services.rating_oracle import VisionClient, get_vision_client

router = APIRouter(prefix="/cards", tags=["cards"])


class CardRegisterRequest(BaseModel):
    """Request model for registering a card."""

    card_id: str = Field(..., min_length=1, description="Identifier of the post image")
    owner_id: str = Field(..., min_length=1, description="User who posted the photo")
    image_url: str = Field(..., min_length=1, examples=["https://example.com/photo.jpg"])
    caption: str | None = Field(default=None, description="Text of the post")


class CardResponse(BaseModel):
    """Response model for a card."""

    card_id: str
    owner_id: str
    image_url: str
    caption: str | None = None
    stats: dict[str, int] | None = None
    effect: str | None = None
    battle_ready: bool = False


class CardListResponse(BaseModel):
    """Response model for an owner's cards."""

    owner_id: str
    cards: list[CardResponse]
    battle_ready_count: int
    can_start_match: bool


class EnrichResponse(BaseModel):
    """Response model for card enrichment."""

    card_id: str
    stats: dict[str, int]
    effect: str
    unrated_stats: list[str] = Field(
        default_factory=list,
        description="Stats the model could not rate; stored as 0",
    )


class DeleteResponse(BaseModel):
    """Response model for delete operations."""

    card_id: str
    deleted: bool


@router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def register_card(
    request: CardRegisterRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """
    Register or update a photo as a battle card.

    Changing the image clears previously generated stats.
    """
    db_card = await upsert_card(
        session,
        card_id=request.card_id,
        owner_id=request.owner_id,
        image_url=request.image_url,
        caption=request.caption,
    )
    model = card_to_model(db_card)
    return CardResponse(
        card_id=db_card.card_id,
        owner_id=db_card.owner_id,
        image_url=db_card.image_url,
        caption=db_card.caption,
        stats=model.stats_dict() if db_card.stats is not None else None,
        effect=db_card.effect_description,
        battle_ready=db_card.is_enriched,
    )


@router.get("/{owner_id}", response_model=CardListResponse)
async def list_cards(
    owner_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardListResponse:
    """List an owner's cards and whether a match can be started."""
    db_cards = await get_cards_by_owner(session, owner_id)

    cards = [
        CardResponse(
            card_id=c.card_id,
            owner_id=c.owner_id,
            image_url=c.image_url,
            caption=c.caption,
            stats=card_to_model(c).stats_dict() if c.stats is not None else None,
            effect=c.effect_description,
            battle_ready=c.is_enriched,
        )
        for c in db_cards
    ]
    ready = sum(1 for c in cards if c.battle_ready)

    return CardListResponse(
        owner_id=owner_id,
        cards=cards,
        battle_ready_count=ready,
        can_start_match=ready >= HAND_SIZE,
    )


@router.post("/{card_id}/enrich", response_model=EnrichResponse)
async def enrich(
    card_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    vision: Annotated[VisionClient, Depends(get_vision_client)],
) -> EnrichResponse:
    """
    Generate a card's stats and effect with the vision model.

    Returns 503 when the vision model is not configured and 502 when the
    photo cannot be downloaded; nothing is stored in either case.
    """
    result = await enrich_card(session, card_id, vision)
    return EnrichResponse(
        card_id=result.card_id,
        stats=result.stats,
        effect=result.effect,
        unrated_stats=result.unrated_stats,
    )


@router.delete("/{card_id}", response_model=DeleteResponse)
async def remove_card(
    card_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeleteResponse:
    """
    Delete a card.

    Returns 404 if the card does not exist.
    """
    if not await delete_card(session, card_id):
        raise CardNotFoundError(card_id)
    return DeleteResponse(card_id=card_id, deleted=True)
