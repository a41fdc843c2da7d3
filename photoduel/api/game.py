"""
Game API endpoints.

Starts card battles and plays their rounds. Match states live in the
match store between requests; rounds for one match are serialized by
the match's lock.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from photoduel.db.database import get_session
from photoduel.models.card import Card
from photoduel.models.match import MatchState, PlayedCard, PlayerSide, RoundOutcome
from photoduel.services.match_service import get_round_engine, start_match
from photoduel.services.match_store import MatchStore, StoredMatch, get_match_store
from photoduel.services.round_engine import RoundEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/game", tags=["game"])

NO_RATING_LABEL = "no rating available"


class StartMatchRequest(BaseModel):
    """Request model for starting a match."""

    player_id: str = Field(..., min_length=1, description="Player whose photos form the hands")


class PlayRoundRequest(BaseModel):
    """Request model for playing a round."""

    card_id: str = Field(..., min_length=1, description="Card chosen from the player's hand")


class HandCardResponse(BaseModel):
    """A card in the player's hand with its remaining plays."""

    card_id: str
    image_url: str
    caption: str | None = None
    effect: str | None = None
    stats: dict[str, int] = Field(default_factory=dict)
    times_played: int = 0
    plays_remaining: int = 0


class PlayedCardResponse(BaseModel):
    """One side of a resolved round."""

    played: bool
    card_id: str | None = None
    image_url: str | None = None
    caption: str | None = None
    effect: str | None = None
    value: int | None = Field(
        default=None,
        description="Value on the round's axis; null when no rating was available",
    )
    value_label: str = Field(..., description="Value for display, never a silent 0")


class RoundOutcomeResponse(BaseModel):
    """Response model for one resolved round."""

    round_number: int
    comparison_type: str
    comparison_detail: str | None = None
    player1: PlayedCardResponse
    player2: PlayedCardResponse
    winner: str
    score_change: dict[str, int]


class MatchResponse(BaseModel):
    """Response model for a match state."""

    match_id: str
    player_id: str
    status: str
    round_number: int
    round_cap: int
    score_to_win: int
    player1_score: int
    player2_score: int
    hand: list[HandCardResponse]
    opponent_cards_remaining: int
    winner: str | None = None
    last_outcome: RoundOutcomeResponse | None = None


class PlayRoundResponse(BaseModel):
    """Response model for a played round."""

    outcome: RoundOutcomeResponse
    match: MatchResponse


def _played_card_response(played: PlayedCard) -> PlayedCardResponse:
    card = played.card
    return PlayedCardResponse(
        played=played.was_played,
        card_id=played.card_id,
        image_url=card.image_url if card else None,
        caption=card.caption if card else None,
        effect=card.effect if card else None,
        value=played.value,
        value_label=str(played.value) if played.value is not None else NO_RATING_LABEL,
    )


def _outcome_response(outcome: RoundOutcome) -> RoundOutcomeResponse:
    return RoundOutcomeResponse(
        round_number=outcome.round_number,
        comparison_type=outcome.comparison_type.value,
        comparison_detail=outcome.comparison_detail,
        player1=_played_card_response(outcome.player1),
        player2=_played_card_response(outcome.player2),
        winner=outcome.winner.value,
        score_change=outcome.score_change,
    )


def _hand_card_response(card: Card, times_played: int, usage_cap: int) -> HandCardResponse:
    return HandCardResponse(
        card_id=card.card_id,
        image_url=card.image_url,
        caption=card.caption,
        effect=card.effect,
        stats=card.stats_dict(),
        times_played=times_played,
        plays_remaining=max(0, usage_cap - times_played),
    )


def _match_response(stored: StoredMatch, engine: RoundEngine) -> MatchResponse:
    state: MatchState = stored.state
    rules = engine.rules
    side = PlayerSide.PLAYER1
    return MatchResponse(
        match_id=stored.match_id,
        player_id=stored.player_id,
        status=state.status.value,
        round_number=state.round_number,
        round_cap=rules.round_cap,
        score_to_win=rules.score_to_win,
        player1_score=state.player1_score,
        player2_score=state.player2_score,
        hand=[
            _hand_card_response(card, state.usage_count(side, card.card_id), rules.usage_cap)
            for card in state.hand(side)
        ],
        opponent_cards_remaining=len(engine.playable_cards(state, side.opponent)),
        winner=state.winner.value if state.winner else None,
        last_outcome=_outcome_response(state.last_outcome) if state.last_outcome else None,
    )


@router.post("/start", response_model=MatchResponse)
async def start_game(
    request: StartMatchRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    engine: Annotated[RoundEngine, Depends(get_round_engine)],
    store: Annotated[MatchStore, Depends(get_match_store)],
) -> MatchResponse:
    """
    Start a match for a player.

    Deals the player's hand and the CPU's hand from the player's
    battle-ready photos. Fails with insufficient_cards when fewer than
    five are available.
    """
    state = await start_match(session, request.player_id, engine)
    stored = store.create(request.player_id, state)

    logger.info(
        "MATCH_STARTED",
        extra={"match_id": stored.match_id, "player_id": request.player_id},
    )
    return _match_response(stored, engine)


@router.get("/{match_id}", response_model=MatchResponse)
async def get_game(
    match_id: str,
    engine: Annotated[RoundEngine, Depends(get_round_engine)],
    store: Annotated[MatchStore, Depends(get_match_store)],
) -> MatchResponse:
    """Get the current state of a match."""
    return _match_response(store.get(match_id), engine)


@router.post("/{match_id}/rounds", response_model=PlayRoundResponse)
async def play_round(
    match_id: str,
    request: PlayRoundRequest,
    engine: Annotated[RoundEngine, Depends(get_round_engine)],
    store: Annotated[MatchStore, Depends(get_match_store)],
) -> PlayRoundResponse:
    """
    Play one round with the chosen card.

    The CPU answers with a card of its own and the round is scored on a
    randomly chosen stat or theme. Rejected choices leave the match
    unchanged.
    """
    async with store.locked(match_id) as stored:
        resolution = await engine.play_round(stored.state, request.card_id)
        stored.state = resolution.state

        return PlayRoundResponse(
            outcome=_outcome_response(resolution.outcome),
            match=_match_response(stored, engine),
        )
