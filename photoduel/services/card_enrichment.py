"""
Card Enrichment: turns a posted photo into a battle-ready card.

For every fixed stat the vision model rates the photo on the oracle
scale; a stat that cannot be rated is stored as 0. The model also writes
a short flavor effect for the card. Once both are stored the card joins
its owner's eligible pool. A photo that cannot be downloaded fails the
whole enrichment and leaves the card out of the pool.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from photoduel.db.operations import get_card, save_card_enrichment
from photoduel.models.failure import FailureKind, KnownError
from photoduel.models.rules import DEFAULT_RULES, GameRules
from photoduel.services.rating_oracle import (
    ClaudeRatingOracle,
    EncodedImage,
    OracleFailure,
    VisionClient,
    rate_with_retries,
)

logger = logging.getLogger(__name__)

EFFECT_PROMPT = (
    "Write a card effect for a light-hearted board game that matches the mood "
    "of this photo. Keep it short and positive. Example: "
    "'Everyone bursts into smiles! All players recover a little HP.' "
    "Answer with the effect only."
)

EFFECT_FALLBACK = "Effect generation failed"


class CardNotFoundError(KnownError):
    """No card has the given identifier."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message="That photo card could not be found.",
            detail=f"card_id={card_id}",
            suggestion="Check the card id, or register the photo first.",
            status_code=404,
        )


class ImageUnavailableError(KnownError):
    """The card's photo could not be downloaded, so nothing was generated."""

    def __init__(self, card_id: str, reason: str | None = None):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.IMAGE_UNAVAILABLE,
            message="The photo for this card could not be loaded.",
            detail=f"card_id={card_id}" + (f" reason={reason}" if reason else ""),
            suggestion="Check that the photo is still online, then try again.",
            status_code=502,
        )


@dataclass
class EnrichmentResult:
    """Stats and effect generated for one card."""

    card_id: str
    stats: dict[str, int]
    effect: str
    unrated_stats: list[str] = field(default_factory=list)

    @property
    def effect_generated(self) -> bool:
        return self.effect != EFFECT_FALLBACK


async def generate_effect(vision: VisionClient, image: EncodedImage, attempts: int) -> str | None:
    """Ask the vision model for a card effect, retrying failures."""
    for attempt in range(1, attempts + 1):
        try:
            return await vision.ask(image, EFFECT_PROMPT)
        except OracleFailure as e:
            logger.warning(
                "EFFECT_ATTEMPT_FAILED",
                extra={"attempt": attempt, "attempts": attempts, "reason": str(e)},
            )
    return None


async def generate_card_traits(
    vision: VisionClient,
    card_id: str,
    image_url: str,
    rules: GameRules = DEFAULT_RULES,
) -> EnrichmentResult:
    """
    Rate every fixed stat of a photo and write its effect.

    The photo is downloaded once and reused for every question. Model
    failures never raise: unrated stats become 0 and a missing effect
    becomes EFFECT_FALLBACK.

    Raises:
        ImageUnavailableError: If the photo cannot be downloaded
    """
    try:
        image = await vision.fetch_image(image_url)
    except OracleFailure as e:
        logger.warning("CARD_IMAGE_UNAVAILABLE", extra={"card_id": card_id, "reason": str(e)})
        raise ImageUnavailableError(card_id, str(e)) from e

    oracle = ClaudeRatingOracle(vision, {image_url: image})
    scores = await asyncio.gather(
        *(
            rate_with_retries(
                oracle,
                image_url,
                rules.stat_prompt(stat_key),
                rules.score_scale,
                rules.oracle_attempts,
            )
            for stat_key in rules.stat_keys
        )
    )

    stats: dict[str, int] = {}
    unrated: list[str] = []
    for stat_key, score in zip(rules.stat_keys, scores, strict=True):
        if score is None:
            unrated.append(stat_key)
            stats[stat_key] = 0
        else:
            stats[stat_key] = score

    effect = await generate_effect(vision, image, rules.oracle_attempts)

    return EnrichmentResult(
        card_id=card_id,
        stats=stats,
        effect=effect or EFFECT_FALLBACK,
        unrated_stats=unrated,
    )


async def enrich_card(
    session: AsyncSession,
    card_id: str,
    vision: VisionClient,
    rules: GameRules = DEFAULT_RULES,
) -> EnrichmentResult:
    """
    Generate and store the stats and effect of a registered card.

    Nothing is stored when the photo cannot be downloaded.

    Raises:
        CardNotFoundError: If the card does not exist
        ImageUnavailableError: If the photo cannot be downloaded
    """
    db_card = await get_card(session, card_id)
    if db_card is None:
        raise CardNotFoundError(card_id)

    result = await generate_card_traits(vision, card_id, db_card.image_url, rules)
    await save_card_enrichment(session, card_id, result.stats, result.effect)

    logger.info(
        "CARD_ENRICHED",
        extra={
            "card_id": card_id,
            "unrated_stats": result.unrated_stats,
            "effect_generated": result.effect_generated,
        },
    )
    return result
