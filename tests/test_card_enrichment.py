"""Tests for card enrichment."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photoduel.db.database import build_engine, init_db
from photoduel.db.operations import get_card, get_eligible_cards, upsert_card
from photoduel.models.db import Base
from photoduel.models.failure import FailureKind
from photoduel.models.rules import GameRules
from photoduel.services.card_enrichment import (
    EFFECT_FALLBACK,
    EFFECT_PROMPT,
    CardNotFoundError,
    ImageUnavailableError,
    enrich_card,
    generate_card_traits,
)
from photoduel.services.rating_oracle import EncodedImage, OracleFailure, VisionClient

IMAGE_URL = "https://img.example.com/photo.jpg"
IMAGE = EncodedImage(data="anBlZw==", media_type="image/jpeg")


def _vision(answers: dict[str, list[str | Exception]]) -> MagicMock:
    """Vision client answering by prompt keyword; unmatched prompts fail."""

    async def ask(image: EncodedImage, prompt: str) -> str:
        for keyword, queue in answers.items():
            if keyword in prompt and queue:
                result = queue.pop(0)
                if isinstance(result, Exception):
                    raise result
                return result
        raise OracleFailure("no scripted answer")

    vision = MagicMock()
    vision.fetch_image = AsyncMock(return_value=IMAGE)
    vision.ask = AsyncMock(side_effect=ask)
    return vision


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncSession:
    """Provide a database session for tests."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


class TestGenerateCardTraits:
    async def test_all_stats_rated(self) -> None:
        """Every stat is rated and the effect is stored verbatim."""
        vision = _vision(
            {
                '"beauty"': ["8"],
                '"impact"': ["6"],
                '"soothing"': ["3"],
                '"uniqueness"': ["10"],
                '"storytelling"': ["1"],
                "card effect": ["Sunshine! Everyone draws a card."],
            }
        )

        result = await generate_card_traits(vision, "img-1", IMAGE_URL)

        assert result.stats == {
            "beauty": 8,
            "impact": 6,
            "soothing": 3,
            "uniqueness": 10,
            "storytelling": 1,
        }
        assert result.effect == "Sunshine! Everyone draws a card."
        assert result.unrated_stats == []
        assert result.effect_generated is True

    async def test_unrated_stat_stored_as_zero(self) -> None:
        """A stat the model cannot rate becomes 0."""
        vision = _vision(
            {
                '"beauty"': ["8"],
                '"impact"': ["lots", "very", "much"],
                '"soothing"': ["3"],
                '"uniqueness"': ["4"],
                '"storytelling"': ["5"],
                "card effect": ["Calm waters."],
            }
        )

        result = await generate_card_traits(vision, "img-1", IMAGE_URL)

        assert result.stats["impact"] == 0
        assert result.unrated_stats == ["impact"]

    async def test_effect_fallback(self) -> None:
        """Effect failures fall back to the fixed text after all attempts."""
        vision = _vision({"Rate": ["5"] * 5})

        result = await generate_card_traits(vision, "img-1", IMAGE_URL)

        assert result.effect == EFFECT_FALLBACK
        assert result.effect_generated is False
        effect_calls = [c for c in vision.ask.call_args_list if c.args[1] == EFFECT_PROMPT]
        assert len(effect_calls) == 3

    async def test_effect_retry_recovers(self) -> None:
        vision = _vision(
            {"Rate": ["5"] * 5, "card effect": [OracleFailure("busy"), "Rainbow bonus!"]}
        )

        result = await generate_card_traits(vision, "img-1", IMAGE_URL)

        assert result.effect == "Rainbow bonus!"

    async def test_image_downloaded_once(self) -> None:
        """Every question about the photo reuses one download."""
        vision = _vision({"Rate": ["5"] * 5, "card effect": ["Go!"]})

        await generate_card_traits(vision, "img-1", IMAGE_URL)

        vision.fetch_image.assert_awaited_once_with(IMAGE_URL)
        assert vision.ask.await_count == 6
        assert all(c.args[0] is IMAGE for c in vision.ask.call_args_list)

    async def test_rules_stat_keys(self) -> None:
        """Only the configured stats are rated."""
        rules = GameRules(stat_keys=("beauty", "impact"))
        vision = _vision({"Rate": ["5", "6"], "card effect": ["Go!"]})

        result = await generate_card_traits(vision, "img-1", IMAGE_URL, rules)

        assert set(result.stats) == {"beauty", "impact"}


class TestEnrichCard:
    async def test_enrich_makes_card_eligible(self, session: AsyncSession) -> None:
        """Stored stats and effect make the card battle-ready."""
        await upsert_card(session, "img-1", "user-1", IMAGE_URL)
        vision = _vision({"Rate": ["7"] * 5, "card effect": ["Cheers all round."]})

        result = await enrich_card(session, "img-1", vision)
        await session.commit()

        db_card = await get_card(session, "img-1")
        assert db_card is not None
        assert db_card.stats == result.stats
        assert db_card.effect_description == "Cheers all round."
        eligible = await get_eligible_cards(session, "user-1")
        assert [c.card_id for c in eligible] == ["img-1"]

    async def test_enrich_unknown_card(self, session: AsyncSession) -> None:
        vision = _vision({})

        with pytest.raises(CardNotFoundError) as exc_info:
            await enrich_card(session, "missing", vision)

        assert exc_info.value.status_code == 404
        assert exc_info.value.kind == FailureKind.NOT_FOUND
        vision.ask.assert_not_called()

    @respx.mock
    async def test_unreachable_image_leaves_card_ineligible(self, session: AsyncSession) -> None:
        """A photo that cannot be downloaded stores nothing and asks nothing."""
        await upsert_card(session, "img-1", "user-1", IMAGE_URL)
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(404))
        anthropic_client = MagicMock()
        anthropic_client.messages.create = AsyncMock()
        vision = VisionClient(anthropic_client, model="test-model", max_tokens=10)

        with pytest.raises(ImageUnavailableError) as exc_info:
            await enrich_card(session, "img-1", vision)

        assert exc_info.value.status_code == 502
        assert exc_info.value.kind == FailureKind.IMAGE_UNAVAILABLE
        anthropic_client.messages.create.assert_not_awaited()
        db_card = await get_card(session, "img-1")
        assert db_card is not None
        assert db_card.stats is None
        assert db_card.effect_description is None
        assert await get_eligible_cards(session, "user-1") == []
