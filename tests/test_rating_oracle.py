"""Tests for the rating oracle and vision client."""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest
import respx
from anthropic.types import TextBlock

from photoduel.models.failure import FailureKind
from photoduel.services.rating_oracle import (
    ClaudeRatingOracle,
    EncodedImage,
    OracleFailure,
    OracleUnavailableError,
    UnavailableOracle,
    VisionClient,
    get_rating_oracle,
    get_vision_client,
    parse_rating,
    rate_with_retries,
)

IMAGE_URL = "https://img.example.com/photo.jpg"
IMAGE = EncodedImage(data="anBlZw==", media_type="image/jpeg")


def _text_response(text: str) -> MagicMock:
    block = MagicMock(spec=TextBlock)
    block.text = text
    response = MagicMock()
    response.content = [block]
    return response


@pytest.fixture
def anthropic_client() -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_text_response("7"))
    return client


@pytest.fixture
def vision(anthropic_client: MagicMock) -> VisionClient:
    return VisionClient(anthropic_client, model="test-model", max_tokens=10, image_timeout=5.0)


class FlakyOracle:
    """Oracle failing a fixed number of times before answering."""

    def __init__(self, failures: int, score: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.score = score
        self.error = error or OracleFailure("flaky")
        self.calls = 0

    async def rate(self, image_url: str, prompt: str, scale_max: int = 10) -> int:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.score


class TestParseRating:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("7", 7), (" 10 ", 10), ("1", 1), ("8/10", 8), ("6.", 6)],
    )
    def test_valid_ratings(self, text: str, expected: int) -> None:
        assert parse_rating(text) == expected

    @pytest.mark.parametrize("text", ["", "seven", "Rating: 7", "0", "11", "-3"])
    def test_invalid_ratings(self, text: str) -> None:
        with pytest.raises(OracleFailure):
            parse_rating(text)

    def test_custom_scale(self) -> None:
        assert parse_rating("80", scale_max=100) == 80
        with pytest.raises(OracleFailure):
            parse_rating("6", scale_max=5)


class TestVisionClient:
    @respx.mock
    async def test_fetch_image_encodes_photo(self, vision: VisionClient) -> None:
        """The photo is base64-encoded with its media type."""
        respx.get(IMAGE_URL).mock(
            return_value=httpx.Response(
                200, content=b"\x89PNG", headers={"content-type": "image/png; charset=binary"}
            )
        )

        image = await vision.fetch_image(IMAGE_URL)

        assert image == EncodedImage(data="iVBORw==", media_type="image/png")

    @respx.mock
    async def test_default_media_type(self, vision: VisionClient) -> None:
        """Missing content type falls back to JPEG."""
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(200, content=b"jpeg"))

        image = await vision.fetch_image(IMAGE_URL)

        assert image.media_type == "image/jpeg"

    @respx.mock
    async def test_image_fetch_error(self, vision: VisionClient) -> None:
        """A failed download is an oracle failure, not a crash."""
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(404))

        with pytest.raises(OracleFailure, match="Image fetch failed"):
            await vision.fetch_image(IMAGE_URL)

    @respx.mock
    async def test_invalid_url(self, vision: VisionClient) -> None:
        respx.get(IMAGE_URL).mock(side_effect=httpx.InvalidURL("bad host"))

        with pytest.raises(OracleFailure, match="Image fetch failed"):
            await vision.fetch_image(IMAGE_URL)

    async def test_ask_sends_image_and_prompt(
        self, vision: VisionClient, anthropic_client: MagicMock
    ) -> None:
        """The fetched photo is sent alongside the prompt."""
        answer = await vision.ask(EncodedImage(data="iVBORw==", media_type="image/png"), "Rate it")

        assert answer == "7"
        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 10
        content = kwargs["messages"][0]["content"]
        assert content[0]["source"] == {
            "type": "base64",
            "media_type": "image/png",
            "data": "iVBORw==",
        }
        assert content[1] == {"type": "text", "text": "Rate it"}

    async def test_api_error(self, vision: VisionClient, anthropic_client: MagicMock) -> None:
        """Anthropic API errors become oracle failures."""
        anthropic_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        with pytest.raises(OracleFailure, match="APIConnectionError"):
            await vision.ask(IMAGE, "Rate it")

    async def test_empty_answer(self, vision: VisionClient, anthropic_client: MagicMock) -> None:
        """A response without text is an oracle failure."""
        anthropic_client.messages.create.return_value = MagicMock(content=[])

        with pytest.raises(OracleFailure, match="no text"):
            await vision.ask(IMAGE, "Rate it")


class TestClaudeRatingOracle:
    @respx.mock
    async def test_rate_parses_answer(self, vision: VisionClient) -> None:
        route = respx.get(IMAGE_URL).mock(return_value=httpx.Response(200, content=b"jpeg"))

        score = await ClaudeRatingOracle(vision).rate(IMAGE_URL, "Rate it")

        assert score == 7
        assert route.call_count == 1

    @respx.mock
    async def test_known_image_not_downloaded(
        self, vision: VisionClient, anthropic_client: MagicMock
    ) -> None:
        """A photo handed to the oracle up front is reused as is."""
        oracle = ClaudeRatingOracle(vision, {IMAGE_URL: IMAGE})

        assert await oracle.rate(IMAGE_URL, "Rate it") == 7
        assert await oracle.rate(IMAGE_URL, "Rate it again") == 7

        assert len(respx.calls) == 0
        source = anthropic_client.messages.create.call_args.kwargs["messages"][0]["content"][0]
        assert source["source"]["data"] == IMAGE.data

    async def test_rate_rejects_prose(
        self, vision: VisionClient, anthropic_client: MagicMock
    ) -> None:
        anthropic_client.messages.create.return_value = _text_response("I can't rate this.")

        with pytest.raises(OracleFailure):
            await ClaudeRatingOracle(vision, {IMAGE_URL: IMAGE}).rate(IMAGE_URL, "Rate it")


class TestRateWithRetries:
    async def test_first_attempt_succeeds(self) -> None:
        oracle = FlakyOracle(failures=0, score=4)

        assert await rate_with_retries(oracle, IMAGE_URL, "p") == 4
        assert oracle.calls == 1

    async def test_recovers_within_budget(self) -> None:
        oracle = FlakyOracle(failures=2, score=9)

        assert await rate_with_retries(oracle, IMAGE_URL, "p") == 9
        assert oracle.calls == 3

    async def test_exhaustion_returns_none(self) -> None:
        """Three failures exhaust the budget; no exception escapes."""
        oracle = FlakyOracle(failures=5, score=9)

        assert await rate_with_retries(oracle, IMAGE_URL, "p") is None
        assert oracle.calls == 3

    async def test_custom_attempts(self) -> None:
        oracle = FlakyOracle(failures=5, score=9)

        assert await rate_with_retries(oracle, IMAGE_URL, "p", attempts=1) is None
        assert oracle.calls == 1

    async def test_out_of_range_counts_as_failure(self) -> None:
        oracle = FlakyOracle(failures=0, score=42)

        assert await rate_with_retries(oracle, IMAGE_URL, "p") is None
        assert oracle.calls == 3

    async def test_unavailable_oracle_degrades(self) -> None:
        assert await rate_with_retries(UnavailableOracle(), IMAGE_URL, "p") is None

    async def test_unexpected_error_costs_one_attempt(self) -> None:
        """Errors other than OracleFailure are retried like any failure."""
        oracle = FlakyOracle(failures=2, score=6, error=httpx.InvalidURL("bad host"))

        assert await rate_with_retries(oracle, IMAGE_URL, "p") == 6
        assert oracle.calls == 3

    async def test_unexpected_errors_exhaust_to_none(self) -> None:
        oracle = FlakyOracle(failures=5, score=6, error=RuntimeError("boom"))

        assert await rate_with_retries(oracle, IMAGE_URL, "p") is None
        assert oracle.calls == 3


class TestDefaultClients:
    def test_missing_key_raises_unavailable(self) -> None:
        with patch("photoduel.services.rating_oracle.settings") as mock_settings:
            mock_settings.anthropic_api_key = ""

            with pytest.raises(OracleUnavailableError) as exc_info:
                get_vision_client()

        assert exc_info.value.status_code == 503
        assert exc_info.value.kind == FailureKind.SERVICE_UNAVAILABLE

    def test_missing_key_falls_back_to_unavailable_oracle(self) -> None:
        with patch("photoduel.services.rating_oracle.settings") as mock_settings:
            mock_settings.anthropic_api_key = ""

            oracle = get_rating_oracle()

        assert isinstance(oracle, UnavailableOracle)

    def test_configured_key_builds_claude_oracle(self) -> None:
        with (
            patch("photoduel.services.rating_oracle.settings") as mock_settings,
            patch("photoduel.services.rating_oracle.anthropic.AsyncAnthropic") as mock_anthropic,
        ):
            mock_settings.anthropic_api_key = "test-key"
            mock_settings.oracle_model = "test-model"
            mock_settings.oracle_max_tokens = 10
            mock_settings.image_fetch_timeout = 5.0

            oracle = get_rating_oracle()

        assert isinstance(oracle, ClaudeRatingOracle)
        mock_anthropic.assert_called_once_with(api_key="test-key")
