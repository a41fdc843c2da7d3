"""
Rating Oracle: scores a photo against a prompt with a vision model.

The round engine only depends on the RatingOracle protocol. The production
implementation downloads the photo with httpx and asks Claude for a
single integer rating.

INVARIANTS:
- A successful rating is an integer in 1..scale_max
- Anything else (transport error, refusal, prose, out of range) is an
  OracleFailure
- `rate_with_retries` never raises for oracle problems: any exception
  from the oracle costs one attempt, and exhaustion yields None, which
  callers surface as "no rating available"
"""

import base64
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import anthropic
import httpx
from anthropic.types import TextBlock

from photoduel.config import settings
from photoduel.models.failure import FailureKind, KnownError
from photoduel.models.rules import ORACLE_MAX_ATTEMPTS, ORACLE_SCORE_SCALE

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"

_LEADING_INT = re.compile(r"\s*(-?\d+)")


class OracleFailure(Exception):
    """One oracle call produced no usable rating. Internal only."""


@dataclass(frozen=True)
class EncodedImage:
    """A downloaded photo, base64-encoded for the vision model."""

    data: str
    media_type: str = DEFAULT_MEDIA_TYPE


class OracleUnavailableError(KnownError):
    """
    Raised when a feature that needs the vision model has no API key.

    Theme rounds do not raise this; they degrade to unrated values.
    """

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Photo rating is currently unavailable.",
            detail="ANTHROPIC_API_KEY is not configured",
            suggestion="Try again later.",
            status_code=503,
        )


class RatingOracle(Protocol):
    """Scores an image against a natural-language prompt."""

    async def rate(self, image_url: str, prompt: str, scale_max: int = ORACLE_SCORE_SCALE) -> int:
        """
        Rate an image.

        Returns:
            Integer score in 1..scale_max

        Raises:
            OracleFailure: If no valid score could be obtained
        """
        ...


def parse_rating(text: str, scale_max: int = ORACLE_SCORE_SCALE) -> int:
    """
    Extract a rating from model output.

    Accepts a leading integer ("7", " 7 ", "7/10"). Rejects prose and
    values outside 1..scale_max.

    Raises:
        OracleFailure: If the text holds no in-range leading integer
    """
    match = _LEADING_INT.match(text)
    if match is None:
        raise OracleFailure(f"Non-numeric rating: {text[:40]!r}")

    score = int(match.group(1))
    if not 1 <= score <= scale_max:
        raise OracleFailure(f"Rating {score} outside 1..{scale_max}")
    return score


class VisionClient:
    """
    Asks Claude questions about a photo.

    Shared by the rating oracle and card enrichment.
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str | None = None,
        max_tokens: int | None = None,
        image_timeout: float | None = None,
    ) -> None:
        """
        Initialize the vision client.

        Args:
            client: Configured async Anthropic client
            model: Model name. Defaults to settings.oracle_model.
            max_tokens: Response token ceiling. Defaults to settings.oracle_max_tokens.
            image_timeout: Image download timeout in seconds.
        """
        self.client = client
        self.model = model or settings.oracle_model
        self.max_tokens = max_tokens or settings.oracle_max_tokens
        self.image_timeout = image_timeout or settings.image_fetch_timeout

    async def fetch_image(self, image_url: str) -> EncodedImage:
        """
        Download an image and base64-encode it.

        Raises:
            OracleFailure: If the image cannot be downloaded
        """
        try:
            async with httpx.AsyncClient(timeout=self.image_timeout) as http:
                response = await http.get(image_url, follow_redirects=True)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise OracleFailure(f"Image fetch failed for {image_url}: {e}") from e

        content_type = response.headers.get("content-type", DEFAULT_MEDIA_TYPE)
        media_type = content_type.split(";")[0].strip() or DEFAULT_MEDIA_TYPE
        return EncodedImage(
            data=base64.b64encode(response.content).decode("ascii"),
            media_type=media_type,
        )

    async def ask(self, image: EncodedImage, prompt: str) -> str:
        """
        Send a fetched photo and a prompt to the model and return its text answer.

        Raises:
            OracleFailure: If the model call fails or the answer holds no text
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": image.media_type,
                                    "data": image.data,
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            raise OracleFailure(f"Vision model call failed: {type(e).__name__}") from e

        texts = [block.text for block in response.content if isinstance(block, TextBlock)]
        answer = "".join(texts).strip()
        if not answer:
            raise OracleFailure("Vision model returned no text")
        return answer


class ClaudeRatingOracle:
    """
    RatingOracle backed by a VisionClient.

    Photos found in `images` are rated without downloading them again;
    any other URL is fetched on every call.
    """

    def __init__(
        self, vision: VisionClient, images: Mapping[str, EncodedImage] | None = None
    ) -> None:
        self.vision = vision
        self.images = dict(images or {})

    async def rate(self, image_url: str, prompt: str, scale_max: int = ORACLE_SCORE_SCALE) -> int:
        image = self.images.get(image_url) or await self.vision.fetch_image(image_url)
        answer = await self.vision.ask(image, prompt)
        return parse_rating(answer, scale_max)


class UnavailableOracle:
    """RatingOracle used when no API key is configured. Every call fails."""

    async def rate(self, image_url: str, prompt: str, scale_max: int = ORACLE_SCORE_SCALE) -> int:
        raise OracleFailure("Rating oracle is not configured")


async def rate_with_retries(
    oracle: RatingOracle,
    image_url: str,
    prompt: str,
    scale_max: int = ORACLE_SCORE_SCALE,
    attempts: int = ORACLE_MAX_ATTEMPTS,
) -> int | None:
    """
    Rate an image, retrying failed or out-of-range answers.

    Args:
        oracle: The rating oracle
        image_url: Photo to rate
        prompt: Evaluation prompt
        scale_max: Upper bound of the rating scale
        attempts: Total calls allowed

    Returns:
        Score in 1..scale_max, or None once every attempt has failed
    """
    for attempt in range(1, attempts + 1):
        try:
            score = await oracle.rate(image_url, prompt, scale_max)
        except OracleFailure as e:
            logger.warning(
                "ORACLE_ATTEMPT_FAILED",
                extra={"attempt": attempt, "attempts": attempts, "reason": str(e)},
            )
            continue
        except Exception as e:
            # Any other oracle error also costs one attempt
            logger.warning(
                "ORACLE_ATTEMPT_FAILED",
                extra={"attempt": attempt, "attempts": attempts, "reason": type(e).__name__},
                exc_info=True,
            )
            continue

        if isinstance(score, int) and not isinstance(score, bool) and 1 <= score <= scale_max:
            return score

        logger.warning(
            "ORACLE_ATTEMPT_FAILED",
            extra={"attempt": attempt, "attempts": attempts, "reason": f"invalid score {score!r}"},
        )

    logger.error("ORACLE_EXHAUSTED", extra={"image_url": image_url, "attempts": attempts})
    return None


# Default instances
_vision_client: VisionClient | None = None


def get_vision_client() -> VisionClient:
    """
    Get the default vision client.

    Raises:
        OracleUnavailableError: If no Anthropic API key is configured
    """
    global _vision_client
    if not settings.anthropic_api_key:
        raise OracleUnavailableError()
    if _vision_client is None:
        _vision_client = VisionClient(anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key))
    return _vision_client


def get_rating_oracle() -> RatingOracle:
    """
    Get the default rating oracle.

    Falls back to UnavailableOracle when no API key is configured, so
    theme rounds still resolve (as unrated draws).
    """
    try:
        return ClaudeRatingOracle(get_vision_client())
    except OracleUnavailableError:
        logger.warning("ORACLE_NOT_CONFIGURED")
        return UnavailableOracle()


def reset_oracle_clients() -> None:
    """Drop cached clients (for testing)."""
    global _vision_client
    _vision_client = None
