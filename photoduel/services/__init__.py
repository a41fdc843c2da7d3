"""
PhotoDuel services.

Game logic for dealing hands, resolving rounds and enriching cards.
"""

from photoduel.services.card_enrichment import (
    CardNotFoundError,
    EnrichmentResult,
    ImageUnavailableError,
    enrich_card,
    generate_card_traits,
)
from photoduel.services.hand_assembler import InsufficientCardsError, assemble_hand
from photoduel.services.match_service import get_round_engine, start_match
from photoduel.services.match_store import (
    MatchNotFoundError,
    MatchStore,
    StoredMatch,
    get_match_store,
)
from photoduel.services.random_source import (
    RandomSource,
    SeededRandomSource,
    SystemRandomSource,
)
from photoduel.services.rating_oracle import (
    ClaudeRatingOracle,
    EncodedImage,
    OracleFailure,
    OracleUnavailableError,
    RatingOracle,
    VisionClient,
    get_rating_oracle,
    get_vision_client,
    parse_rating,
    rate_with_retries,
)
from photoduel.services.round_engine import (
    CardNotInHandError,
    CardUsageLimitExceededError,
    MatchAlreadyOverError,
    RoundEngine,
    RoundResolution,
    decide_match_winner,
    decide_round_winner,
)

__all__ = [
    # Hand assembly
    "InsufficientCardsError",
    "assemble_hand",
    # Round engine
    "CardNotInHandError",
    "CardUsageLimitExceededError",
    "MatchAlreadyOverError",
    "RoundEngine",
    "RoundResolution",
    "decide_match_winner",
    "decide_round_winner",
    # Randomness
    "RandomSource",
    "SeededRandomSource",
    "SystemRandomSource",
    # Rating oracle
    "ClaudeRatingOracle",
    "EncodedImage",
    "OracleFailure",
    "OracleUnavailableError",
    "RatingOracle",
    "VisionClient",
    "get_rating_oracle",
    "get_vision_client",
    "parse_rating",
    "rate_with_retries",
    # Matches
    "MatchNotFoundError",
    "MatchStore",
    "StoredMatch",
    "get_match_store",
    "get_round_engine",
    "start_match",
    # Enrichment
    "CardNotFoundError",
    "EnrichmentResult",
    "ImageUnavailableError",
    "enrich_card",
    "generate_card_traits",
]
