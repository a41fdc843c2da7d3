from photoduel.models.card import STAT_KEYS, Card
from photoduel.models.failure import (
    STANDARD_MESSAGES,
    STANDARD_SUGGESTIONS,
    ApiResponse,
    FailureDetail,
    FailureKind,
    KnownError,
    OutcomeType,
    create_unknown_failure,
    finalize_response,
)
from photoduel.models.match import (
    ComparisonType,
    Hand,
    MatchState,
    MatchStatus,
    PlayedCard,
    PlayerSide,
    RoundOutcome,
    Winner,
)
from photoduel.models.rules import DEFAULT_RULES, THEME_CATALOG, GameRules

__all__ = [
    "ApiResponse",
    "Card",
    "ComparisonType",
    "DEFAULT_RULES",
    "FailureDetail",
    "FailureKind",
    "GameRules",
    "Hand",
    "KnownError",
    "MatchState",
    "MatchStatus",
    "OutcomeType",
    "PlayedCard",
    "PlayerSide",
    "RoundOutcome",
    "STANDARD_MESSAGES",
    "STANDARD_SUGGESTIONS",
    "STAT_KEYS",
    "THEME_CATALOG",
    "Winner",
    "create_unknown_failure",
    "finalize_response",
]
