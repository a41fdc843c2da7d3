"""
Game Rules: every tunable constant of a card battle in one value object.

The engine never reads module-level constants directly; it is constructed
with a GameRules instance so rule variants can be exercised in tests.
"""

from dataclasses import dataclass

from photoduel.models.card import STAT_KEYS

THEME_CATALOG: tuple[str, ...] = (
    "joy",
    "tranquility",
    "excitement",
    "stillness",
    "liveliness",
    "mystery",
    "everyday life",
    "spring",
    "summer",
    "autumn",
    "winter",
    "water",
    "sky",
    "light",
    "sunset",
    "hope",
    "challenge",
    "change",
    "connection",
    "freedom",
)

ORACLE_SCORE_SCALE = 10
ORACLE_MAX_ATTEMPTS = 3
HAND_SIZE = 5
USAGE_CAP = 2
SCORE_TO_WIN = 3
ROUND_CAP = 5


@dataclass(frozen=True)
class GameRules:
    """
    Constants governing a match.

    Attributes:
        stat_keys: Fixed-stat axes a round may compare
        themes: Theme labels a round may ask the oracle about
        score_scale: Upper bound of the oracle's 1..N rating scale
        oracle_attempts: Oracle calls allowed per rating before giving up
        hand_size: Cards dealt to each player
        usage_cap: Times one card may be played by its owner per match
        score_to_win: Round wins that end the match immediately
        round_cap: Last round number; the match ends once it is played
        fixed_stat_probability: Chance a round compares a fixed stat
    """

    stat_keys: tuple[str, ...] = STAT_KEYS
    themes: tuple[str, ...] = THEME_CATALOG
    score_scale: int = ORACLE_SCORE_SCALE
    oracle_attempts: int = ORACLE_MAX_ATTEMPTS
    hand_size: int = HAND_SIZE
    usage_cap: int = USAGE_CAP
    score_to_win: int = SCORE_TO_WIN
    round_cap: int = ROUND_CAP
    fixed_stat_probability: float = 0.5

    def __post_init__(self) -> None:
        if not self.stat_keys:
            raise ValueError("GameRules requires at least one stat key")
        if not self.themes:
            raise ValueError("GameRules requires at least one theme")
        if self.oracle_attempts < 1:
            raise ValueError("oracle_attempts must be at least 1")
        if not 0.0 <= self.fixed_stat_probability <= 1.0:
            raise ValueError("fixed_stat_probability must be between 0 and 1")

    def theme_prompt(self, theme: str) -> str:
        """Prompt asking the oracle how strongly a photo evokes a theme."""
        return (
            f'How strongly does this photo evoke "{theme}"? '
            f"Rate it from 1 to {self.score_scale}. Answer with the number only."
        )

    def stat_prompt(self, stat_key: str) -> str:
        """Prompt asking the oracle to rate one fixed stat of a photo."""
        return (
            f'Rate the "{stat_key}" of this photo on a scale of 1 to {self.score_scale}. '
            "Answer with the number only."
        )


DEFAULT_RULES = GameRules()
