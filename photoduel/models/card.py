from collections.abc import Mapping
from dataclasses import dataclass, field

# Fixed-stat axes pre-computed for every card, in display order
STAT_KEYS: tuple[str, ...] = ("beauty", "impact", "soothing", "uniqueness", "storytelling")


@dataclass(frozen=True, slots=True)
class Card:
    """
    An immutable snapshot of one photo eligible for play.

    Attributes:
        card_id: Identifier of the post image backing this card
        image_url: Location of the photo, rated by the vision model
        stats: (stat key, value) pairs on the 0..10 scale; absent keys read as 0
        effect: Short flavor effect generated for the card
        caption: Text of the post the photo belongs to
    """

    card_id: str
    image_url: str
    stats: tuple[tuple[str, int], ...] = field(default_factory=tuple)
    effect: str | None = None
    caption: str | None = None

    @classmethod
    def from_stats(
        cls,
        card_id: str,
        image_url: str,
        stats: Mapping[str, int | None] | None = None,
        effect: str | None = None,
        caption: str | None = None,
    ) -> "Card":
        """Build a card from a stat mapping, dropping null entries."""
        pairs = tuple(
            (key, int(value)) for key, value in (stats or {}).items() if value is not None
        )
        return cls(
            card_id=card_id,
            image_url=image_url,
            stats=pairs,
            effect=effect,
            caption=caption,
        )

    def stat(self, key: str) -> int:
        """Value of one stat axis, 0 when the card has no value for it."""
        for name, value in self.stats:
            if name == key:
                return value
        return 0

    def stats_dict(self) -> dict[str, int]:
        return dict(self.stats)
