from collections.abc import Callable

import pytest

from photoduel.models.card import Card
from photoduel.services.match_service import reset_round_engine
from photoduel.services.match_store import reset_match_store
from photoduel.services.rating_oracle import reset_oracle_clients


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop cached engine, store and clients so tests never share matches."""
    reset_match_store()
    reset_round_engine()
    reset_oracle_clients()
    yield
    reset_match_store()
    reset_round_engine()
    reset_oracle_clients()


@pytest.fixture
def make_card() -> Callable[..., Card]:
    """Factory for cards with a given id and stats."""

    def _make(card_id: str, **stats: int) -> Card:
        return Card.from_stats(
            card_id=card_id,
            image_url=f"https://img.example.com/{card_id}.jpg",
            stats=stats,
            effect=f"{card_id} brightens the table.",
            caption=f"Post {card_id}",
        )

    return _make


@pytest.fixture
def card_pool(make_card: Callable[..., Card]) -> list[Card]:
    """Eight battle-ready cards with distinct stats."""
    return [
        make_card(
            f"card-{i}",
            beauty=i,
            impact=10 - i,
            soothing=5,
            uniqueness=i % 3,
            storytelling=7,
        )
        for i in range(1, 9)
    ]
