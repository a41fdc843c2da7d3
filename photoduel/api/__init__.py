from photoduel.api.cards import router as cards_router
from photoduel.api.game import router as game_router
from photoduel.api.health import router as health_router

__all__ = [
    "cards_router",
    "game_router",
    "health_router",
]
