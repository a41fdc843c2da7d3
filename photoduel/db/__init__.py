from photoduel.db.database import get_session, init_db
from photoduel.db.operations import (
    card_to_model,
    delete_card,
    get_card,
    get_cards_by_owner,
    get_eligible_cards,
    save_card_enrichment,
    upsert_card,
)

__all__ = [
    "card_to_model",
    "delete_card",
    "get_card",
    "get_cards_by_owner",
    "get_eligible_cards",
    "get_session",
    "init_db",
    "save_card_enrichment",
    "upsert_card",
]
