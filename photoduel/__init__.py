"""PhotoDuel - turn-based photo card battles."""
