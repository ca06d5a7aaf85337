import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from app.services.errors import ServiceError
from cardmatch.models import CardFeatures

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "card_catalog.json"

_catalog_adapter = TypeAdapter(List[CardFeatures])


class CatalogService:
    """Read-only card catalog loaded from a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or os.getenv("CARD_CATALOG_PATH") or DEFAULT_CATALOG_PATH)
        self._cards: Optional[List[CardFeatures]] = None

    def get_catalog(self) -> List[CardFeatures]:
        """All catalog cards, in file order. Loaded once per service instance."""
        if self._cards is None:
            self._cards = self._load()
        return self._cards

    def get_card(self, card_id: str) -> CardFeatures:
        for card in self.get_catalog():
            if card.card_id == card_id:
                return card
        raise ServiceError(404, "NOT_FOUND", f"card_id '{card_id}' not found.", {"card_id": card_id})

    def _load(self) -> List[CardFeatures]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Card catalog not readable at %s: %s", self.path, e)
            raise ServiceError(500, "CATALOG_UNAVAILABLE", "Card catalog could not be loaded.", {"path": str(self.path)})

        try:
            cards = _catalog_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error("Card catalog at %s is invalid: %s", self.path, e)
            raise ServiceError(
                500,
                "CATALOG_INVALID",
                "Card catalog failed validation.",
                {"path": str(self.path), "errors": json.loads(e.json())},
            )

        logger.info("Loaded %d cards from %s", len(cards), self.path)
        return cards
