import json
import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session

from app.services.knowledge_store import SqlMerchantKnowledgeStore
from cardmatch.merchants import derive_keywords, merchant_key
from cardmatch.models import MerchantRecord, MerchantType
from cardmatch.normalizer import normalize

logger = logging.getLogger(__name__)

SEED_MERCHANTS_PATH = Path(__file__).resolve().parent.parent / "data" / "seed_merchants.json"


def load_seed_merchants(path: Optional[Path] = None) -> List[MerchantRecord]:
    """Read the bundled well-known merchants as knowledge-store records."""
    with open(path or SEED_MERCHANTS_PATH, "r", encoding="utf-8") as f:
        entries = json.load(f)

    records = []
    for entry in entries:
        key = merchant_key(entry["raw_key"])
        records.append(
            MerchantRecord(
                raw_key=key,
                normalized_name=entry["normalized_name"],
                canonical_name=entry["normalized_name"],
                category=normalize(entry["category"]),
                subcategory=entry.get("subcategory"),
                confidence=entry["confidence"],
                keywords=derive_keywords(key, entry["normalized_name"]),
                merchant_type=MerchantType.SEED,
            )
        )
    return records


def seed_merchant_knowledge(db: Session, path: Optional[Path] = None) -> int:
    """Insert seed merchants that are not stored yet. Learned and corrected rows are kept."""
    inserted = SqlMerchantKnowledgeStore(db).insert_missing(load_seed_merchants(path))
    logger.info("Seeded %d merchants into the knowledge store", inserted)
    return inserted
