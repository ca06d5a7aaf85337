"""
SQL-backed merchant knowledge store.

Implements the MerchantKnowledgeStore contract used by the merchant
categorizer. Writes are idempotent upserts keyed on the normalized merchant
key (INSERT ... ON CONFLICT DO UPDATE), so concurrent learners of the same
merchant increment one row instead of racing on an application lock.
"""

from __future__ import annotations

import logging
from datetime import datetime, UTC
from typing import List, Optional

from sqlalchemy import String, cast, exists, func, literal, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.models.merchant_intelligence import MerchantIntelligence
from app.services.errors import ServiceError
from cardmatch.categories import CanonicalCategory
from cardmatch.merchants import FUZZY_CANDIDATE_LIMIT
from cardmatch.models import MerchantRecord

logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _escape_like_sql(expr):
    """SQL-side counterpart of _escape_like for a column used as a LIKE pattern."""
    for char, escaped in (("\\", "\\\\"), ("%", "\\%"), ("_", "\\_")):
        expr = func.replace(expr, char, escaped, type_=String)
    return expr


class SqlMerchantKnowledgeStore:
    """
    Pattern: Constructor injection for database session (facilitates testing)

    Usage:
        store = SqlMerchantKnowledgeStore(db_session)
        record = store.find_exact("swiggy")
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def find_exact(self, raw_key: str) -> Optional[MerchantRecord]:
        row = (
            self.db.query(MerchantIntelligence)
            .filter(func.lower(MerchantIntelligence.merchant_raw) == raw_key.lower())
            .first()
        )
        return row.to_record() if row else None

    def find_fuzzy(self, raw_key: str, limit: int = FUZZY_CANDIDATE_LIMIT) -> List[MerchantRecord]:
        """Keyword membership, or substring either way against the normalized name."""
        key = raw_key.lower()
        normalized = func.lower(MerchantIntelligence.merchant_normalized, type_=String)

        rows = (
            self.db.query(MerchantIntelligence)
            .filter(MerchantIntelligence.category != CanonicalCategory.OTHER)
            .filter(
                or_(
                    self._keyword_match(key),
                    normalized.like(f"%{_escape_like(key)}%", escape="\\"),
                    literal(key, String).like(
                        literal("%", String).concat(_escape_like_sql(normalized)).concat("%"),
                        escape="\\",
                    ),
                )
            )
            .order_by(MerchantIntelligence.id)
            .limit(limit)
            .all()
        )
        return [row.to_record() for row in rows]

    def get(self, raw_key: str) -> Optional[MerchantRecord]:
        row = self.db.query(MerchantIntelligence).filter(MerchantIntelligence.merchant_raw == raw_key).first()
        return row.to_record() if row else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def record_hit(self, record: MerchantRecord) -> None:
        """Increment usage and refresh last-seen for a matched merchant."""
        self.db.query(MerchantIntelligence).filter(
            MerchantIntelligence.merchant_raw == record.raw_key
        ).update(
            {
                MerchantIntelligence.transaction_count: MerchantIntelligence.transaction_count + 1,
                MerchantIntelligence.last_seen_at: _utc_now_naive(),
            },
            synchronize_session=False,
        )
        self.db.commit()

    def upsert_learned(self, record: MerchantRecord) -> MerchantRecord:
        """Insert a learned merchant, or increment the existing row for the same key."""
        now = _utc_now_naive()
        stmt = self._insert()(MerchantIntelligence).values(**self._values(record, now))
        stmt = stmt.on_conflict_do_update(
            index_elements=[MerchantIntelligence.merchant_raw],
            set_={
                "transaction_count": MerchantIntelligence.transaction_count + 1,
                "last_seen_at": now,
                "updated_at": now,
            },
        )
        return self._execute(stmt, record.raw_key)

    def upsert_correction(self, record: MerchantRecord) -> MerchantRecord:
        """Insert or overwrite a merchant with a user-verified category."""
        now = _utc_now_naive()
        stmt = self._insert()(MerchantIntelligence).values(
            **self._values(record, now), last_verified_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[MerchantIntelligence.merchant_raw],
            set_={
                "merchant_normalized": stmt.excluded.merchant_normalized,
                "merchant_canonical": stmt.excluded.merchant_canonical,
                "category": stmt.excluded.category,
                "subcategory": stmt.excluded.subcategory,
                "confidence_score": stmt.excluded.confidence_score,
                "merchant_type": stmt.excluded.merchant_type,
                "keywords": stmt.excluded.keywords,
                "last_verified_at": now,
                "updated_at": now,
            },
        )
        return self._execute(stmt, record.raw_key)

    def insert_missing(self, records: List[MerchantRecord]) -> int:
        """Insert seed merchants whose key is not stored yet; existing rows are left alone."""
        now = _utc_now_naive()
        inserted = 0
        for record in records:
            stmt = self._insert()(MerchantIntelligence).values(**self._values(record, now))
            stmt = stmt.on_conflict_do_nothing(index_elements=[MerchantIntelligence.merchant_raw])
            inserted += self.db.execute(stmt).rowcount or 0
        self.db.commit()
        return inserted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _keyword_match(self, key: str):
        """Exact membership of `key` in the keywords JSON array."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return cast(MerchantIntelligence.keywords, postgresql.JSONB).contains([key])
        keyword = func.json_each(MerchantIntelligence.keywords).table_valued("value")
        return exists(select(1).select_from(keyword).where(keyword.c.value == key))

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise ServiceError(
            500,
            "UNSUPPORTED_DATABASE",
            "Merchant knowledge store requires PostgreSQL or SQLite.",
            {"dialect": dialect},
        )

    @staticmethod
    def _values(record: MerchantRecord, now: datetime) -> dict:
        return {
            "merchant_raw": record.raw_key,
            "merchant_normalized": record.normalized_name,
            "merchant_canonical": record.canonical_name,
            "category": record.category,
            "subcategory": record.subcategory,
            "confidence_score": record.confidence,
            "transaction_count": record.usage_count,
            "keywords": sorted(record.keywords),
            "merchant_type": record.merchant_type,
            "last_seen_at": now,
        }

    def _execute(self, stmt, raw_key: str) -> MerchantRecord:
        self.db.execute(stmt)
        self.db.commit()
        stored = self.get(raw_key)
        logger.debug("Upserted merchant %r", raw_key)
        return stored
