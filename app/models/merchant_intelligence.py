from datetime import datetime, UTC

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Float, Integer, String
from sqlalchemy import Enum as SAEnum

from app.db.db import Base
from cardmatch.categories import CanonicalCategory
from cardmatch.models import MerchantRecord, MerchantType


def _utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


# SQLAlchemy ORM Model
class MerchantIntelligence(Base):
    __tablename__ = "merchant_intelligence"

    id = Column(Integer, primary_key=True, index=True)
    merchant_raw = Column(String(255), nullable=False, unique=True, index=True)
    merchant_normalized = Column(String(255), nullable=False)
    merchant_canonical = Column(String(255), nullable=True)
    category = Column(SAEnum(CanonicalCategory, values_callable=lambda e: [m.value for m in e]), nullable=False)
    subcategory = Column(String(255), nullable=True)
    confidence_score = Column(Float, nullable=False, default=0.0)
    transaction_count = Column(Integer, nullable=False, default=0)
    keywords = Column(JSON, nullable=False, default=list)
    merchant_type = Column(
        SAEnum(MerchantType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MerchantType.SEED,
    )
    last_seen_at = Column(DateTime, nullable=True)
    last_verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=_utc_now_naive, onupdate=_utc_now_naive, nullable=False)

    # Table-level constraints
    __table_args__ = (
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_merchant_confidence_range",
        ),
        CheckConstraint("transaction_count >= 0", name="ck_merchant_transaction_count_non_negative"),
    )

    def to_record(self) -> MerchantRecord:
        """Convert the ORM row to the engine's MerchantRecord."""
        return MerchantRecord(
            raw_key=self.merchant_raw,
            normalized_name=self.merchant_normalized,
            canonical_name=self.merchant_canonical,
            category=self.category,
            subcategory=self.subcategory,
            confidence=self.confidence_score,
            usage_count=self.transaction_count,
            keywords=set(self.keywords or []),
            merchant_type=self.merchant_type,
            last_seen_at=self.last_seen_at,
        )
