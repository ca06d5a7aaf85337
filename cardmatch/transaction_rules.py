"""
Shared transaction inclusion rules.
Deterministic predicates used before any spend aggregation.
"""

from typing import Iterable, List

from cardmatch.models import Transaction

TRANSFER_PATTERNS = (
    "transfer",
    "wallet top",
    "paytm wallet",
    "phonepe wallet",
    "google pay",
    "upi transfer",
)

FAILED_PATTERNS = ("failed", "declined")

FEE_PATTERNS = (
    "late fee",
    "annual fee",
    "interest",
    "finance charge",
    "overlimit fee",
    "service charge",
)


def include_in_spending(txn: Transaction) -> bool:
    """
    Decide whether a transaction counts towards spend.

    Rules:
    - Credits (refunds, income, reversals) are excluded
    - Zero or negative amounts are excluded
    - Wallet top-ups and transfers are excluded
    - Failed or declined attempts are excluded
    """
    if (txn.transaction_type or "debit").strip().lower() == "credit":
        return False
    if txn.amount <= 0:
        return False

    merchant = (txn.merchant or "").lower()
    if any(pattern in merchant for pattern in TRANSFER_PATTERNS):
        return False
    if any(pattern in merchant for pattern in FAILED_PATTERNS):
        return False
    return True


def is_fee_or_interest(txn: Transaction) -> bool:
    """True for card fees and interest charges (avoidable charges, not discretionary spend)."""
    merchant = (txn.merchant or "").lower()
    category = (txn.category or "").lower()
    return any(pattern in merchant or pattern in category for pattern in FEE_PATTERNS)


def spending_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    return [txn for txn in transactions if include_in_spending(txn) and not is_fee_or_interest(txn)]
