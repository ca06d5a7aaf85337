"""
Command-line interface for the CardMatch recommendation engine.
Reads a statement CSV, derives the user's feature vector and ranks catalog cards.
"""

import argparse
import csv
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List

from pydantic import ValidationError

from app.services.catalog_service import CatalogService
from app.services.errors import ServiceError
from cardmatch.categories import CANONICAL_CATEGORIES, display_name
from cardmatch.config import RecommendationMode, resolve_weights
from cardmatch.features import derive
from cardmatch.models import SelfReportedEstimate, Transaction, UserPreferences, UserProfile
from cardmatch.ranker import rank


CSV_HEADERS = ["date", "category", "amount", "merchant", "transaction_type"]


def load_transactions(path: Path) -> List[Transaction]:
    """
    Load statement lines from a CSV file.

    Returns:
        List of Transaction objects (empty if the file does not exist)
    """
    transactions = []

    if not path.exists():
        return transactions

    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            txn = Transaction(
                date=datetime.strptime(row["date"], "%Y-%m-%d").date(),
                category=row.get("category") or None,
                amount=float(row["amount"]),
                merchant=row.get("merchant") or None,
                transaction_type=row.get("transaction_type") or "debit",
            )
            transactions.append(txn)

    return transactions


def _parse_split(values: List[str]) -> dict:
    """Parse repeated LABEL=PERCENT pairs, e.g. --split Dining=35."""
    split = {}
    for value in values or []:
        label, sep, amount = value.partition("=")
        if not sep:
            print(f"Error: Invalid split '{value}'. Expected LABEL=PERCENT.")
            sys.exit(1)
        try:
            split[label.strip()] = float(amount)
        except ValueError:
            print(f"Error: Invalid percentage in '{value}'.")
            sys.exit(1)
    return split


def _build_inputs(args):
    profile = UserProfile(
        income_band=args.income,
        age_range=args.age,
        city=args.city,
        pay_in_full_habit=args.pay_in_full,
    )
    preferences = UserPreferences(
        fee_tolerance_band=args.fee_band,
        fee_sensitivity=args.fee_sensitivity,
        travel_frequency=args.travel,
        lounge_importance=args.lounge,
    )

    transactions = []
    if args.csv:
        csv_path = Path(args.csv)
        if not csv_path.exists():
            print(f"Error: Statement file '{csv_path}' not found.")
            sys.exit(1)
        try:
            transactions = load_transactions(csv_path)
        except (KeyError, ValueError) as e:
            print(f"Error: Could not read statement file '{csv_path}': {e}")
            print(f"Expected columns: {', '.join(CSV_HEADERS)}")
            sys.exit(1)

    self_reported = None
    if args.monthly_spend is not None:
        if args.monthly_spend < 0:
            print(f"Error: Monthly spend must be >= 0. Got: {args.monthly_spend}")
            sys.exit(1)
        self_reported = SelfReportedEstimate(monthly_spend=args.monthly_spend, spend_split=_parse_split(args.split))

    return profile, preferences, transactions, self_reported


def cmd_categories(args):
    """List canonical spending categories."""
    for category in CANONICAL_CATEGORIES:
        print(f"{category.value:<18} {display_name(category)}")


def cmd_derive(args):
    """
    Print the derived feature vector as JSON.

    Args:
        args: Parsed command-line arguments (statement CSV and/or self-report,
            profile and preference flags)
    """
    profile, preferences, transactions, self_reported = _build_inputs(args)
    features = derive(profile, preferences, transactions, self_reported)
    print(json.dumps(features.model_dump(mode="json"), indent=2))


def cmd_recommend(args):
    """
    Rank catalog cards for the user.

    Args:
        args: Parsed command-line arguments, plus:
            - top: number of cards to show
            - mode: statements | goal_based | quick_estimate
            - catalog: optional catalog JSON path
    """
    if args.top < 0:
        print(f"Error: --top must be >= 0. Got: {args.top}")
        sys.exit(1)

    profile, preferences, transactions, self_reported = _build_inputs(args)
    features = derive(profile, preferences, transactions, self_reported)

    try:
        cards = CatalogService(args.catalog).get_catalog()
    except ServiceError as e:
        print(f"Error: {e.message} ({e.details.get('path')})")
        sys.exit(1)

    try:
        weights = resolve_weights(mode=RecommendationMode(args.mode)) if args.mode else None
    except (ValueError, ValidationError):
        valid_modes = [mode.value for mode in RecommendationMode]
        print(f"Error: Invalid mode '{args.mode}'. Must be one of: {', '.join(valid_modes)}")
        sys.exit(1)

    results = rank(features, cards, profile, args.top, weights)

    print(f"\n=== Card Recommendations ===\n")
    print(f"Source: {features.source.value} (confidence {features.confidence:.2f})")
    print(f"Monthly spend: ₹{features.total_monthly_spend:,.0f}")
    print(f"\n--- Ranked Options ---\n")

    for i, result in enumerate(results, 1):
        print(f"{i}. {result.card_name or result.card_id} - {result.score}/100")
        for explanation in result.explanations:
            print(f"   • {explanation}")
        print()


def _add_user_arguments(parser):
    parser.add_argument("--csv", help="Statement CSV (date,category,amount,merchant,transaction_type)")
    parser.add_argument("--monthly-spend", type=float, default=None, help="Self-reported monthly spend in INR")
    parser.add_argument("--split", action="append", help="Self-reported split LABEL=PERCENT (repeatable)")
    parser.add_argument("--income", help="Income band (e.g. 50000-100000)")
    parser.add_argument("--age", help="Age range (e.g. 26-35)")
    parser.add_argument("--city", help="City of residence")
    parser.add_argument("--pay-in-full", help="always | mostly | sometimes | rarely")
    parser.add_argument("--fee-band", help="zero | <=1k | <=5k | any_if_2x_roi")
    parser.add_argument("--fee-sensitivity", help="low | medium | high")
    parser.add_argument("--travel", help="rarely | occasional | frequent")
    parser.add_argument("--lounge", help="not_important | nice_to_have | very_important")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="CardMatch credit card recommendation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Categories command
    subparsers.add_parser("categories", help="List canonical spending categories")

    # Derive command
    parser_derive = subparsers.add_parser("derive", help="Derive the user feature vector")
    _add_user_arguments(parser_derive)

    # Recommend command
    parser_recommend = subparsers.add_parser("recommend", help="Rank catalog cards")
    _add_user_arguments(parser_recommend)
    parser_recommend.add_argument("--top", type=int, default=5, help="Number of cards to show")
    parser_recommend.add_argument("--mode", help="statements | goal_based | quick_estimate")
    parser_recommend.add_argument("--catalog", help="Card catalog JSON (defaults to the bundled catalog)")

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    if args.command == "categories":
        cmd_categories(args)
    elif args.command == "derive":
        cmd_derive(args)
    elif args.command == "recommend":
        cmd_recommend(args)


if __name__ == "__main__":
    main()
