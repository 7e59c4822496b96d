import csv
import logging
from typing import Dict, List, Optional, TextIO

from ingestion.common import (
    cell,
    column,
    header_map,
    is_card_payment,
    parse_amount,
    parse_date,
)
from models.parsed_transaction import ParsedTransaction

logger = logging.getLogger(__name__)

NAME = "chase"
INSTITUTION = "Chase"
ACCOUNT_TYPE = "credit_card"

# Chase category -> our category
_CATEGORY_MAP = {
    "food & drink": "Food",
    "groceries": "Groceries",
    "gas": "Transportation",
    "travel": "Travel",
    "shopping": "Shopping",
    "entertainment": "Entertainment",
    "health & wellness": "Health",
    "professional services": "Other",
    "personal": "Other",
    "bills & utilities": "Housing",
    "home": "Housing",
    "fees & adjustments": "Financial",
}


def detect(header: List[str]) -> bool:
    """Chase card exports have Transaction Date, Description, Amount and Category or Type."""
    columns = header_map(header)
    return (
        "transaction date" in columns
        and "description" in columns
        and "amount" in columns
        and ("category" in columns or "type" in columns)
    )


def map_category(chase_category: str) -> Optional[str]:
    return _CATEGORY_MAP.get(chase_category.strip().lower()) if chase_category else None


def row_to_transaction(
    row: List[str], columns: Dict[str, int]
) -> Optional[ParsedTransaction]:
    """Convert a CSV row to a ParsedTransaction.

    Chase already signs charges negative and credits positive.

    Returns:
        ParsedTransaction, or None for card payment rows.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    date_str = cell(row, column(columns, "transaction date", "trans date"))
    description = cell(row, columns.get("description"))
    amount_str = cell(row, columns.get("amount"))
    type_field = cell(row, columns.get("type"))

    if not date_str or not description or not amount_str:
        raise ValueError(
            f"Missing required fields: date='{date_str}', description='{description}', amount='{amount_str}'"
        )

    if type_field.lower() == "payment" or is_card_payment(description):
        return None

    return ParsedTransaction(
        transaction_date=parse_date(date_str),
        description=description,
        amount=parse_amount(amount_str),
        raw_data=",".join(row),
        bank_category=map_category(cell(row, columns.get("category"))),
    )


def ingest(source: TextIO) -> List[ParsedTransaction]:
    """
    Ingest Chase Credit Card CSV transactions.

    Expected format:
    - Header row (line 1): Transaction Date,Post Date,Description,Category,Type,Amount,Memo
    - Transaction rows (line 2+): actual transaction data

    Card payments ("Payment Thank You", Type=Payment) are skipped.

    Raises:
        ValueError: If the file is empty or the header is not a Chase header
    """
    transactions = []
    reader = csv.reader(source)

    try:
        header = next(reader)
    except StopIteration:
        raise ValueError("Empty CSV file")

    if not detect(header):
        raise ValueError(f"CSV header is not a Chase export: {header}")
    columns = header_map(header)
    logger.info("Found Chase CSV header")

    line_num = 1
    skipped_payments = 0
    for row in reader:
        line_num += 1

        if not row or not any(value.strip() for value in row):
            continue

        try:
            transaction = row_to_transaction(row, columns)
        except ValueError as e:
            logger.warning(f"Skipping line {line_num}: {row} - {e}")
            continue

        if transaction is None:
            skipped_payments += 1
            continue
        transactions.append(transaction)

    if skipped_payments:
        logger.info(f"Skipped {skipped_payments} card payment row(s)")
    logger.info(f"Successfully ingested {len(transactions)} transactions")
    return transactions
