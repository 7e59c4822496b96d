import csv
import logging
from typing import Dict, List, Optional, TextIO

from ingestion.common import cell, header_map, is_card_payment, parse_amount, parse_date
from models.parsed_transaction import ParsedTransaction

logger = logging.getLogger(__name__)

NAME = "amex"
INSTITUTION = "American Express"
ACCOUNT_TYPE = "credit_card"

_APPEARS_AS_PREFIX = "appears on your statement"

# Substring of the AMEX category -> our category
_CATEGORY_MAP = (
    ("restaurant", "Food"),
    ("groceries", "Groceries"),
    ("supermarket", "Groceries"),
    ("gas station", "Transportation"),
    ("airline", "Travel"),
    ("hotel", "Travel"),
    ("merchandise & supplies", "Shopping"),
    ("entertainment", "Entertainment"),
    ("medical services", "Health"),
    ("pharmacy", "Health"),
    ("business services", "Other"),
    ("utilities", "Housing"),
    ("fees & interest charges", "Financial"),
)


def detect(header: List[str]) -> bool:
    """AMEX exports have Date, Description, Amount plus Card Member, Reference or Appears As."""
    columns = header_map(header)
    has_extra = (
        "card member" in columns
        or "cardmember" in columns
        or "reference" in columns
        or any(name.startswith(_APPEARS_AS_PREFIX) for name in columns)
    )
    return "date" in columns and "description" in columns and "amount" in columns and has_extra


def map_category(amex_category: str) -> Optional[str]:
    lowered = amex_category.strip().lower()
    if not lowered:
        return None
    for key, category in _CATEGORY_MAP:
        if key in lowered:
            return category
    return None


def row_to_transaction(
    row: List[str], columns: Dict[str, int]
) -> Optional[ParsedTransaction]:
    """Convert a CSV row to a ParsedTransaction.

    AMEX lists charges as positive and credits as negative, so the sign is
    flipped.

    Returns:
        ParsedTransaction, or None for card payment rows.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    date_str = cell(row, columns.get("date"))
    description = cell(row, columns.get("description"))
    amount_str = cell(row, columns.get("amount"))

    if not date_str or not description or not amount_str:
        raise ValueError(
            f"Missing required fields: date='{date_str}', description='{description}', amount='{amount_str}'"
        )

    if is_card_payment(description):
        return None

    appears_as_idx = next(
        (i for name, i in columns.items() if name.startswith(_APPEARS_AS_PREFIX)), None
    )
    merchant = cell(row, appears_as_idx) or None

    return ParsedTransaction(
        transaction_date=parse_date(date_str),
        description=description,
        amount=-parse_amount(amount_str),
        raw_data=",".join(row),
        bank_category=map_category(cell(row, columns.get("category"))),
        merchant=merchant,
    )


def ingest(source: TextIO) -> List[ParsedTransaction]:
    """
    Ingest American Express CSV transactions.

    Expected format:
    - Header row (line 1): Date,Description,Amount,Extended Details,Appears On Your Statement As,Address,City/State,Zip Code,Country,Reference,Category
      (the shorter Date,Description,Card Member,Account #,Amount export is accepted too)
    - Transaction rows (line 2+): actual transaction data

    Note: Extended Details and other fields may contain newlines within quoted fields.

    Raises:
        ValueError: If the file is empty or the header is not an AMEX header
    """
    transactions = []
    reader = csv.reader(source)

    try:
        header = next(reader)
    except StopIteration:
        raise ValueError("Empty CSV file")

    if not detect(header):
        raise ValueError(f"CSV header is not an AMEX export: {header}")
    columns = header_map(header)
    logger.info("Validated AMEX CSV header")

    line_num = 1
    for row in reader:
        line_num += 1

        if not row or not any(value.strip() for value in row):
            continue

        try:
            transaction = row_to_transaction(row, columns)
        except ValueError as e:
            logger.warning(f"Skipping line {line_num}: {row} - {e}")
            continue

        if transaction is not None:
            transactions.append(transaction)

    logger.info(f"Successfully ingested {len(transactions)} transactions")
    return transactions
