import csv
import logging
from decimal import Decimal
from typing import Dict, List, TextIO

from ingestion.common import cell, column, header_map, parse_amount, parse_date
from models.parsed_transaction import ParsedTransaction

logger = logging.getLogger(__name__)

NAME = "bank"
INSTITUTION = "Bank"
ACCOUNT_TYPE = "bank"

_DATE_COLUMNS = ("date", "posted date")
_DESCRIPTION_COLUMNS = ("description", "memo")
_BALANCE_COLUMNS = ("balance", "running balance", "running bal.")


def detect(header: List[str]) -> bool:
    """Bank exports: a date, a description, Amount or Debit/Credit, and a balance column."""
    columns = header_map(header)
    has_amount = "amount" in columns or ("debit" in columns and "credit" in columns)
    return (
        column(columns, *_DATE_COLUMNS) is not None
        and column(columns, *_DESCRIPTION_COLUMNS) is not None
        and column(columns, *_BALANCE_COLUMNS) is not None
        and has_amount
    )


def _signed_amount(row: List[str], columns: Dict[str, int]) -> Decimal:
    if "debit" in columns and "credit" in columns:
        debit = cell(row, columns["debit"])
        credit = cell(row, columns["credit"])
        if not debit and not credit:
            raise ValueError("Missing debit and credit")
        debit_value = abs(parse_amount(debit)) if debit else Decimal("0")
        credit_value = abs(parse_amount(credit)) if credit else Decimal("0")
        return credit_value - debit_value

    amount_str = cell(row, columns.get("amount"))
    if not amount_str:
        raise ValueError("Missing amount")
    return parse_amount(amount_str)


def row_to_transaction(row: List[str], columns: Dict[str, int]) -> ParsedTransaction:
    """Convert a CSV row to a ParsedTransaction.

    Withdrawals become negative and deposits positive, whether the file
    uses one signed Amount column or separate Debit and Credit columns.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    date_str = cell(row, column(columns, *_DATE_COLUMNS))
    description = cell(row, column(columns, *_DESCRIPTION_COLUMNS))

    if not date_str or not description:
        raise ValueError(
            f"Missing required fields: date='{date_str}', description='{description}'"
        )

    return ParsedTransaction(
        transaction_date=parse_date(date_str),
        description=description,
        amount=_signed_amount(row, columns),
        raw_data=",".join(row),
    )


def ingest(source: TextIO) -> List[ParsedTransaction]:
    """
    Ingest a generic bank account CSV export.

    Expected format:
    - Optional summary section: ignored
    - Header row: Date,Description,Amount,Balance or Date,Description,Debit,Credit,Balance
    - Transaction rows: actual transaction data

    Raises:
        ValueError: If no recognizable header row is found
    """
    transactions = []
    reader = csv.reader(source)

    # Skip any summary section and find the transaction header
    line_num = 0
    columns = None
    for row in reader:
        line_num += 1
        if row and detect(row):
            logger.info(f"Found transaction header at line {line_num}")
            columns = header_map(row)
            break

    if columns is None:
        raise ValueError("Could not find a bank statement header row")

    for row in reader:
        line_num += 1

        if not row or not any(value.strip() for value in row):
            continue

        try:
            transactions.append(row_to_transaction(row, columns))
        except ValueError as e:
            logger.warning(f"Skipping line {line_num}: {row} - {e}")
            continue

    logger.info(f"Successfully ingested {len(transactions)} transactions")
    return transactions
