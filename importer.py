"""Statement import pipeline.

parsed rows -> duplicate guard -> categorization -> stored transactions ->
statement upload record -> liability payment matcher (per new expense).
"""

import gzip
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from categorization import categorize_transactions
from llm import LLMProvider
from models.account import Account
from models.classification import CategorizationResult, TransactionInput
from models.parsed_transaction import ParsedTransaction
from models.transaction import Transaction
from rules import is_uncategorized
from services.liabilities import LiabilityPaymentError
from tools.duplicates import partition_duplicates
from logger import get_logger

logger = get_logger()


@dataclass
class ImportResult:
    """Summary of one import run.

    Attributes:
        parsed: Rows read from the statement.
        inserted: Transactions stored.
        duplicates: Rows skipped as already imported.
        payments: Liability payments created for the new transactions.
        uncategorized: Stored transactions left with zero confidence.
        statement_upload_id: Upload record created for this import, if any.
        transactions: The stored transactions.
    """

    parsed: int = 0
    inserted: int = 0
    duplicates: int = 0
    payments: int = 0
    uncategorized: int = 0
    statement_upload_id: Optional[int] = None
    transactions: List[Transaction] = field(default_factory=list)


def archive_statement(config, source_path: Path, account_name: str) -> Optional[str]:
    """Gzip a copy of an imported file into the archive directory.

    Returns:
        The archive file name, or None if archiving is disabled.
    """
    if not config.archive_enabled:
        return None

    config.archive_dir.mkdir(parents=True, exist_ok=True)

    # {account_name}_{timestamp}_{original_filename}.gz
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    archive_filename = f"{account_name}_{timestamp}_{source_path.name}.gz"
    archive_path = config.archive_dir / archive_filename

    with open(source_path, "rb") as f_in:
        with gzip.open(archive_path, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)

    logger.info(f"Archived statement to: {archive_path}")
    return archive_filename


def _choose_category(
    result: CategorizationResult, bank_category: Optional[str], categories: List[str]
) -> CategorizationResult:
    """Use the bank's own category when the classifier had nothing better."""
    if is_uncategorized(result) and bank_category in categories:
        result.category = bank_category
        result.subcategory = None
    return result


def _link_payments(services, transaction: Transaction, result: CategorizationResult) -> int:
    """Run the liability matcher for one stored transaction.

    Returns:
        Number of payments created.
    """
    match = services.liabilities.process_transaction_for_liability_payments(transaction.id)
    if match.matched:
        return len(match.payments)

    if result.liability_id is None or not transaction.is_expense:
        return 0

    # The classifier proposed a link no rule matched; queue it for approval
    try:
        services.liabilities.apply_payment_to_liability(
            transaction.id, result.liability_id, rule_id=None, auto_apply=False
        )
    except LiabilityPaymentError as e:
        logger.warning(f"Could not link transaction {transaction.id}: {e}")
        return 0
    return 1


def import_transactions(
    services,
    account: Account,
    parsed: List[ParsedTransaction],
    *,
    filename: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
    include_duplicates: bool = False,
) -> ImportResult:
    """Store parsed statement rows for an account.

    Args:
        services: Services container.
        account: Account the statement belongs to.
        parsed: Rows from an ingestion module.
        filename: Archived file name recorded on the upload record.
        provider: Completion provider; built from config when None.
        include_duplicates: Store rows even if the duplicate guard flags them.

    Returns:
        ImportResult describing what happened.
    """
    result = ImportResult(parsed=len(parsed))
    if not parsed:
        logger.info("No transactions to import.")
        return result

    existing = services.transactions.existing_keys(p.transaction_date for p in parsed)
    fresh, duplicates = partition_duplicates(parsed, existing)
    if include_duplicates:
        fresh, duplicates = list(parsed), []
    result.duplicates = len(duplicates)
    if duplicates:
        logger.info(f"Skipping {len(duplicates)} duplicate transaction(s)")

    if not fresh:
        return result

    classifications = categorize_transactions(
        [TransactionInput(p.description, p.amount, p.transaction_date) for p in fresh],
        services,
        provider=provider,
    )
    categories = services.categories.names()

    upload = services.statement_uploads.create(
        account.id,
        filename,
        period_start=min(p.transaction_date for p in fresh),
        period_end=max(p.transaction_date for p in fresh),
        transaction_count=len(fresh),
    )
    result.statement_upload_id = upload.id

    transactions = []
    for row, classification in zip(fresh, classifications):
        classification = _choose_category(classification, row.bank_category, categories)
        merchant = classification.merchant
        if classification.source != "ai" and row.merchant:
            merchant = row.merchant
        transactions.append(
            Transaction(
                id=None,
                account_id=account.id,
                statement_upload_id=upload.id,
                transaction_date=row.transaction_date,
                description=row.description,
                amount=row.amount,
                category=classification.category,
                subcategory=classification.subcategory,
                merchant=merchant,
                is_transfer=classification.is_transfer,
                raw_data=row.raw_data,
            )
        )

    try:
        result.inserted = services.transactions.bulk_create(transactions)
    except Exception:
        # bulk_create rolled back; an upload with no rows would count as coverage
        services.statement_uploads.delete(upload.id)
        raise
    result.transactions = transactions
    result.uncategorized = sum(1 for c in classifications if is_uncategorized(c))
    logger.info(f"Inserted {result.inserted} transaction(s) for account {account.name}")

    for transaction, classification in zip(transactions, classifications):
        if transaction.is_expense:
            result.payments += _link_payments(services, transaction, classification)

    if result.payments:
        logger.info(f"Created {result.payments} liability payment(s)")
    return result


def recategorize_transactions(
    services,
    transactions: List[Transaction],
    provider: Optional[LLMProvider] = None,
) -> int:
    """Re-run categorization over stored transactions and save the results.

    Expenses are passed through the liability matcher afterwards.

    Returns:
        Number of transactions updated.
    """
    if not transactions:
        return 0

    classifications = categorize_transactions(
        [
            TransactionInput(t.description, t.amount, t.transaction_date)
            for t in transactions
        ],
        services,
        provider=provider,
    )
    for transaction, classification in zip(transactions, classifications):
        transaction.category = classification.category
        transaction.subcategory = classification.subcategory
        transaction.merchant = classification.merchant
        transaction.is_transfer = classification.is_transfer

    updated = services.transactions.batch_update(
        transactions, ["category", "subcategory", "merchant", "is_transfer"]
    )

    for transaction, classification in zip(transactions, classifications):
        if transaction.is_expense:
            _link_payments(services, transaction, classification)
    return updated


def set_category(
    services,
    transaction_id: int,
    category: str,
    *,
    subcategory: Optional[str] = None,
    merchant: Optional[str] = None,
    is_transfer: Optional[bool] = None,
    learn: bool = True,
):
    """Apply a user's category correction to one transaction.

    The change is recorded as a learned preference for the merchant so
    future imports follow it, and the liability matcher runs again.

    Returns:
        Tuple of (updated Transaction, learned UserPreference or None).

    Raises:
        ValueError: If the transaction or category does not exist.
    """
    transaction = services.transactions.find(transaction_id)
    if transaction is None:
        raise ValueError(f"Transaction with ID {transaction_id} not found")
    if category not in services.categories.names():
        raise ValueError(f"Unknown category '{category}'")

    preference = None
    if learn:
        preference = services.preferences.learn_from_correction(
            transaction,
            category,
            merchant=merchant,
            subcategory=subcategory,
            is_transfer=is_transfer,
        )

    fields = ["category", "subcategory"]
    transaction.category = category
    transaction.subcategory = subcategory
    if merchant:
        transaction.merchant = merchant
        fields.append("merchant")
    if is_transfer is not None:
        transaction.is_transfer = is_transfer
        fields.append("is_transfer")
    services.transactions.update(transaction, fields)

    if transaction.is_expense:
        services.liabilities.process_transaction_for_liability_payments(transaction.id)
    return transaction, preference
