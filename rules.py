"""Rule-based transaction categorization.

Used when no completion provider is available. Matching is a fixed list of
case-insensitive patterns over the description; user preferences are not
consulted, transfers are never flagged and no liability link is proposed.
"""

import re
from decimal import Decimal
from typing import Optional, Tuple
from models.category import FALLBACK_CATEGORY
from models.classification import CategorizationResult

INCOME_CONFIDENCE = 0.9
PATTERN_CONFIDENCE = 0.7
UNCATEGORIZED_SUBCATEGORY = "Uncategorized"

# (pattern, category, subcategory, merchant); first match wins
EXPENSE_PATTERNS: Tuple[Tuple[str, str, str, Optional[str]], ...] = (
    # Food
    (r"starbucks|dunkin|peet|coffee", "Food", "Coffee", "Starbucks"),
    (r"mcdonald|wendy|burger|taco bell|chipotle|subway|five guys", "Food", "Restaurants", None),
    (r"doordash|uber eats|grubhub|postmates", "Food", "Delivery", None),
    (r"kroger|safeway|whole foods|trader joe|walmart|target.*grocery|aldi|publix", "Food", "Groceries", None),
    # Transportation
    (r"shell|exxon|mobil|chevron|gas|bp |76 ", "Transportation", "Gas", None),
    (r"uber(?! eats)|lyft", "Transportation", "Rideshare", None),
    (r"parking|park\s", "Transportation", "Parking", None),
    # Shopping
    (r"amazon|amzn", "Shopping", "Amazon", "Amazon"),
    (r"target|walmart|costco|home depot|lowes", "Shopping", "Home Goods", None),
    (r"apple\.com|best buy|electronics", "Shopping", "Electronics", None),
    # Entertainment
    (r"netflix", "Entertainment", "Streaming", "Netflix"),
    (r"spotify", "Entertainment", "Streaming", "Spotify"),
    (r"hulu|disney\+|hbo|prime video", "Entertainment", "Streaming", None),
    (r"amc|regal|cinema|movie", "Entertainment", "Movies", None),
    # Subscriptions and health
    (r"github|notion|figma|adobe|microsoft 365|dropbox", "Subscriptions", "Software", None),
    (r"gym|fitness|planet fitness|ymca|equinox", "Health", "Gym", None),
    # Housing
    (r"electric|power|utility|water|gas bill|pgce|con ed", "Housing", "Utilities", None),
    (r"rent|lease|apartment", "Housing", "Rent/Mortgage", None),
    # Health
    (r"cvs|walgreens|pharmacy|rx", "Health", "Pharmacy", None),
    (r"doctor|medical|health|hospital|clinic", "Health", "Medical", None),
    # Travel
    (r"airline|united|delta|american air|southwest|jetblue", "Travel", "Flights", None),
    (r"hotel|marriott|hilton|hyatt|airbnb", "Travel", "Hotels", None),
    # Financial
    (r"fee|atm|overdraft|interest charge", "Financial", "Fees", None),
)

_COMPILED_PATTERNS = tuple(
    (re.compile(pattern), category, subcategory, merchant)
    for pattern, category, subcategory, merchant in EXPENSE_PATTERNS
)


def _income_subcategory(desc: str) -> Optional[str]:
    if "payroll" in desc or "salary" in desc or "direct dep" in desc:
        return "Salary"
    if "dividend" in desc or "div" in desc:
        return "Dividends"
    if "interest" in desc and "interest charge" not in desc:
        return "Interest"
    return None


def categorize_with_rules(description: str, amount: Decimal) -> CategorizationResult:
    """Categorize one transaction from its description and signed amount.

    Never raises. Credits are first checked for payroll, dividend and
    interest wording; then the expense patterns run in order. No match gives
    category "Other" with confidence 0.
    """
    description = description or ""
    desc = description.lower()

    if amount > 0:
        subcategory = _income_subcategory(desc)
        if subcategory:
            return CategorizationResult(
                category="Income",
                subcategory=subcategory,
                merchant=description,
                confidence=INCOME_CONFIDENCE,
            )

    for pattern, category, subcategory, merchant in _COMPILED_PATTERNS:
        if pattern.search(desc):
            return CategorizationResult(
                category=category,
                subcategory=subcategory,
                merchant=merchant or description,
                confidence=PATTERN_CONFIDENCE,
            )

    return CategorizationResult(
        category=FALLBACK_CATEGORY,
        subcategory=UNCATEGORIZED_SUBCATEGORY,
        merchant=description,
        confidence=0.0,
    )


def is_uncategorized(result: CategorizationResult) -> bool:
    """Zero confidence marks a transaction the UI should show as uncategorized."""
    return result.category is None or result.confidence == 0
