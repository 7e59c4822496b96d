"""Transaction categorization using a completion service.

Transactions are sent to the configured LLM provider in batches together
with the current category set, the user's natural-language preferences and
the active liability payment rules. The response is parsed leniently and
validated item by item. When no provider is available the rule-based
classifier in rules.py is used instead.

categorize_transactions() never raises: a failed batch degrades to
"Other" with confidence 0 for that batch only.
"""

from typing import Dict, Iterable, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from config import Config
from llm import get_llm_provider, LLMProvider
from llm.parsing import extract_json_array
from llm.prompts.loader import PromptManager
from models.category import FALLBACK_CATEGORY
from models.classification import CategorizationResult, TransactionInput
from rules import categorize_with_rules, UNCATEGORIZED_SUBCATEGORY
from logger import get_logger

logger = get_logger()

BATCH_SIZE = 20
DEFAULT_CONFIDENCE = 0.8
PROMPT_NAME = "categorization"


class CategorizationItem(BaseModel):
    """One element of the completion response array."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    index: int
    category: Optional[str] = None
    subcategory: Optional[str] = None
    merchant: Optional[str] = None
    confidence: Optional[float] = None
    is_transfer: Optional[bool] = Field(default=False, alias="isTransfer")
    liability_id: Optional[int] = Field(default=None, alias="liabilityId")

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return None
        return max(0.0, min(1.0, v))

    @field_validator("liability_id", mode="before")
    @classmethod
    def lenient_liability_id(cls, v):
        try:
            return int(v) if v is not None else None
        except (TypeError, ValueError):
            return None


def _fallback_category(categories: List[str]) -> Optional[str]:
    return FALLBACK_CATEGORY if FALLBACK_CATEGORY in categories else None


def _stand_in(item: TransactionInput, categories: List[str]) -> CategorizationResult:
    return CategorizationResult(
        category=_fallback_category(categories),
        subcategory=UNCATEGORIZED_SUBCATEGORY,
        merchant=item.description,
        confidence=0.0,
        source="fallback",
    )


def _within_categories(
    result: CategorizationResult, categories: List[str]
) -> CategorizationResult:
    if result.category not in categories:
        result.category = _fallback_category(categories)
        result.subcategory = UNCATEGORIZED_SUBCATEGORY
        result.confidence = 0.0
    return result


def _resolve_provider(config: Optional[Config]) -> Optional[LLMProvider]:
    if config is None:
        return None
    try:
        return get_llm_provider(config)
    except Exception as e:
        logger.error(f"Failed to initialize LLM provider: {e}")
        return None


def format_transactions(batch: List[TransactionInput]) -> str:
    """Numbered transaction list for the prompt (1-based)."""
    lines = []
    for i, item in enumerate(batch, start=1):
        kind = "(expense)" if item.amount < 0 else "(income)"
        when = f" on {item.date.isoformat()}" if item.date else ""
        lines.append(f'{i}. "{item.description}" - ${abs(item.amount):.2f} {kind}{when}')
    return "\n".join(lines)


class _BatchContext:
    """Category set, preferences and liability rules read for one batch."""

    def __init__(self, services):
        self.categories: List[str] = services.categories.names()
        self.preferences: List[str] = [
            p.instruction for p in services.preferences.find_all()
        ]

        liabilities = {
            liability.id: liability for liability in services.liabilities.find_all()
        }
        self.liability_lines: List[str] = []
        self.linkable_ids: Set[int] = set()
        for rule in services.liabilities.find_rules(active_only=True):
            liability = liabilities.get(rule.liability_id)
            if liability is None:
                continue
            self.linkable_ids.add(liability.id)
            self.liability_lines.append(
                f"- id {liability.id}: {liability.name} ({rule.rule_description})"
            )


def build_prompt(
    prompt_manager: PromptManager, batch: List[TransactionInput], context: _BatchContext
) -> Dict:
    """Render the categorization prompt for one batch."""
    preferences = ""
    if context.preferences:
        preferences = prompt_manager.render_section(
            PROMPT_NAME,
            "preferences_template",
            {"preference_lines": "\n".join(f"- {p}" for p in context.preferences)},
        )

    liabilities = ""
    if context.liability_lines:
        liabilities = prompt_manager.render_section(
            PROMPT_NAME,
            "liabilities_template",
            {"liability_lines": "\n".join(context.liability_lines)},
        )

    return prompt_manager.render_prompt(
        PROMPT_NAME,
        {
            "categories": ", ".join(context.categories),
            "preferences": preferences,
            "liabilities": liabilities,
            "transactions": format_transactions(batch),
        },
    )


def _to_result(
    item: TransactionInput, parsed: CategorizationItem, context: _BatchContext
) -> CategorizationResult:
    merchant = (parsed.merchant or "").strip() or item.description
    confidence = DEFAULT_CONFIDENCE if parsed.confidence is None else parsed.confidence
    category = parsed.category
    subcategory = parsed.subcategory or None

    if category not in context.categories:
        logger.debug(f"Unknown category '{category}' for '{item.description}'")
        category = _fallback_category(context.categories)
        confidence = 0.0

    liability_id = parsed.liability_id
    if liability_id is not None and liability_id not in context.linkable_ids:
        logger.debug(f"Ignoring unknown liability {liability_id} for '{item.description}'")
        liability_id = None

    return CategorizationResult(
        category=category,
        subcategory=subcategory,
        merchant=merchant,
        confidence=confidence,
        is_transfer=bool(parsed.is_transfer),
        liability_id=liability_id,
        source="ai",
    )


def parse_batch_response(
    text: str, batch: List[TransactionInput], context: _BatchContext
) -> List[CategorizationResult]:
    """Turn a completion response into one result per batch item.

    Raises:
        ResponseParseError: If no JSON array can be recovered at all.
    """
    by_index: Dict[int, CategorizationItem] = {}
    for raw in extract_json_array(text):
        if not isinstance(raw, dict):
            continue
        try:
            parsed = CategorizationItem.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Skipping malformed response item {raw!r}: {e}")
            continue
        by_index.setdefault(parsed.index, parsed)

    results = []
    for i, item in enumerate(batch, start=1):
        parsed = by_index.get(i)
        if parsed is None:
            results.append(_stand_in(item, context.categories))
        else:
            results.append(_to_result(item, parsed, context))
    return results


def _categorize_batch(
    provider: LLMProvider,
    prompt_manager: PromptManager,
    batch: List[TransactionInput],
    services,
) -> List[CategorizationResult]:
    categories: List[str] = []
    try:
        context = _BatchContext(services)
        categories = context.categories
        prompt = build_prompt(prompt_manager, batch, context)
        text = provider.complete(
            prompt["system_prompt"], prompt["user_prompt"], prompt["parameters"]
        )
        return parse_batch_response(text, batch, context)
    except Exception as e:
        logger.error(f"AI categorization failed for a batch of {len(batch)}: {e}")
        # Context never loaded: the category set is unknown
        categories = categories or [FALLBACK_CATEGORY]
        return [_stand_in(item, categories) for item in batch]


def categorize_transactions(
    items: Iterable[TransactionInput],
    services,
    provider: Optional[LLMProvider] = None,
    config: Optional[Config] = None,
) -> List[CategorizationResult]:
    """Categorize transactions, one result per input in the same order.

    Args:
        items: Transactions to categorize.
        services: Services container used to read categories, preferences
            and liability rules.
        provider: Completion provider. If None, one is built from config.
        config: Config used to build a provider; defaults to services.config.

    Returns:
        List of CategorizationResult, same length and order as items.
    """
    items = list(items)
    if not items:
        return []

    if provider is None:
        provider = _resolve_provider(config if config is not None else services.config)

    if provider is None:
        logger.info(
            f"No completion provider available - using rule-based categorization for {len(items)} transaction(s)"
        )
        # Rule categories are fixed; the configured set may have lost some
        categories = services.categories.names()
        return [
            _within_categories(categorize_with_rules(item.description, item.amount), categories)
            for item in items
        ]

    prompt_manager = PromptManager()
    results: List[CategorizationResult] = []
    for start in range(0, len(items), BATCH_SIZE):
        batch = items[start : start + BATCH_SIZE]
        logger.info(
            f"Categorizing transactions {start + 1}-{start + len(batch)} of {len(items)}"
        )
        results.extend(_categorize_batch(provider, prompt_manager, batch, services))

    categorized = sum(1 for r in results if r.confidence > 0)
    logger.info(f"Categorized {categorized}/{len(items)} transactions")
    return results
