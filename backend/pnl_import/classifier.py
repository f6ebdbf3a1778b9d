"""
Keyword classification of P&L accounts into allocation categories.

Rules are ``CategoryRule`` records sorted by priority (highest first). The
first rule whose keyword appears in the account name decides the category;
priority 90 and above counts as a confident match. A separate review scan
flags accounts that often hide owner compensation (contractors, consultants,
distributions) unless the account is already mapped to owner pay.

Rule lists come from outside (a database table, a JSON file, or the built-in
defaults) and are held in a ``RuleCache`` for the life of an import session.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from .models import CategoryRule, Classification, Confidence, PFCategory

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_PRIORITY = 90

REVIEW_KEYWORDS = [
    "professional fee",
    "contractor",
    "consultant",
    "distribution",
    "1099",
    "management fee",
    "advisory",
]

REVIEW_WARNING = (
    "May include owner compensation. Verify whether any of this was paid "
    "to the owner before mapping it."
)

# (keyword, category, priority)
DEFAULT_RULE_RECORDS: List[Tuple[str, PFCategory, int]] = [
    # Tax
    ("income tax", PFCategory.TAX, 99),
    ("estimated tax", PFCategory.TAX, 98),
    ("payroll tax", PFCategory.TAX, 97),
    ("sales tax", PFCategory.TAX, 96),
    ("franchise tax", PFCategory.TAX, 95),
    ("tax", PFCategory.TAX, 80),
    # Owner's pay
    ("officer compensation", PFCategory.OWNER_PAY, 99),
    ("owner compensation", PFCategory.OWNER_PAY, 99),
    ("guaranteed payment", PFCategory.OWNER_PAY, 98),
    ("shareholder distribution", PFCategory.OWNER_PAY, 97),
    ("personal draw", PFCategory.OWNER_PAY, 97),
    ("owner", PFCategory.OWNER_PAY, 95),
    ("officer", PFCategory.OWNER_PAY, 92),
    ("shareholder", PFCategory.OWNER_PAY, 90),
    # Materials & subs
    ("cost of goods", PFCategory.MATERIALS_SUBS, 96),
    ("cost of sales", PFCategory.MATERIALS_SUBS, 96),
    ("cogs", PFCategory.MATERIALS_SUBS, 95),
    ("direct cost", PFCategory.MATERIALS_SUBS, 92),
    ("materials", PFCategory.MATERIALS_SUBS, 90),
    ("subcontract", PFCategory.MATERIALS_SUBS, 88),
    ("job supplies", PFCategory.MATERIALS_SUBS, 85),
    # Revenue
    ("gross receipts", PFCategory.GROSS_REVENUE, 95),
    ("revenue", PFCategory.GROSS_REVENUE, 92),
    ("sales", PFCategory.GROSS_REVENUE, 90),
    ("income", PFCategory.GROSS_REVENUE, 70),
    # Operating expenses
    ("rent", PFCategory.OPEX, 90),
    ("utilities", PFCategory.OPEX, 90),
    ("advertising", PFCategory.OPEX, 90),
    ("insurance", PFCategory.OPEX, 88),
    ("software", PFCategory.OPEX, 85),
    ("professional fees", PFCategory.OPEX, 85),
    ("wages", PFCategory.OPEX, 85),
    ("payroll", PFCategory.OPEX, 80),
    ("supplies", PFCategory.OPEX, 80),
    ("expense", PFCategory.OPEX, 60),
    # Non-cash / not allocated
    ("depreciation", PFCategory.EXCLUDE, 85),
    ("amortization", PFCategory.EXCLUDE, 85),
    ("uncategorized", PFCategory.EXCLUDE, 50),
]


def default_rule_records() -> List[dict]:
    return [
        {"keyword": keyword, "category": category.value, "priority": priority}
        for keyword, category, priority in DEFAULT_RULE_RECORDS
    ]


def sort_rules(rules: Iterable[CategoryRule]) -> List[CategoryRule]:
    """Highest priority first; ties keep their original order."""
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)


def review_reason(name: str) -> Optional[str]:
    lowered = name.lower()
    if any(keyword in lowered for keyword in REVIEW_KEYWORDS):
        return REVIEW_WARNING
    return None


def classify(account_name: str, rules: Sequence[CategoryRule]) -> Classification:
    """
    Suggest a category for an account.

    Args:
        account_name: Account label as it appears in the report
        rules: Rules sorted by priority, highest first

    Returns:
        Classification for the first matching rule, or a low-confidence
        opex default when nothing matches
    """
    lowered = (account_name or "").lower()

    for rule in rules:
        if rule.keyword in lowered:
            needs_review = None
            if rule.category != PFCategory.OWNER_PAY:
                needs_review = review_reason(lowered)
            return Classification(
                category=rule.category,
                confidence=(
                    Confidence.HIGH
                    if rule.priority >= HIGH_CONFIDENCE_PRIORITY
                    else Confidence.LOW
                ),
                needs_review=needs_review,
                matched_keyword=rule.keyword,
                matched_priority=rule.priority,
            )

    return Classification(
        category=PFCategory.OPEX,
        confidence=Confidence.LOW,
        needs_review=review_reason(lowered),
    )


def validate_rule_records(records: Iterable[Mapping[str, Any]]) -> List[CategoryRule]:
    """Convert loose rule records into strict rules, dropping invalid ones."""
    rules: List[CategoryRule] = []
    for record in records:
        try:
            rules.append(CategoryRule.from_record(record))
        except (ValidationError, AttributeError) as e:
            logger.warning("Skipping invalid category rule %r: %s", record, e)
    return rules


def load_rules_file(path: Path) -> List[dict]:
    """Read rule records from a JSON file holding a list of objects."""
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Rule file {path} must contain a JSON list")
    return data


class RuleCache:
    """
    Session-scoped cache for the category rule list.

    The loader is called once, on first use. Its records are validated into
    ``CategoryRule`` objects and sorted, and the result is kept until
    ``invalidate`` is called. A failing loader does not mark the cache as
    loaded, so the next call tries again; the failing call gets an empty rule
    list and every account falls back to the low-confidence default.
    """

    def __init__(self, loader: Callable[[], Iterable[Mapping[str, Any]]]):
        self._loader = loader
        self._rules: Tuple[CategoryRule, ...] = ()
        self.loaded = False

    def get(self) -> Tuple[CategoryRule, ...]:
        if self.loaded:
            return self._rules

        try:
            records = list(self._loader())
        except Exception as e:
            logger.warning("Category rules unavailable, classifying without rules: %s", e)
            return ()

        self._rules = tuple(sort_rules(validate_rule_records(records)))
        self.loaded = True
        logger.debug("Loaded %d category rules", len(self._rules))
        return self._rules

    def invalidate(self) -> None:
        self._rules = ()
        self.loaded = False

    @classmethod
    def with_defaults(cls) -> "RuleCache":
        return cls(default_rule_records)

    @classmethod
    def from_file(cls, path: Path) -> "RuleCache":
        return cls(lambda: load_rules_file(path))
