"""
Editable account-to-category mapping for one import.

A session starts from the parsed line items. Each account is seeded with the
category it was given for this client last time (``previous_mappings``) or,
failing that, the classifier's suggestion. The reviewer changes categories
with ``set_category``; ``apply`` produces the final ``AccountMapping`` list.
"""

import logging
from typing import Dict, List, Mapping, Optional, Set

from .models import AccountMapping, CategoryTotals, LineItem, PFCategory

logger = logging.getLogger(__name__)


class MappingSession:
    def __init__(
        self,
        items: List[LineItem],
        previous_mappings: Optional[Mapping[str, PFCategory]] = None,
    ):
        self.items = list(items)
        # Stored mappings arrive as plain strings
        self.previous_mappings: Dict[str, PFCategory] = {
            name: PFCategory(category) for name, category in (previous_mappings or {}).items()
        }
        self.mapping: Dict[str, PFCategory] = {}
        self.modified: Set[str] = set()

        for item in self.items:
            self.mapping[item.account_name] = self.previous_mappings.get(
                item.account_name, item.suggested_category
            )

    def category_for(self, account_name: str) -> PFCategory:
        return self.mapping[account_name]

    def has_previous_mapping(self, account_name: str) -> bool:
        return account_name in self.previous_mappings

    def is_modified(self, account_name: str) -> bool:
        return account_name in self.modified

    def set_category(self, account_name: str, category: PFCategory) -> None:
        """
        Assign a category to an account and mark it as edited.

        The account stays marked even if the new category matches the original
        suggestion.

        Raises:
            KeyError: if the account is not part of this import
        """
        if account_name not in self.mapping:
            raise KeyError(account_name)
        self.mapping[account_name] = PFCategory(category)
        self.modified.add(account_name)
        logger.debug("Mapped %r to %s", account_name, category)

    def category_totals(self) -> CategoryTotals:
        totals = CategoryTotals()
        for item in self.items:
            totals.add(self.mapping[item.account_name], item.amount)
        return totals

    @property
    def real_revenue(self) -> float:
        return self.category_totals().real_revenue

    def summary(self) -> Dict[str, int]:
        excluded = sum(
            1 for item in self.items if self.mapping[item.account_name] == PFCategory.EXCLUDE
        )
        return {"mapped_count": len(self.items) - excluded, "excluded_count": excluded}

    def apply(self) -> List[AccountMapping]:
        """Final mappings in original report order."""
        return [
            AccountMapping(
                account_name=item.account_name,
                amount=item.amount,
                parent_account=item.parent_account,
                pf_category=self.mapping[item.account_name],
                sort_order=item.sort_order,
                was_modified=item.account_name in self.modified,
            )
            for item in self.items
        ]
