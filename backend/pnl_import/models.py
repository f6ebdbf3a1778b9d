# Data models for the P&L import and allocation pipeline
import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class PFCategory(str, Enum):
    GROSS_REVENUE = "gross_revenue"
    MATERIALS_SUBS = "materials_subs"
    OWNER_PAY = "owner_pay"
    TAX = "tax"
    OPEX = "opex"
    EXCLUDE = "exclude"


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"


CATEGORY_CONFIG: Dict[PFCategory, Dict[str, str]] = {
    PFCategory.GROSS_REVENUE: {"label": "Gross Revenue", "description": "Income / Sales"},
    PFCategory.MATERIALS_SUBS: {
        "label": "Materials & Subs",
        "description": "Cost of goods & subcontractors",
    },
    PFCategory.OWNER_PAY: {"label": "Owner's Pay", "description": "Officer Comp / Draws"},
    PFCategory.TAX: {"label": "Tax", "description": "Tax Payments"},
    PFCategory.OPEX: {"label": "OpEx", "description": "Operating Expenses"},
    PFCategory.EXCLUDE: {"label": "Exclude", "description": "Don't include in totals"},
}


class CategoryRule(BaseModel):
    keyword: str
    category: PFCategory
    priority: int = 0

    model_config = {"frozen": True}

    @field_validator("keyword")
    @classmethod
    def _normalize_keyword(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("keyword must not be empty")
        return value

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CategoryRule":
        """
        Build a rule from a loosely-typed record (e.g. a database row).

        Accepts either ``category`` or ``pf_category`` for the category key and
        treats a missing/null priority as 0. Raises ``pydantic.ValidationError``
        for anything that cannot become a strict rule.
        """
        category = record.get("category", record.get("pf_category"))
        priority = record.get("priority")
        return cls(
            keyword=record.get("keyword") or "",
            category=category,
            priority=0 if priority is None else priority,
        )


class Classification(BaseModel):
    category: PFCategory
    confidence: Confidence
    needs_review: Optional[str] = None
    matched_keyword: Optional[str] = None
    matched_priority: Optional[int] = None


class LineItem(BaseModel):
    account_name: str
    amount: float
    parent_account: Optional[str] = None
    suggested_category: PFCategory = PFCategory.OPEX
    confidence: Confidence = Confidence.LOW
    needs_review: Optional[str] = None
    sort_order: int

    @field_validator("account_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("account_name must not be empty")
        return value

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("amount must be finite")
        return value


class AmountColumn(BaseModel):
    type: str  # "single" | "sum_months" | "last_numeric"
    columns: List[int]
    description: str


class AccountMapping(BaseModel):
    account_name: str
    amount: float
    parent_account: Optional[str] = None
    pf_category: PFCategory
    sort_order: int
    was_modified: bool = False


class ReportedTotals(BaseModel):
    """Summary figures read from the report's own total lines."""

    revenue: Optional[float] = None
    cogs: Optional[float] = None
    gross_profit: Optional[float] = None
    expenses: Optional[float] = None
    net_profit: Optional[float] = None


class ImportResult(BaseModel):
    items: List[LineItem] = Field(default_factory=list)
    excluded: List[LineItem] = Field(default_factory=list)
    duplicates: List[LineItem] = Field(default_factory=list)
    source: str = "text"
    header_row_index: Optional[int] = None
    amount_column: Optional[AmountColumn] = None
    month_count_detected: Optional[int] = None
    reported_totals: ReportedTotals = Field(default_factory=ReportedTotals)

    @property
    def found_accounts(self) -> bool:
        return len(self.items) > 0


class CategoryTotals(BaseModel):
    gross_revenue: float = 0.0
    materials_subs: float = 0.0
    owner_pay: float = 0.0
    tax: float = 0.0
    opex: float = 0.0
    exclude: float = 0.0

    @property
    def real_revenue(self) -> float:
        # Materials may be exported as negative or positive; always subtract magnitude
        return self.gross_revenue - abs(self.materials_subs)

    def add(self, category: PFCategory, amount: float) -> None:
        setattr(self, category.value, getattr(self, category.value) + amount)


class AllocationTargets(BaseModel):
    profit: float
    owner_pay: float
    tax: float
    opex: float


DEFAULT_TARGETS = AllocationTargets(profit=10, owner_pay=50, tax=15, opex=25)


class AllocationInputs(BaseModel):
    quarter: str = "Q4"
    revenue_ytd: Optional[float] = None
    profit_ytd: Optional[float] = None
    draw_ytd: Optional[float] = None
    tax_ytd: Optional[float] = None
    total_expenses: Optional[float] = None
    cogs: Optional[float] = None
    month_count: Optional[int] = None


class BucketAllocation(BaseModel):
    transfer: float
    annual: float
    current_pct: float
    target_pct: float
    gap: float
    status: str  # "good" | "warning" | "danger"
    impact: float
    benchmark: str  # "good" | "on-track" | "review"


class Insight(BaseModel):
    type: str  # "danger" | "warning" | "info"
    bucket: str
    title: str
    description: str
    action: str


class AllocationResult(BaseModel):
    quarter_number: int
    months_in_data: int
    monthly_revenue: float
    annual_revenue: float
    per_transfer: float
    real_revenue: float
    monthly_real_revenue: float
    annual_real_revenue: float
    buckets: Dict[str, BucketAllocation]
    insights: List[Insight] = Field(default_factory=list)
    has_data: bool


# API request/response models

class TextImportRequest(BaseModel):
    text: str
    previous_mappings: Dict[str, PFCategory] = Field(default_factory=dict)


class MappingRequest(BaseModel):
    account_name: str
    category: PFCategory


class AllocationRequest(BaseModel):
    inputs: AllocationInputs
    targets: AllocationTargets = DEFAULT_TARGETS


class MappingRow(BaseModel):
    account_name: str
    amount: float
    parent_account: Optional[str] = None
    category: PFCategory
    confidence: Confidence
    needs_review: Optional[str] = None
    has_previous_mapping: bool = False
    modified: bool = False


class SessionResponse(BaseModel):
    session_id: str
    rows: List[MappingRow]
    totals: CategoryTotals
    real_revenue: float
    mapped_count: int
    excluded_count: int
    excluded: List[LineItem] = Field(default_factory=list)
    duplicates: List[LineItem] = Field(default_factory=list)
    amount_column: Optional[str] = None
    header_row_index: Optional[int] = None
    month_count_detected: Optional[int] = None
    reported_totals: ReportedTotals = Field(default_factory=ReportedTotals)


class ApplyResponse(BaseModel):
    mappings: List[AccountMapping]
    totals: CategoryTotals
    real_revenue: float
