"""Record types for line items, bonus schemes, assets and derived rows."""

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Any, ClassVar, Dict, List, Optional

CAPITAL = "initial_capital"
FIXED_COSTS = "fixed_costs"
VARIABLE_COGS = "variable_cogs"

UNITS = ("ml", "l", "g", "kg", "piece", "cup", "tbsp", "tsp")
FREQUENCIES = ("monthly", "yearly")


def new_id() -> str:
    return uuid.uuid4().hex


# -----------------------------------------------------------------------------
# Line items (one type per category)
# -----------------------------------------------------------------------------
@dataclass
class LineItem:
    name: str
    value: int = 0
    note: str = ""
    id: str = field(default_factory=new_id)

    category: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["category"] = self.category
        return d


@dataclass
class CapitalItem(LineItem):
    is_fixed_asset: bool = False
    estimated_useful_life_years: Optional[int] = None

    category: ClassVar[str] = CAPITAL


@dataclass
class FixedCostItem(LineItem):
    # set on entries generated from a depreciating asset
    source_asset_id: Optional[str] = None

    category: ClassVar[str] = FIXED_COSTS


@dataclass
class VariableCostItem(LineItem):
    base_unit_cost: Optional[float] = None
    base_unit_quantity: Optional[float] = None
    usage_per_serving: Optional[float] = None
    unit: Optional[str] = None

    category: ClassVar[str] = VARIABLE_COGS


LINE_ITEM_TYPES = {cls.category: cls for cls in (CapitalItem, FixedCostItem, VariableCostItem)}


def line_item_from_dict(data: Dict[str, Any]) -> LineItem:
    """Build the right line item type from its stored ``category`` tag."""
    category = data.get("category")
    if category not in LINE_ITEM_TYPES:
        raise ValueError(f"Unknown line item category '{category}'")
    cls = LINE_ITEM_TYPES[category]
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


# -----------------------------------------------------------------------------
# Configuration records
# -----------------------------------------------------------------------------
@dataclass
class BonusScheme:
    target: int = 0
    per_serving_bonus: int = 0
    barista_count: int = 1
    note: str = ""

    def __post_init__(self):
        if self.target < 0:
            raise ValueError("Bonus target cannot be negative")
        if self.per_serving_bonus < 0:
            raise ValueError("Bonus per serving cannot be negative")
        if self.barista_count < 1:
            raise ValueError("At least one barista is required")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BonusScheme":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class FixedAsset:
    name: str
    purchase_cost: int
    purchase_date: date
    depreciation_months: int
    category: str = ""
    note: str = ""
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if isinstance(self.purchase_date, str):
            self.purchase_date = date.fromisoformat(self.purchase_date)
        if self.depreciation_months <= 0:
            raise ValueError("Depreciation months must be greater than 0")
        if self.purchase_cost < 0:
            raise ValueError("Purchase cost cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["purchase_date"] = self.purchase_date.isoformat()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixedAsset":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class RecurringExpense:
    name: str
    amount: int
    frequency: str = "monthly"
    category: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True
    note: str = ""
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if self.frequency not in FREQUENCIES:
            raise ValueError(f"Unknown frequency '{self.frequency}'")
        if isinstance(self.start_date, str):
            self.start_date = date.fromisoformat(self.start_date)
        if isinstance(self.end_date, str):
            self.end_date = date.fromisoformat(self.end_date)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["start_date"] = self.start_date.isoformat() if self.start_date else None
        d["end_date"] = self.end_date.isoformat() if self.end_date else None
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurringExpense":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


# -----------------------------------------------------------------------------
# Derived rows (never persisted)
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ProjectionConfig:
    days_per_month: int
    price_per_serving: int
    fixed_items: List[LineItem]
    cogs_items: List[VariableCostItem]
    bonus_scheme: BonusScheme


@dataclass(frozen=True)
class ProjectionRow:
    servings_per_day: int
    monthly_servings: int
    revenue: int
    variable_cost: int
    gross_profit: int
    fixed_costs: int
    bonus: int
    net_profit: int


@dataclass(frozen=True)
class ShoppingListEntry:
    id: str
    name: str
    unit: str
    usage_per_serving: float
    required_quantity: float
    unit_cost: float
    total_cost: int
    formatted_quantity: str


@dataclass(frozen=True)
class ShoppingList:
    entries: List[ShoppingListEntry]
    total_items: int
    grand_total: int

    @property
    def most_expensive(self) -> Optional[ShoppingListEntry]:
        return self.entries[0] if self.entries else None


@dataclass(frozen=True)
class PurchaseListEntry:
    id: str
    name: str
    unit: str
    required_quantity: float
    package_quantity: float
    package_cost: float
    packages_to_buy: int
    purchased_quantity: float
    waste: float
    waste_percentage: float
    total_cost: int


@dataclass(frozen=True)
class PurchaseList:
    entries: List[PurchaseListEntry]
    total_packages: int
    grand_total: int
    total_waste_cost: int


@dataclass(frozen=True)
class CogsBreakdownRow:
    id: str
    name: str
    cost_per_serving: int
    percentage: float


@dataclass(frozen=True)
class AssetSummary:
    total_assets: int
    total_purchase_cost: int
    total_current_value: float
    total_depreciation: float
