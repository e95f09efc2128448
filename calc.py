"""Pure calculation utilities for coffee cart cost and profit planning."""

import math
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from models import (
    AssetSummary,
    BonusScheme,
    CogsBreakdownRow,
    FixedAsset,
    LineItem,
    ProjectionConfig,
    ProjectionRow,
    PurchaseList,
    PurchaseListEntry,
    RecurringExpense,
    ShoppingList,
    ShoppingListEntry,
    VariableCostItem,
)

SERVINGS_SWEEP = range(10, 201, 10)

# unit -> (threshold, larger unit, factor)
UNIT_CONVERSIONS = {
    "ml": (1000, "l", 1000),
    "g": (1000, "kg", 1000),
    "tsp": (3, "tbsp", 3),
    "tbsp": (16, "cup", 16),
}

QUANTITY_DECIMALS = {
    "ml": 0,
    "g": 0,
    "l": 2,
    "kg": 2,
    "piece": 1,
    "cup": 2,
    "tbsp": 1,
    "tsp": 1,
}


def round_currency(x: float) -> int:
    """Round half-up to a whole currency unit."""
    return int(math.floor(x + 0.5))


# -----------------------------------------------------------------------------
# Cost per serving
# -----------------------------------------------------------------------------
def cost_per_serving(item: VariableCostItem) -> int:
    """Cost of one serving for an ingredient, 0 when pricing data is incomplete."""
    cost = getattr(item, "base_unit_cost", None)
    qty = getattr(item, "base_unit_quantity", None)
    usage = getattr(item, "usage_per_serving", None)
    if cost is None or qty is None or usage is None or qty <= 0:
        return 0
    return round_currency((float(cost) / float(qty)) * float(usage))


def update_calculated_value(item: VariableCostItem) -> VariableCostItem:
    """Recompute ``item.value`` from its pricing fields, in place."""
    item.value = cost_per_serving(item)
    return item


def total_cost_per_serving(items: Iterable[VariableCostItem]) -> int:
    return sum(cost_per_serving(it) for it in items)


def has_complete_cogs_data(item: VariableCostItem) -> bool:
    qty = getattr(item, "base_unit_quantity", None)
    return (
        getattr(item, "base_unit_cost", None) is not None
        and qty is not None
        and getattr(item, "usage_per_serving", None) is not None
        and bool(getattr(item, "unit", None))
        and qty > 0
    )


def validate_cogs_fields(base_unit_cost: Optional[float] = None,
                         base_unit_quantity: Optional[float] = None,
                         usage_per_serving: Optional[float] = None) -> List[str]:
    """Return user-facing messages for invalid ingredient pricing input."""
    errors = []
    if base_unit_cost is not None and base_unit_cost <= 0:
        errors.append("Base unit cost must be greater than 0")
    if base_unit_quantity is not None and base_unit_quantity <= 0:
        errors.append("Base unit quantity must be greater than 0")
    if usage_per_serving is not None and usage_per_serving < 0:
        errors.append("Usage per serving cannot be negative")
    return errors


def cogs_breakdown(items: List[VariableCostItem]) -> List[CogsBreakdownRow]:
    """Share of each ingredient in the total cost per serving."""
    total = total_cost_per_serving(items)
    rows = []
    for it in items:
        cps = cost_per_serving(it)
        pct = (cps / total) * 100 if total > 0 else 0.0
        rows.append(CogsBreakdownRow(id=it.id, name=it.name, cost_per_serving=cps,
                                     percentage=round(pct, 2)))
    return rows


# -----------------------------------------------------------------------------
# Units
# -----------------------------------------------------------------------------
def convert_to_larger_unit(quantity: float, unit: str) -> Tuple[float, str]:
    """Scale a quantity up to the next readable unit (e.g. 1500 ml -> 1.5 l)."""
    conv = UNIT_CONVERSIONS.get(unit)
    if conv and quantity >= conv[0]:
        _, target, factor = conv
        return round(quantity / factor, 2), target
    return quantity, unit


def format_quantity(amount: float, unit: str) -> str:
    """Human-readable quantity; unknown units are shown as given."""
    if unit not in QUANTITY_DECIMALS:
        return f"{amount:g} {unit}".strip()
    # rounded first so a value that displays as 1,000 ml is shown as 1.00 l
    value, shown = convert_to_larger_unit(round(amount, QUANTITY_DECIMALS[unit]), unit)
    decimals = QUANTITY_DECIMALS[shown]
    return f"{value:,.{decimals}f} {shown}"


# -----------------------------------------------------------------------------
# Shopping lists
# -----------------------------------------------------------------------------
def generate_shopping_list(items: Iterable[VariableCostItem], daily_target: float) -> ShoppingList:
    """Ingredient quantities and costs needed for one day at ``daily_target`` servings."""
    entries = []
    for it in items:
        if not has_complete_cogs_data(it):
            continue
        required = float(it.usage_per_serving) * daily_target if daily_target > 0 else 0.0
        unit_cost = float(it.base_unit_cost) / float(it.base_unit_quantity)
        entries.append(ShoppingListEntry(
            id=it.id,
            name=it.name,
            unit=it.unit,
            usage_per_serving=it.usage_per_serving,
            required_quantity=required,
            unit_cost=unit_cost,
            total_cost=round_currency(required * unit_cost),
            formatted_quantity=format_quantity(required, it.unit),
        ))
    entries.sort(key=lambda e: e.total_cost, reverse=True)
    return ShoppingList(
        entries=entries,
        total_items=len(entries),
        grand_total=sum(e.total_cost for e in entries),
    )


def generate_purchase_list(items: Iterable[VariableCostItem], daily_target: float) -> PurchaseList:
    """Shopping list rounded up to whole purchasable packages."""
    items = list(items)
    raw = generate_shopping_list(items, daily_target)
    by_id = {it.id: it for it in items}
    entries = []
    for e in raw.entries:
        it = by_id[e.id]
        pack_qty = float(it.base_unit_quantity)
        packages = math.ceil(e.required_quantity / pack_qty) if e.required_quantity > 0 else 0
        purchased = packages * pack_qty
        waste = max(0.0, purchased - e.required_quantity)
        entries.append(PurchaseListEntry(
            id=e.id,
            name=e.name,
            unit=e.unit,
            required_quantity=e.required_quantity,
            package_quantity=pack_qty,
            package_cost=float(it.base_unit_cost),
            packages_to_buy=packages,
            purchased_quantity=purchased,
            waste=waste,
            waste_percentage=(waste / purchased) * 100 if purchased > 0 else 0.0,
            total_cost=round_currency(packages * float(it.base_unit_cost)),
        ))
    entries.sort(key=lambda e: e.total_cost, reverse=True)
    grand_total = sum(e.total_cost for e in entries)
    return PurchaseList(
        entries=entries,
        total_packages=sum(e.packages_to_buy for e in entries),
        grand_total=grand_total,
        total_waste_cost=grand_total - raw.grand_total,
    )


# -----------------------------------------------------------------------------
# Projections
# -----------------------------------------------------------------------------
def bonus_for(monthly_servings: int, scheme: BonusScheme) -> int:
    """Staff bonus for servings sold above the monthly target."""
    if monthly_servings <= scheme.target:
        return 0
    return (monthly_servings - scheme.target) * scheme.per_serving_bonus * scheme.barista_count


def generate_projections(config: ProjectionConfig) -> List[ProjectionRow]:
    """Monthly profit projection for 10..200 servings per day in steps of 10."""
    fixed_total = sum(it.value for it in config.fixed_items)
    cps = total_cost_per_serving(config.cogs_items)
    rows = []
    for per_day in SERVINGS_SWEEP:
        monthly = per_day * config.days_per_month
        revenue = monthly * config.price_per_serving
        variable = monthly * cps
        gross = revenue - variable
        bonus = bonus_for(monthly, config.bonus_scheme)
        rows.append(ProjectionRow(
            servings_per_day=per_day,
            monthly_servings=monthly,
            revenue=revenue,
            variable_cost=variable,
            gross_profit=gross,
            fixed_costs=fixed_total,
            bonus=bonus,
            net_profit=gross - fixed_total - bonus,
        ))
    return rows


def find_break_even(rows: Iterable[ProjectionRow]) -> Optional[ProjectionRow]:
    for row in rows:
        if row.net_profit >= 0:
            return row
    return None


def payback_months(initial_capital: float, row: ProjectionRow) -> Optional[float]:
    """Months of net profit needed to earn back the initial capital."""
    if row.net_profit <= 0:
        return None
    return initial_capital / row.net_profit


# -----------------------------------------------------------------------------
# Depreciation
# -----------------------------------------------------------------------------
def months_elapsed(start: date, end: date) -> int:
    """Whole calendar months between two dates."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def current_value(asset: FixedAsset, now: Optional[date] = None) -> float:
    """Straight-line book value of an asset at ``now`` (default: today)."""
    now = now or date.today()
    elapsed = max(months_elapsed(asset.purchase_date, now), 0)
    if elapsed >= asset.depreciation_months:
        return 0
    per_month = asset.purchase_cost / asset.depreciation_months
    return max(0, asset.purchase_cost - per_month * elapsed)


def monthly_depreciation(asset: FixedAsset) -> int:
    if asset.depreciation_months <= 0:
        return 0
    return round_currency(asset.purchase_cost / asset.depreciation_months)


def monthly_depreciation_from_years(value: float, years: int) -> int:
    """Monthly depreciation of a capital item over a useful life in years."""
    if not years or years <= 0:
        return 0
    return round_currency(value / years / 12)


def summarize_assets(assets: Iterable[FixedAsset], now: Optional[date] = None) -> AssetSummary:
    assets = list(assets)
    purchase = sum(a.purchase_cost for a in assets)
    current = sum(current_value(a, now) for a in assets)
    return AssetSummary(
        total_assets=len(assets),
        total_purchase_cost=purchase,
        total_current_value=current,
        total_depreciation=purchase - current,
    )


# -----------------------------------------------------------------------------
# Recurring expenses
# -----------------------------------------------------------------------------
def monthly_amount(expense: RecurringExpense) -> float:
    if expense.frequency == "yearly":
        return expense.amount / 12
    return float(expense.amount)


def recurring_monthly_total(expenses: Iterable[RecurringExpense]) -> float:
    return sum(monthly_amount(e) for e in expenses if e.is_active)


def yearly_amount(expense: RecurringExpense) -> float:
    if expense.frequency == "yearly":
        return float(expense.amount)
    return expense.amount * 12.0


def recurring_yearly_total(expenses: Iterable[RecurringExpense]) -> float:
    return sum(yearly_amount(e) for e in expenses if e.is_active)


def totals_by_category(expenses: Iterable[RecurringExpense]) -> List[Dict[str, float]]:
    """Monthly and yearly totals of active expenses per category, sorted by name."""
    totals: Dict[str, Dict[str, float]] = {}
    for e in expenses:
        if not e.is_active:
            continue
        t = totals.setdefault(e.category, {"monthly": 0.0, "yearly": 0.0})
        t["monthly"] += monthly_amount(e)
        t["yearly"] += yearly_amount(e)
    return [{"category": c, **totals[c]} for c in sorted(totals)]


def is_active_on(expense: RecurringExpense, day: date) -> bool:
    if not expense.is_active:
        return False
    if expense.start_date and day < expense.start_date:
        return False
    if expense.end_date and day > expense.end_date:
        return False
    return True


def initial_capital_total(items: Iterable[LineItem]) -> int:
    return sum(it.value for it in items)
