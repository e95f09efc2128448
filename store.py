"""JSON-file persistence for line items, bonus schemes, assets and settings.

Every call takes the business id explicitly; each business gets its own
folder under the data directory.
"""

import json
import logging
from dataclasses import fields
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from calc import (
    current_value,
    is_active_on,
    monthly_depreciation,
    monthly_depreciation_from_years,
    summarize_assets,
    update_calculated_value,
)
from events import Event, EventBus, EventType
from models import (
    CAPITAL,
    FIXED_COSTS,
    LINE_ITEM_TYPES,
    AssetSummary,
    BonusScheme,
    CapitalItem,
    FixedAsset,
    FixedCostItem,
    LineItem,
    RecurringExpense,
    VariableCostItem,
    line_item_from_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "data"


class StorageError(Exception):
    """Raised when stored data cannot be read or written."""


class RecordNotFound(StorageError, LookupError):
    pass


# -----------------------------------------------------------------------------
# Low-level state files
# -----------------------------------------------------------------------------
def _state_path(data_dir: Path, business_id: str, name: str) -> Path:
    if not business_id:
        raise ValueError("business_id is required")
    return Path(data_dir) / business_id / f"{name}.json"


def load_state(business_id: str, name: str, default, data_dir: Optional[Path] = None):
    """Read a state file, writing ``default`` when it does not exist yet."""
    path = _state_path(data_dir or DEFAULT_DATA_DIR, business_id, name)
    try:
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict) and isinstance(default, dict):
                merged = default.copy()
                merged.update(data)
                return merged
            return data
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read %s: %s", path, e)
        raise StorageError(f"Cannot read {name} for {business_id}: {e}") from e
    save_state(business_id, name, default, data_dir)
    return default


def save_state(business_id: str, name: str, data, data_dir: Optional[Path] = None) -> None:
    path = _state_path(data_dir or DEFAULT_DATA_DIR, business_id, name)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
    except OSError as e:
        logger.error("Cannot write %s: %s", path, e)
        raise StorageError(f"Cannot save {name} for {business_id}: {e}") from e
    logger.debug("Saved %s for %s", name, business_id)


# -----------------------------------------------------------------------------
# Seed data
# -----------------------------------------------------------------------------
def default_line_items() -> List[Dict[str, Any]]:
    items = [
        CapitalItem(name="Electric Cargo Bike", value=19500000, id="1"),
        FixedCostItem(name="Depreciation (2-year)", value=812500, id="2"),
        FixedCostItem(name="Warehouse Rent", value=1000000, id="3"),
        FixedCostItem(name="Barista Salary", value=2000000, id="4"),
        VariableCostItem(name="Milk (100ml)", id="5", base_unit_cost=20000,
                         base_unit_quantity=1000, usage_per_serving=100, unit="ml"),
        VariableCostItem(name="Coffee Beans (5g)", id="6", base_unit_cost=200000,
                         base_unit_quantity=1000, usage_per_serving=5, unit="g"),
        VariableCostItem(name="Palm Sugar (10ml)", id="7", base_unit_cost=48500,
                         base_unit_quantity=1000, usage_per_serving=10, unit="ml"),
        VariableCostItem(name="Cup + Lid", id="8", base_unit_cost=850,
                         base_unit_quantity=1, usage_per_serving=1, unit="piece"),
        VariableCostItem(name="Ice Cubes (100g)", id="9", base_unit_cost=2920,
                         base_unit_quantity=1000, usage_per_serving=100, unit="g"),
    ]
    for it in items:
        if isinstance(it, VariableCostItem):
            update_calculated_value(it)
    return [it.to_dict() for it in items]


DEFAULT_BONUS_SCHEME = {"target": 1320, "per_serving_bonus": 500, "barista_count": 1, "note": ""}

DEFAULT_SETTINGS = {
    "days_per_month": 22,
    "price_per_serving": 8000,
    "daily_target": 60,
    "currency": "IDR",
    "locale": "id_ID",
}


def _check_not_owned(item: LineItem) -> None:
    if isinstance(item, FixedCostItem) and item.source_asset_id:
        raise ValueError(f"'{item.name}' is generated from asset '{item.source_asset_id}'; change the asset instead")


class _Store:
    def __init__(self, data_dir: Optional[Path] = None, bus: Optional[EventBus] = None):
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self.bus = bus or EventBus()

    def _publish(self, event_type: EventType, business_id: str,
                 subject_id: Optional[str] = None, subject_name: Optional[str] = None) -> None:
        self.bus.publish(Event(event_type, business_id, subject_id, subject_name))


# -----------------------------------------------------------------------------
# Line items
# -----------------------------------------------------------------------------
class LineItemStore(_Store):
    NAME = "line_items"

    def _load(self, business_id: str) -> List[LineItem]:
        raw = load_state(business_id, self.NAME, default_line_items(), self.data_dir)
        try:
            return [line_item_from_dict(d) for d in raw]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Malformed line items for {business_id}: {e}") from e

    def _save(self, business_id: str, items: List[LineItem]) -> None:
        save_state(business_id, self.NAME, [it.to_dict() for it in items], self.data_dir)

    def all(self, business_id: str) -> List[LineItem]:
        return self._load(business_id)

    def get_by_category(self, business_id: str, category: str) -> List[LineItem]:
        if category not in LINE_ITEM_TYPES:
            raise ValueError(f"Unknown line item category '{category}'")
        return [it for it in self._load(business_id) if it.category == category]

    def get(self, business_id: str, item_id: str) -> Optional[LineItem]:
        for it in self._load(business_id):
            if it.id == item_id:
                return it
        return None

    def create(self, business_id: str, item: LineItem) -> LineItem:
        items = self._load(business_id)
        if any(it.id == item.id for it in items):
            raise ValueError(f"Line item '{item.id}' already exists")
        if isinstance(item, VariableCostItem):
            update_calculated_value(item)
        items.append(item)
        self._save(business_id, items)
        self._publish(EventType.LINE_ITEMS_CHANGED, business_id, item.id, item.name)
        if isinstance(item, CapitalItem):
            self._sync_capital_depreciation(business_id, None, item)
        return item

    def update(self, business_id: str, item_id: str, **changes) -> LineItem:
        items = self._load(business_id)
        for i, it in enumerate(items):
            if it.id == item_id:
                break
        else:
            raise RecordNotFound(f"Line item '{item_id}' not found")
        previous = items[i]
        _check_not_owned(previous)
        allowed = {f.name for f in fields(previous)} - {"id", "source_asset_id"}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise ValueError(f"Unknown line item field(s): {', '.join(unknown)}")
        data = previous.to_dict()
        data.update(changes)
        data["id"] = item_id
        data["category"] = previous.category
        updated = line_item_from_dict(data)
        if isinstance(updated, VariableCostItem):
            update_calculated_value(updated)
        items[i] = updated
        self._save(business_id, items)
        self._publish(EventType.LINE_ITEMS_CHANGED, business_id, updated.id, updated.name)
        if isinstance(updated, CapitalItem):
            self._sync_capital_depreciation(business_id, previous, updated)
        return updated

    def replace_category(self, business_id: str, category: str, new_items: List[LineItem]) -> List[LineItem]:
        """Swap every item of one category for ``new_items``.

        Depreciation entries owned by an asset survive a fixed-cost
        replacement; replacing capital items re-syncs their entries.
        """
        if any(it.category != category for it in new_items):
            raise ValueError(f"All items must belong to '{category}'")
        for it in new_items:
            _check_not_owned(it)
            if isinstance(it, VariableCostItem):
                update_calculated_value(it)
        current = self._load(business_id)
        kept = [it for it in current
                if it.category != category or (isinstance(it, FixedCostItem) and it.source_asset_id)]
        self._save(business_id, kept + list(new_items))
        self._publish(EventType.LINE_ITEMS_CHANGED, business_id)

        if category == CAPITAL:
            old = {it.id: it for it in current if isinstance(it, CapitalItem)}
            new_ids = {it.id for it in new_items}
            for item_id in old:
                if item_id not in new_ids:
                    self.remove_depreciation_entry(business_id, item_id)
            for it in new_items:
                self._sync_capital_depreciation(business_id, old.get(it.id), it)
        return list(new_items)

    def delete(self, business_id: str, item_id: str) -> None:
        items = self._load(business_id)
        target = next((it for it in items if it.id == item_id), None)
        if target is None:
            raise RecordNotFound(f"Line item '{item_id}' not found")
        _check_not_owned(target)
        self._save(business_id, [it for it in items if it.id != item_id])
        self._publish(EventType.LINE_ITEMS_CHANGED, business_id, item_id, target.name)
        if isinstance(target, CapitalItem) and target.is_fixed_asset:
            self.remove_depreciation_entry(business_id, item_id)

    # -- depreciation entries ---------------------------------------------
    def find_depreciation_entry(self, business_id: str, source_id: str) -> Optional[FixedCostItem]:
        for it in self.get_by_category(business_id, FIXED_COSTS):
            if it.source_asset_id == source_id:
                return it
        return None

    def upsert_depreciation_entry(self, business_id: str, source_id: str, name: str,
                                  value: int, note: str = "") -> FixedCostItem:
        """Create or refresh the fixed-cost entry generated by an asset."""
        items = self._load(business_id)
        existing = next((it for it in items
                         if isinstance(it, FixedCostItem) and it.source_asset_id == source_id), None)
        entry_name = f"Depreciation: {name}"
        if existing is None:
            entry = FixedCostItem(name=entry_name, value=value, note=note,
                                  id=f"depreciation-{source_id}", source_asset_id=source_id)
            items.append(entry)
            event_type = EventType.DEPRECIATION_CREATED
        else:
            existing.name, existing.value, existing.note = entry_name, value, note
            entry = existing
            event_type = EventType.DEPRECIATION_UPDATED
        self._save(business_id, items)
        self._publish(event_type, business_id, source_id, name)
        return entry

    def remove_depreciation_entry(self, business_id: str, source_id: str) -> bool:
        items = self._load(business_id)
        entry = next((it for it in items
                      if isinstance(it, FixedCostItem) and it.source_asset_id == source_id), None)
        if entry is None:
            return False
        self._save(business_id, [it for it in items if it is not entry])
        self._publish(EventType.DEPRECIATION_DELETED, business_id, source_id,
                      entry.name.replace("Depreciation: ", ""))
        return True

    def _sync_capital_depreciation(self, business_id: str, previous: Optional[CapitalItem],
                                   current: CapitalItem) -> None:
        was_asset = bool(previous and previous.is_fixed_asset)
        years = current.estimated_useful_life_years
        if current.is_fixed_asset and years and years > 0:
            self.upsert_depreciation_entry(
                business_id, current.id, current.name,
                monthly_depreciation_from_years(current.value, years),
                note=f"Auto-generated depreciation for {current.name} ({years} years useful life)",
            )
        elif was_asset:
            self.remove_depreciation_entry(business_id, current.id)


# -----------------------------------------------------------------------------
# Bonus scheme
# -----------------------------------------------------------------------------
class BonusSchemeStore(_Store):
    NAME = "bonus_scheme"

    def get_current(self, business_id: str) -> Optional[BonusScheme]:
        data = load_state(business_id, self.NAME, None, self.data_dir)
        if not data:
            return None
        try:
            return BonusScheme.from_dict(data)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Malformed bonus scheme for {business_id}: {e}") from e

    def create(self, business_id: str, scheme: BonusScheme) -> BonusScheme:
        """Replace whatever scheme is active with ``scheme``."""
        save_state(business_id, self.NAME, scheme.to_dict(), self.data_dir)
        self._publish(EventType.BONUS_SCHEME_CHANGED, business_id)
        return scheme

    def update(self, business_id: str, **changes) -> BonusScheme:
        current = self.get_current(business_id)
        if current is None:
            raise RecordNotFound("No bonus scheme found to update")
        data = current.to_dict()
        data.update(changes)
        return self.create(business_id, BonusScheme.from_dict(data))

    def ensure_exists(self, business_id: str) -> BonusScheme:
        current = self.get_current(business_id)
        if current is not None:
            return current
        return self.create(business_id, BonusScheme.from_dict(DEFAULT_BONUS_SCHEME))


# -----------------------------------------------------------------------------
# Fixed assets
# -----------------------------------------------------------------------------
class FixedAssetStore(_Store):
    NAME = "fixed_assets"

    def __init__(self, line_items: LineItemStore, data_dir: Optional[Path] = None,
                 bus: Optional[EventBus] = None):
        super().__init__(data_dir or line_items.data_dir, bus or line_items.bus)
        self.line_items = line_items

    def _load(self, business_id: str) -> List[FixedAsset]:
        raw = load_state(business_id, self.NAME, [], self.data_dir)
        try:
            return [FixedAsset.from_dict(d) for d in raw]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Malformed fixed assets for {business_id}: {e}") from e

    def _save(self, business_id: str, assets: List[FixedAsset]) -> None:
        save_state(business_id, self.NAME, [a.to_dict() for a in assets], self.data_dir)

    def get_all(self, business_id: str) -> List[FixedAsset]:
        return self._load(business_id)

    def get(self, business_id: str, asset_id: str) -> Optional[FixedAsset]:
        return next((a for a in self._load(business_id) if a.id == asset_id), None)

    def current_values(self, business_id: str, now: Optional[date] = None) -> Dict[str, float]:
        return {a.id: current_value(a, now) for a in self._load(business_id)}

    def _sync_entry(self, business_id: str, asset: FixedAsset) -> None:
        # written after the asset itself; a failure here leaves the asset saved
        self.line_items.upsert_depreciation_entry(
            business_id, asset.id, asset.name, monthly_depreciation(asset),
            note=f"Monthly depreciation for {asset.name} ({asset.depreciation_months} months)",
        )

    def create(self, business_id: str, asset: FixedAsset) -> FixedAsset:
        assets = self._load(business_id)
        if any(a.id == asset.id for a in assets):
            raise ValueError(f"Fixed asset '{asset.id}' already exists")
        assets.append(asset)
        self._save(business_id, assets)
        self._publish(EventType.ASSET_CREATED, business_id, asset.id, asset.name)
        self._sync_entry(business_id, asset)
        return asset

    def update(self, business_id: str, asset_id: str, **changes) -> FixedAsset:
        assets = self._load(business_id)
        for i, a in enumerate(assets):
            if a.id == asset_id:
                break
        else:
            raise RecordNotFound("Fixed asset not found")
        data = assets[i].to_dict()
        data.update(changes)
        data["id"] = asset_id
        updated = FixedAsset.from_dict(data)
        assets[i] = updated
        self._save(business_id, assets)
        self._publish(EventType.ASSET_UPDATED, business_id, updated.id, updated.name)
        self._sync_entry(business_id, updated)
        return updated

    def delete(self, business_id: str, asset_id: str) -> None:
        assets = self._load(business_id)
        target = next((a for a in assets if a.id == asset_id), None)
        if target is None:
            raise RecordNotFound("Fixed asset not found")
        self.line_items.remove_depreciation_entry(business_id, asset_id)
        self._save(business_id, [a for a in assets if a.id != asset_id])
        self._publish(EventType.ASSET_DELETED, business_id, asset_id, target.name)

    def summary(self, business_id: str, now: Optional[date] = None) -> AssetSummary:
        return summarize_assets(self._load(business_id), now)


# -----------------------------------------------------------------------------
# Recurring expenses
# -----------------------------------------------------------------------------
class RecurringExpenseStore(_Store):
    NAME = "recurring_expenses"

    def _load(self, business_id: str) -> List[RecurringExpense]:
        raw = load_state(business_id, self.NAME, [], self.data_dir)
        try:
            return [RecurringExpense.from_dict(d) for d in raw]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Malformed recurring expenses for {business_id}: {e}") from e

    def _save(self, business_id: str, expenses: List[RecurringExpense]) -> None:
        save_state(business_id, self.NAME, [e.to_dict() for e in expenses], self.data_dir)

    def get_all(self, business_id: str) -> List[RecurringExpense]:
        return self._load(business_id)

    def get_active(self, business_id: str) -> List[RecurringExpense]:
        return [e for e in self._load(business_id) if e.is_active]

    def get_current(self, business_id: str, day: Optional[date] = None) -> List[RecurringExpense]:
        """Active expenses whose start/end range covers ``day`` (default: today)."""
        day = day or date.today()
        return [e for e in self._load(business_id) if is_active_on(e, day)]

    def get(self, business_id: str, expense_id: str) -> Optional[RecurringExpense]:
        return next((e for e in self._load(business_id) if e.id == expense_id), None)

    def create(self, business_id: str, expense: RecurringExpense) -> RecurringExpense:
        expenses = self._load(business_id)
        expenses.append(expense)
        self._save(business_id, expenses)
        return expense

    def update(self, business_id: str, expense_id: str, **changes) -> RecurringExpense:
        expenses = self._load(business_id)
        for i, e in enumerate(expenses):
            if e.id == expense_id:
                break
        else:
            raise RecordNotFound("Recurring expense not found")
        data = expenses[i].to_dict()
        data.update(changes)
        data["id"] = expense_id
        expenses[i] = RecurringExpense.from_dict(data)
        self._save(business_id, expenses)
        return expenses[i]

    def delete(self, business_id: str, expense_id: str) -> None:
        expenses = self._load(business_id)
        if not any(e.id == expense_id for e in expenses):
            raise RecordNotFound("Recurring expense not found")
        self._save(business_id, [e for e in expenses if e.id != expense_id])

    def soft_delete(self, business_id: str, expense_id: str) -> RecurringExpense:
        return self.update(business_id, expense_id, is_active=False)

    def restore(self, business_id: str, expense_id: str) -> RecurringExpense:
        return self.update(business_id, expense_id, is_active=True)


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
class SettingsStore(_Store):
    NAME = "settings"

    def load(self, business_id: str) -> Dict[str, Any]:
        return load_state(business_id, self.NAME, dict(DEFAULT_SETTINGS), self.data_dir)

    def save(self, business_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        merged = self.load(business_id)
        merged.update(settings)
        save_state(business_id, self.NAME, merged, self.data_dir)
        return merged


def reset_business(business_id: str, data_dir: Optional[Path] = None) -> None:
    """Delete every state file of a business so defaults are seeded again."""
    folder = Path(data_dir or DEFAULT_DATA_DIR) / business_id
    if not folder.exists():
        return
    try:
        for path in folder.glob("*.json"):
            path.unlink()
    except OSError as e:
        raise StorageError(f"Cannot reset data for {business_id}: {e}") from e
    logger.info("Reset data for %s", business_id)
