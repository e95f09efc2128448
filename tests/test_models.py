import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from models import (
    BonusScheme,
    CapitalItem,
    FixedAsset,
    FixedCostItem,
    RecurringExpense,
    VariableCostItem,
    line_item_from_dict,
)


def test_line_item_dispatches_on_category():
    data = VariableCostItem(name="Milk", base_unit_cost=20000, base_unit_quantity=1000,
                            usage_per_serving=100, unit="ml").to_dict()
    assert data["category"] == "variable_cogs"
    item = line_item_from_dict(data)
    assert isinstance(item, VariableCostItem)
    assert item.usage_per_serving == 100

    entry = line_item_from_dict({"category": "fixed_costs", "name": "Rent", "value": 5, "id": "r"})
    assert entry == FixedCostItem(name="Rent", value=5, id="r")


def test_line_item_unknown_category():
    with pytest.raises(ValueError):
        line_item_from_dict({"category": "reservations", "name": "x"})


def test_line_item_ids_are_unique():
    assert CapitalItem(name="a").id != CapitalItem(name="a").id


@pytest.mark.parametrize("kwargs", [
    {"target": -1},
    {"per_serving_bonus": -1},
    {"barista_count": 0},
])
def test_bonus_scheme_invariants(kwargs):
    with pytest.raises(ValueError):
        BonusScheme(**kwargs)


def test_fixed_asset_parses_iso_date_and_validates():
    asset = FixedAsset.from_dict({"name": "Bike", "purchase_cost": 100, "purchase_date": "2024-03-01",
                                  "depreciation_months": 12})
    assert asset.purchase_date == date(2024, 3, 1)
    assert asset.to_dict()["purchase_date"] == "2024-03-01"
    with pytest.raises(ValueError):
        FixedAsset(name="Bike", purchase_cost=100, purchase_date=date(2024, 3, 1), depreciation_months=0)


def test_recurring_expense_frequency():
    with pytest.raises(ValueError):
        RecurringExpense(name="Rent", amount=1, frequency="weekly")
