import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from calc import (
    bonus_for,
    cogs_breakdown,
    convert_to_larger_unit,
    cost_per_serving,
    current_value,
    find_break_even,
    format_quantity,
    generate_projections,
    generate_purchase_list,
    generate_shopping_list,
    has_complete_cogs_data,
    is_active_on,
    monthly_depreciation,
    monthly_depreciation_from_years,
    months_elapsed,
    payback_months,
    recurring_monthly_total,
    recurring_yearly_total,
    summarize_assets,
    total_cost_per_serving,
    totals_by_category,
    update_calculated_value,
    validate_cogs_fields,
)
from models import BonusScheme, FixedAsset, FixedCostItem, ProjectionConfig, RecurringExpense, VariableCostItem


def milk(usage=100):
    return VariableCostItem(name="Milk", base_unit_cost=20000, base_unit_quantity=1000,
                            usage_per_serving=usage, unit="ml")


def beans(usage=5):
    return VariableCostItem(name="Beans", base_unit_cost=200000, base_unit_quantity=1000,
                            usage_per_serving=usage, unit="g")


def cup():
    return VariableCostItem(name="Cup + Lid", base_unit_cost=850, base_unit_quantity=1,
                            usage_per_serving=1, unit="piece")


def scenario_config(**overrides):
    cfg = dict(
        days_per_month=22,
        price_per_serving=8000,
        fixed_items=[FixedCostItem(name="Rent", value=1000000)],
        cogs_items=[milk(usage=15)],
        bonus_scheme=BonusScheme(target=1000, per_serving_bonus=500, barista_count=2),
    )
    cfg.update(overrides)
    return ProjectionConfig(**cfg)


# -----------------------------------------------------------------------------
# cost per serving
# -----------------------------------------------------------------------------
def test_cost_per_serving():
    assert cost_per_serving(milk(usage=15)) == 300


def test_cost_per_serving_rounds_half_up():
    item = VariableCostItem(name="Syrup", base_unit_cost=1, base_unit_quantity=2, usage_per_serving=1, unit="ml")
    assert cost_per_serving(item) == 1


@pytest.mark.parametrize("changes", [
    {"base_unit_cost": None},
    {"base_unit_quantity": None},
    {"usage_per_serving": None},
    {"base_unit_quantity": 0},
    {"base_unit_quantity": -5},
])
def test_cost_per_serving_incomplete_is_zero(changes):
    item = milk()
    for k, v in changes.items():
        setattr(item, k, v)
    assert cost_per_serving(item) == 0


def test_update_calculated_value_in_place():
    item = milk()
    item.value = 1
    assert update_calculated_value(item) is item
    assert item.value == 2000


def test_total_cost_per_serving_ignores_incomplete():
    broken = VariableCostItem(name="Mystery", value=999)
    assert total_cost_per_serving([milk(), beans(), cup(), broken]) == 2000 + 1000 + 850


def test_has_complete_cogs_data_requires_unit():
    item = milk()
    item.unit = None
    assert has_complete_cogs_data(milk())
    assert not has_complete_cogs_data(item)


def test_cogs_breakdown_percentages():
    rows = cogs_breakdown([milk(usage=15), beans(usage=0.5)])
    assert [r.cost_per_serving for r in rows] == [300, 100]
    assert [r.percentage for r in rows] == [75.0, 25.0]


def test_validate_cogs_fields():
    assert validate_cogs_fields(20000, 1000, 10) == []
    assert validate_cogs_fields(0, 1000, -1) == [
        "Base unit cost must be greater than 0",
        "Usage per serving cannot be negative",
    ]


# -----------------------------------------------------------------------------
# units
# -----------------------------------------------------------------------------
def test_convert_to_larger_unit():
    assert convert_to_larger_unit(1500, "ml") == (1.5, "l")
    assert convert_to_larger_unit(999, "g") == (999, "g")
    assert convert_to_larger_unit(32, "tbsp") == (2.0, "cup")


def test_format_quantity():
    assert format_quantity(1500, "ml") == "1.50 l"
    assert format_quantity(2500, "g") == "2.50 kg"
    assert format_quantity(300, "g") == "300 g"
    assert format_quantity(6, "tsp") == "2.0 tbsp"
    assert format_quantity(1.5, "piece") == "1.5 piece"


def test_format_quantity_switches_unit_at_displayed_threshold():
    assert format_quantity(999.6, "ml") == "1.00 l"
    assert format_quantity(999.4, "ml") == "999 ml"


def test_format_quantity_unknown_unit_passes_through():
    assert format_quantity(3, "box") == "3 box"
    assert format_quantity(2500, "oz") == "2500 oz"


# -----------------------------------------------------------------------------
# shopping list
# -----------------------------------------------------------------------------
def test_shopping_list_totals_and_order():
    incomplete = VariableCostItem(name="Sugar", base_unit_cost=10000, base_unit_quantity=1000, usage_per_serving=5)
    result = generate_shopping_list([cup(), beans(), incomplete, milk()], 60)
    assert [e.name for e in result.entries] == ["Milk", "Beans", "Cup + Lid"]
    assert [e.total_cost for e in result.entries] == [120000, 60000, 51000]
    assert result.grand_total == sum(e.total_cost for e in result.entries) == 231000
    assert result.total_items == 3
    assert result.most_expensive.name == "Milk"
    assert result.entries[0].formatted_quantity == "6.00 l"
    assert result.entries[0].unit_cost == pytest.approx(20.0)


def test_shopping_list_zero_target_keeps_entries():
    result = generate_shopping_list([milk(), beans()], 0)
    assert len(result.entries) == 2
    assert all(e.required_quantity == 0 and e.total_cost == 0 for e in result.entries)
    assert result.grand_total == 0


def test_shopping_list_negative_target_is_zero():
    result = generate_shopping_list([milk()], -10)
    assert result.entries[0].required_quantity == 0
    assert result.grand_total == 0


def test_shopping_list_empty():
    result = generate_shopping_list([], 60)
    assert result.entries == []
    assert result.most_expensive is None


def test_purchase_list_rounds_up_to_packages():
    result = generate_purchase_list([milk(), beans(), cup()], 60)
    assert [e.name for e in result.entries] == ["Beans", "Milk", "Cup + Lid"]
    by_name = {e.name: e for e in result.entries}
    assert by_name["Beans"].packages_to_buy == 1
    assert by_name["Beans"].waste == pytest.approx(700)
    assert by_name["Beans"].waste_percentage == pytest.approx(70.0)
    assert by_name["Milk"].packages_to_buy == 6
    assert by_name["Milk"].waste == 0
    assert result.total_packages == 67
    assert result.grand_total == 371000
    assert result.total_waste_cost == 371000 - 231000


def test_purchase_list_zero_target():
    result = generate_purchase_list([milk()], 0)
    assert result.entries[0].packages_to_buy == 0
    assert result.grand_total == 0


# -----------------------------------------------------------------------------
# projections
# -----------------------------------------------------------------------------
def test_projection_scenario():
    rows = generate_projections(scenario_config())
    assert len(rows) == 21
    assert [r.servings_per_day for r in rows][:3] == [10, 20, 30]
    assert rows[-1].servings_per_day == 200
    row = rows[4]
    assert row.servings_per_day == 50
    assert row.monthly_servings == 1100
    assert row.revenue == 8800000
    assert row.variable_cost == 330000
    assert row.gross_profit == 8470000
    assert row.bonus == 100000
    assert row.net_profit == 7370000


def test_net_profit_identity_holds_for_every_row():
    configs = [scenario_config(), scenario_config(price_per_serving=-500, days_per_month=0)]
    for cfg in configs:
        for r in generate_projections(cfg):
            assert r.net_profit == r.gross_profit - r.fixed_costs - r.bonus


def test_bonus_boundary():
    scheme = BonusScheme(target=1000, per_serving_bonus=500, barista_count=2)
    assert bonus_for(1000, scheme) == 0
    assert bonus_for(1001, scheme) == 500 * 2
    assert bonus_for(0, scheme) == 0


def test_projections_are_idempotent():
    cfg = scenario_config()
    assert generate_projections(cfg) == generate_projections(cfg)


def test_projection_uses_computed_cogs_not_stale_value():
    stale = milk(usage=15)
    stale.value = 12345
    row = generate_projections(scenario_config(cogs_items=[stale]))[0]
    assert row.variable_cost == row.monthly_servings * 300


def test_break_even_and_payback():
    rows = generate_projections(scenario_config(fixed_items=[FixedCostItem(name="Rent", value=5000000)]))
    be = find_break_even(rows)
    assert be.net_profit >= 0
    assert rows[rows.index(be) - 1].net_profit < 0
    assert payback_months(be.net_profit * 4, be) == pytest.approx(4)


def test_no_break_even_with_loss_per_serving():
    rows = generate_projections(scenario_config(price_per_serving=100))
    assert find_break_even(rows) is None
    assert payback_months(1000000, rows[0]) is None


# -----------------------------------------------------------------------------
# depreciation
# -----------------------------------------------------------------------------
def test_months_elapsed_calendar_months():
    assert months_elapsed(date(2024, 1, 31), date(2024, 2, 1)) == 1
    assert months_elapsed(date(2024, 11, 15), date(2025, 2, 14)) == 3


def test_current_value_straight_line():
    bike = FixedAsset(name="Cargo bike", purchase_cost=12000000, purchase_date=date(2024, 1, 15),
                      depreciation_months=24)
    assert current_value(bike, date(2025, 1, 31)) == 6000000
    assert current_value(bike, date(2026, 1, 1)) == 0
    assert current_value(bike, date(2030, 6, 1)) == 0
    assert current_value(bike, date(2023, 12, 1)) == 12000000
    assert monthly_depreciation(bike) == 500000


def test_monthly_depreciation_from_years():
    assert monthly_depreciation_from_years(19500000, 2) == 812500
    assert monthly_depreciation_from_years(19500000, 0) == 0


def test_summarize_assets():
    assets = [
        FixedAsset(name="Bike", purchase_cost=12000000, purchase_date=date(2024, 1, 1), depreciation_months=24),
        FixedAsset(name="Grinder", purchase_cost=3000000, purchase_date=date(2020, 1, 1), depreciation_months=12),
    ]
    summary = summarize_assets(assets, date(2025, 1, 1))
    assert summary.total_assets == 2
    assert summary.total_purchase_cost == 15000000
    assert summary.total_current_value == 6000000
    assert summary.total_depreciation == 9000000


# -----------------------------------------------------------------------------
# recurring expenses
# -----------------------------------------------------------------------------
def test_recurring_totals():
    expenses = [
        RecurringExpense(name="Rent", amount=100000, frequency="monthly", category="Premises"),
        RecurringExpense(name="Insurance", amount=1200000, frequency="yearly", category="Admin"),
        RecurringExpense(name="Old phone plan", amount=50000, category="Admin", is_active=False),
    ]
    assert recurring_monthly_total(expenses) == pytest.approx(200000)
    assert recurring_yearly_total(expenses) == pytest.approx(2400000)
    assert totals_by_category(expenses) == [
        {"category": "Admin", "monthly": pytest.approx(100000), "yearly": pytest.approx(1200000)},
        {"category": "Premises", "monthly": pytest.approx(100000), "yearly": pytest.approx(1200000)},
    ]


def test_is_active_on_boundaries():
    rent = RecurringExpense(name="Rent", amount=100000, start_date=date(2025, 1, 1), end_date=date(2025, 3, 31))
    assert not is_active_on(rent, date(2024, 12, 31))
    assert is_active_on(rent, date(2025, 1, 1))
    assert is_active_on(rent, date(2025, 3, 31))
    assert not is_active_on(rent, date(2025, 4, 1))
    rent.is_active = False
    assert not is_active_on(rent, date(2025, 2, 1))
