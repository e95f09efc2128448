# app.py
# =============================================================================
# Coffee Cart Planner: costs, bonus scheme, projections and shopping list
# =============================================================================

import os
from datetime import date
from pathlib import Path

import streamlit as st
import matplotlib.pyplot as plt  # projection line + COGS pie charts

from calc import (
    bonus_for,
    cogs_breakdown,
    cost_per_serving,
    current_value,
    find_break_even,
    format_quantity,
    generate_projections,
    generate_purchase_list,
    generate_shopping_list,
    initial_capital_total,
    monthly_amount,
    monthly_depreciation,
    payback_months,
    recurring_monthly_total,
    recurring_yearly_total,
    total_cost_per_serving,
    totals_by_category,
    validate_cogs_fields,
)
from editing import Edit, EditState, reconcile
from events import EventBus, EventType
from formatting import CURRENCIES, LOCALES, format_money, format_number, format_percent
from models import (
    CAPITAL,
    FIXED_COSTS,
    FREQUENCIES,
    UNITS,
    VARIABLE_COGS,
    BonusScheme,
    CapitalItem,
    FixedAsset,
    FixedCostItem,
    ProjectionConfig,
    RecurringExpense,
    VariableCostItem,
)
from store import (
    BonusSchemeStore,
    FixedAssetStore,
    LineItemStore,
    RecurringExpenseStore,
    SettingsStore,
    StorageError,
    reset_business,
)

# -----------------------------------------------------------------------------
# CONFIG
# -----------------------------------------------------------------------------
st.set_page_config(page_title="Coffee Cart Planner", layout="wide")

DATA_DIR = Path(os.environ.get("CART_PLANNER_DATA_DIR") or Path(__file__).parent / "data")
BUSINESS_ID = os.environ.get("CART_PLANNER_BUSINESS", "default")

# -----------------------------------------------------------------------------
# SESSION
# -----------------------------------------------------------------------------
NOTICE_TEXT = {
    EventType.DEPRECIATION_CREATED: "Depreciation entry created for {}",
    EventType.DEPRECIATION_UPDATED: "Depreciation entry updated for {}",
    EventType.DEPRECIATION_DELETED: "Depreciation entry removed for {}",
}

if "bus" not in st.session_state:
    bus = EventBus()
    notices = []

    def _remember(event, notices=notices):
        notices.append(NOTICE_TEXT[event.type].format(event.subject_name or event.subject_id))

    for et in NOTICE_TEXT:
        bus.subscribe(et, _remember)
    st.session_state.bus = bus
    st.session_state.notices = notices

line_items = LineItemStore(DATA_DIR, st.session_state.bus)
bonus_store = BonusSchemeStore(DATA_DIR, st.session_state.bus)
asset_store = FixedAssetStore(line_items)
expense_store = RecurringExpenseStore(DATA_DIR, st.session_state.bus)
settings_store = SettingsStore(DATA_DIR, st.session_state.bus)

try:
    settings = settings_store.load(BUSINESS_ID)
except StorageError as e:
    st.error(f"Cannot load settings: {e}")
    st.stop()


def money(x):
    return format_money(x, settings["currency"], settings["locale"])


def number(x, decimals: int = 0):
    return format_number(x, decimals, settings["locale"])


def save_settings(**changes):
    global settings
    settings = settings_store.save(BUSINESS_ID, changes)


def apply_edit(item_id: str, original, changes: dict) -> bool:
    """Write an edited line item; on failure re-read it and report inline."""
    edit = Edit(item_id, original).propose(changes)
    reconcile(
        edit,
        write=lambda ch: line_items.update(BUSINESS_ID, item_id, **ch),
        refetch=lambda: line_items.get(BUSINESS_ID, item_id),
    )
    if edit.state is EditState.ROLLED_BACK:
        st.error(f"Could not save '{original.name}': {edit.error}. Showing stored values.")
        return False
    return True


# -----------------------------------------------------------------------------
# UI: sidebar navigation
# -----------------------------------------------------------------------------
sections = [
    "Dashboard", "Initial Capital", "Fixed Costs", "Variable COGS", "Bonus Scheme",
    "Shopping List", "Fixed Assets", "Recurring Expenses", "Settings",
]
page = st.sidebar.selectbox("Navigate", sections, key="nav")
st.sidebar.caption(f"Business: {BUSINESS_ID}")

for msg in st.session_state.notices:
    st.info(msg)
st.session_state.notices.clear()


# -----------------------------------------------------------------------------
# DASHBOARD
# -----------------------------------------------------------------------------
def dashboard_page():
    st.header("Income Projection & Profits")
    c1, c2 = st.columns(2)
    days = c1.number_input("Operating days per month", min_value=0,
                           value=int(settings["days_per_month"]), step=1, key="dash_days")
    price = c2.number_input("Price per serving", value=int(settings["price_per_serving"]),
                            step=500, key="dash_price")
    if days != settings["days_per_month"] or price != settings["price_per_serving"]:
        save_settings(days_per_month=int(days), price_per_serving=int(price))

    fixed_items = line_items.get_by_category(BUSINESS_ID, FIXED_COSTS)
    cogs_items = line_items.get_by_category(BUSINESS_ID, VARIABLE_COGS)
    capital = initial_capital_total(line_items.get_by_category(BUSINESS_ID, CAPITAL))
    scheme = bonus_store.ensure_exists(BUSINESS_ID)

    rows = generate_projections(ProjectionConfig(
        days_per_month=int(days),
        price_per_serving=int(price),
        fixed_items=fixed_items,
        cogs_items=cogs_items,
        bonus_scheme=scheme,
    ))
    break_even = find_break_even(rows)

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Initial capital", money(capital))
    m2.metric("Fixed costs / month", money(rows[0].fixed_costs))
    m3.metric("COGS / serving", money(total_cost_per_serving(cogs_items)))
    m4.metric("Break-even", f"{break_even.servings_per_day} / day" if break_even else "—")

    st.dataframe([
        {
            "Servings/day": r.servings_per_day,
            "Servings/month": r.monthly_servings,
            "Revenue": money(r.revenue),
            "Variable COGS": money(r.variable_cost),
            "Gross profit": money(r.gross_profit),
            "Fixed costs": money(r.fixed_costs),
            "Bonus": money(r.bonus),
            "Net profit": money(r.net_profit),
        }
        for r in rows
    ], hide_index=True)

    fig, ax = plt.subplots()
    ax.plot([r.servings_per_day for r in rows], [r.net_profit for r in rows], marker="o")
    ax.axhline(0, color="grey", linewidth=0.8)
    ax.set_xlabel("Servings per day")
    ax.set_ylabel("Net profit / month")
    st.pyplot(fig)
    plt.close(fig)

    st.subheader("Row details")
    per_day = st.selectbox("Servings per day", [r.servings_per_day for r in rows], index=4, key="dash_row")
    row = next(r for r in rows if r.servings_per_day == per_day)
    st.text(f"{number(row.monthly_servings)} servings × {money(price)} = {money(row.revenue)} revenue")
    st.text(f"{number(row.monthly_servings)} servings × {money(total_cost_per_serving(cogs_items))}"
            f" = {money(row.variable_cost)} variable COGS")
    st.text(f"Bonus above {number(scheme.target)} servings: {money(row.bonus)}")
    st.text(f"Net profit: {money(row.gross_profit)} − {money(row.fixed_costs)} − {money(row.bonus)}"
            f" = {money(row.net_profit)}")
    months = payback_months(capital, row)
    st.metric("Payback of initial capital", f"{number(months, 1)} months" if months else "—")


# -----------------------------------------------------------------------------
# LINE ITEMS (capital, fixed costs, COGS)
# -----------------------------------------------------------------------------
def _line_item_editor(it):
    with st.form(f"li_form_{it.id}"):
        name = st.text_input("Name", value=it.name, key=f"li_name_{it.id}")
        note = st.text_input("Note", value=it.note, key=f"li_note_{it.id}")
        changes = {"name": name.strip(), "note": note}
        errors = []
        if isinstance(it, VariableCostItem):
            c1, c2, c3, c4 = st.columns(4)
            cost = c1.number_input("Package cost", min_value=0.0, value=float(it.base_unit_cost or 0.0),
                                   step=100.0, key=f"li_cost_{it.id}")
            qty = c2.number_input("Package size", min_value=0.0, value=float(it.base_unit_quantity or 0.0),
                                  step=10.0, key=f"li_qty_{it.id}")
            usage = c3.number_input("Usage per serving", min_value=0.0,
                                    value=float(it.usage_per_serving or 0.0), step=1.0, key=f"li_usage_{it.id}")
            unit = c4.selectbox("Unit", UNITS, index=UNITS.index(it.unit) if it.unit in UNITS else 0,
                                key=f"li_unit_{it.id}")
            changes.update(base_unit_cost=cost, base_unit_quantity=qty, usage_per_serving=usage, unit=unit)
            errors = validate_cogs_fields(cost, qty, usage)
        else:
            changes["value"] = int(st.number_input("Amount", min_value=0, value=int(it.value), step=10000,
                                                   key=f"li_value_{it.id}"))
        if isinstance(it, CapitalItem):
            is_asset = st.checkbox("Depreciating fixed asset", value=it.is_fixed_asset, key=f"li_asset_{it.id}")
            years = st.number_input("Useful life (years)", min_value=0,
                                    value=int(it.estimated_useful_life_years or 0), step=1, key=f"li_years_{it.id}")
            changes.update(is_fixed_asset=is_asset, estimated_useful_life_years=int(years) or None)
        c1, c2 = st.columns(2)
        save_btn = c1.form_submit_button("Save")
        del_btn = c2.form_submit_button("Delete")
        if save_btn:
            if not changes["name"]:
                st.error("Please enter a name")
            elif errors:
                for msg in errors:
                    st.error(msg)
            elif apply_edit(it.id, it, changes):
                st.success("Saved")
                st.rerun()
        if del_btn:
            line_items.delete(BUSINESS_ID, it.id)
            st.warning("Deleted")
            st.rerun()


def _line_item_creator(category: str):
    with st.form(f"li_add_{category}"):
        st.markdown("##### Add item ➕")
        name = st.text_input("Name", key=f"li_add_name_{category}").strip()
        if category == VARIABLE_COGS:
            c1, c2, c3, c4 = st.columns(4)
            cost = c1.number_input("Package cost", min_value=0.0, value=10000.0, step=100.0,
                                   key=f"li_add_cost_{category}")
            qty = c2.number_input("Package size", min_value=0.0, value=1000.0, step=10.0,
                                  key=f"li_add_qty_{category}")
            usage = c3.number_input("Usage per serving", min_value=0.0, value=10.0, step=1.0,
                                    key=f"li_add_usage_{category}")
            unit = c4.selectbox("Unit", UNITS, key=f"li_add_unit_{category}")
        else:
            value = st.number_input("Amount", min_value=0, value=0, step=10000, key=f"li_add_value_{category}")
        submitted = st.form_submit_button("Add")
        if submitted:
            if not name:
                st.error("Please enter a name")
                return
            if category == VARIABLE_COGS:
                errors = validate_cogs_fields(cost, qty, usage)
                if errors:
                    for msg in errors:
                        st.error(msg)
                    return
                item = VariableCostItem(name=name, base_unit_cost=cost, base_unit_quantity=qty,
                                        usage_per_serving=usage, unit=unit)
            elif category == CAPITAL:
                item = CapitalItem(name=name, value=int(value))
            else:
                item = FixedCostItem(name=name, value=int(value))
            line_items.create(BUSINESS_ID, item)
            st.success("Item added")
            st.rerun()


def line_items_page(category: str, title: str, caption: str):
    st.header(title)
    st.caption(caption)
    items = line_items.get_by_category(BUSINESS_ID, category)
    if not items:
        st.info("No items yet.")
    for it in items:
        label = f"{it.name} — {money(it.value)}"
        with st.expander(label, expanded=False):
            if isinstance(it, FixedCostItem) and it.source_asset_id:
                st.caption("Generated from a depreciating asset; edit the asset to change it.")
                if it.note:
                    st.text(it.note)
                continue
            _line_item_editor(it)
    st.metric("Total", money(sum(it.value for it in items)))
    st.divider()
    _line_item_creator(category)
    return items


def cogs_page():
    items = line_items_page(
        VARIABLE_COGS, "Variable COGS",
        "Enter package cost, package size and usage per serving; the cost per serving is computed.",
    )
    st.metric("COGS per serving", money(total_cost_per_serving(items)))
    incomplete = [it.name for it in items if cost_per_serving(it) == 0]
    if incomplete:
        st.warning(f"Incomplete pricing data (counted as 0): {', '.join(incomplete)}")

    breakdown = [r for r in cogs_breakdown(items) if r.cost_per_serving > 0]
    if breakdown:
        fig, ax = plt.subplots()
        ax.pie([r.cost_per_serving for r in breakdown], labels=[r.name for r in breakdown],
               autopct='%1.1f%%', startangle=90)
        ax.axis('equal')
        st.pyplot(fig)
        plt.close(fig)
        st.caption("Share of each ingredient in the cost per serving")
        for r in breakdown:
            st.text(f"{r.name}: {money(r.cost_per_serving)} ({format_percent(r.percentage, 1, settings['locale'])})")
    else:
        st.info("Add priced ingredients to see the cost breakdown pie chart.")


# -----------------------------------------------------------------------------
# BONUS SCHEME
# -----------------------------------------------------------------------------
def bonus_page():
    st.header("Bonus Scheme")
    scheme = bonus_store.ensure_exists(BUSINESS_ID)
    with st.form("bonus_form"):
        target = st.number_input("Monthly target (servings)", min_value=0, value=int(scheme.target),
                                 step=10, key="bonus_target")
        per_serving = st.number_input("Bonus per serving above target", min_value=0,
                                      value=int(scheme.per_serving_bonus), step=100, key="bonus_per")
        baristas = st.number_input("Baristas", min_value=1, value=int(scheme.barista_count), step=1,
                                   key="bonus_baristas")
        note = st.text_input("Note", value=scheme.note, key="bonus_note")
        if st.form_submit_button("Save scheme"):
            try:
                new_scheme = BonusScheme(int(target), int(per_serving), int(baristas), note)
            except ValueError as e:
                st.error(str(e))
            else:
                bonus_store.create(BUSINESS_ID, new_scheme)
                st.success("Bonus scheme saved")
                st.rerun()

    monthly = int(settings["daily_target"]) * int(settings["days_per_month"])
    st.metric(f"Bonus at {number(monthly)} servings/month", money(bonus_for(monthly, scheme)))


# -----------------------------------------------------------------------------
# SHOPPING LIST
# -----------------------------------------------------------------------------
def shopping_page():
    st.header("Shopping List")
    target = st.number_input("Daily target (servings)", min_value=0, value=int(settings["daily_target"]),
                             step=5, key="shop_target")
    if target != settings["daily_target"]:
        save_settings(daily_target=int(target))
    items = line_items.get_by_category(BUSINESS_ID, VARIABLE_COGS)

    shopping = generate_shopping_list(items, target)
    m1, m2, m3 = st.columns(3)
    m1.metric("Ingredients", shopping.total_items)
    m2.metric("Total cost / day", money(shopping.grand_total))
    top = shopping.most_expensive
    m3.metric("Most expensive", top.name if top else "—")
    if shopping.entries:
        st.dataframe([
            {
                "Ingredient": e.name,
                "Per serving": format_quantity(e.usage_per_serving, e.unit),
                "Needed": e.formatted_quantity,
                "Cost": money(e.total_cost),
            }
            for e in shopping.entries
        ], hide_index=True)
    else:
        st.info("No ingredients with complete pricing data.")

    st.subheader("True shopping list (whole packages)")
    purchase = generate_purchase_list(items, target)
    if purchase.entries:
        st.dataframe([
            {
                "Ingredient": e.name,
                "Needed": format_quantity(e.required_quantity, e.unit),
                "Package": format_quantity(e.package_quantity, e.unit),
                "Packages": e.packages_to_buy,
                "Leftover": f"{format_quantity(e.waste, e.unit)} ({e.waste_percentage:.1f}%)",
                "Cost": money(e.total_cost),
            }
            for e in purchase.entries
        ], hide_index=True)
    m1, m2, m3 = st.columns(3)
    m1.metric("Packages", purchase.total_packages)
    m2.metric("Purchase total", money(purchase.grand_total))
    m3.metric("Cost of leftovers", money(purchase.total_waste_cost))


# -----------------------------------------------------------------------------
# FIXED ASSETS
# -----------------------------------------------------------------------------
def assets_page():
    st.header("Fixed Assets")
    today = date.today()
    summary = asset_store.summary(BUSINESS_ID, today)
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Assets", summary.total_assets)
    m2.metric("Purchase cost", money(summary.total_purchase_cost))
    m3.metric("Current value", money(summary.total_current_value))
    m4.metric("Depreciated", money(summary.total_depreciation))

    for a in asset_store.get_all(BUSINESS_ID):
        with st.expander(f"{a.name} — {money(current_value(a, today))}", expanded=False):
            st.caption(f"Monthly depreciation: {money(monthly_depreciation(a))}")
            with st.form(f"asset_form_{a.id}"):
                name = st.text_input("Name", value=a.name, key=f"asset_name_{a.id}")
                cost = st.number_input("Purchase cost", min_value=0, value=int(a.purchase_cost), step=100000,
                                       key=f"asset_cost_{a.id}")
                bought = st.date_input("Purchase date", value=a.purchase_date, key=f"asset_date_{a.id}")
                months = st.number_input("Depreciation months", min_value=1, value=int(a.depreciation_months),
                                         step=1, key=f"asset_months_{a.id}")
                c1, c2 = st.columns(2)
                if c1.form_submit_button("Save"):
                    asset_store.update(BUSINESS_ID, a.id, name=name.strip() or a.name, purchase_cost=int(cost),
                                       purchase_date=bought, depreciation_months=int(months))
                    st.success("Asset updated")
                    st.rerun()
                if c2.form_submit_button("Delete"):
                    asset_store.delete(BUSINESS_ID, a.id)
                    st.warning("Asset deleted (depreciation entry removed)")
                    st.rerun()

    st.divider()
    with st.form("asset_add"):
        st.markdown("##### Add asset ➕")
        name = st.text_input("Name", key="asset_add_name").strip()
        category = st.text_input("Category", key="asset_add_cat")
        cost = st.number_input("Purchase cost", min_value=0, value=0, step=100000, key="asset_add_cost")
        bought = st.date_input("Purchase date", value=today, key="asset_add_date")
        months = st.number_input("Depreciation months", min_value=1, value=24, step=1, key="asset_add_months")
        if st.form_submit_button("Add asset"):
            if not name:
                st.error("Please enter an asset name")
            else:
                asset_store.create(BUSINESS_ID, FixedAsset(name=name, purchase_cost=int(cost), purchase_date=bought,
                                                           depreciation_months=int(months), category=category))
                st.success("Asset added")
                st.rerun()


# -----------------------------------------------------------------------------
# RECURRING EXPENSES
# -----------------------------------------------------------------------------
def expenses_page():
    st.header("Recurring Expenses")
    expenses = expense_store.get_all(BUSINESS_ID)
    current = expense_store.get_current(BUSINESS_ID)
    m1, m2, m3 = st.columns(3)
    m1.metric("Monthly total", money(recurring_monthly_total(expenses)))
    m2.metric("Yearly total", money(recurring_yearly_total(expenses)))
    m3.metric("Active today", money(recurring_monthly_total(current)))
    if current:
        st.caption("Running today: " + ", ".join(e.name for e in current))

    for e in expenses:
        status = "" if e.is_active else " (inactive)"
        with st.expander(f"{e.name}{status} — {money(e.amount)} {e.frequency}", expanded=False):
            st.caption(f"Per month: {money(monthly_amount(e))}")
            c1, c2 = st.columns(2)
            if e.is_active:
                if c1.button("Deactivate", key=f"exp_off_{e.id}"):
                    expense_store.soft_delete(BUSINESS_ID, e.id)
                    st.rerun()
            elif c1.button("Restore", key=f"exp_on_{e.id}"):
                expense_store.restore(BUSINESS_ID, e.id)
                st.rerun()
            if c2.button("Delete", key=f"exp_del_{e.id}"):
                expense_store.delete(BUSINESS_ID, e.id)
                st.rerun()

    by_cat = totals_by_category(expenses)
    if by_cat:
        st.dataframe([
            {"Category": t["category"] or "—", "Monthly": money(t["monthly"]), "Yearly": money(t["yearly"])}
            for t in by_cat
        ], hide_index=True)

    st.divider()
    with st.form("exp_add"):
        st.markdown("##### Add expense ➕")
        name = st.text_input("Name", key="exp_add_name").strip()
        amount = st.number_input("Amount", min_value=0, value=0, step=10000, key="exp_add_amount")
        frequency = st.selectbox("Frequency", FREQUENCIES, key="exp_add_freq")
        category = st.text_input("Category", key="exp_add_cat")
        start = st.date_input("Start date", value=date.today(), key="exp_add_start")
        if st.form_submit_button("Add expense"):
            if not name:
                st.error("Please enter a name")
            else:
                expense_store.create(BUSINESS_ID, RecurringExpense(name=name, amount=int(amount), frequency=frequency,
                                                                   category=category.strip(), start_date=start))
                st.success("Expense added")
                st.rerun()


# -----------------------------------------------------------------------------
# SETTINGS
# -----------------------------------------------------------------------------
def settings_page():
    st.header("Settings")

    st.subheader("Locale")
    loc = st.selectbox("Number format", LOCALES,
                       index=LOCALES.index(settings["locale"]) if settings["locale"] in LOCALES else 0,
                       key="settings_locale")
    cur = st.selectbox("Currency", CURRENCIES,
                       index=CURRENCIES.index(settings["currency"]) if settings["currency"] in CURRENCIES else 0,
                       key="settings_currency")
    if loc != settings["locale"] or cur != settings["currency"]:
        save_settings(locale=loc, currency=cur)
        st.rerun()

    st.markdown("---")
    if st.button("Reset all data (items, bonus scheme, assets, expenses)", key="settings_reset"):
        reset_business(BUSINESS_ID, DATA_DIR)
        for k in ("dash_days", "dash_price", "shop_target", "settings_locale", "settings_currency"):
            if k in st.session_state:
                del st.session_state[k]
        st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Initial Capital": lambda: line_items_page(
        CAPITAL, "Initial Capital", "One-off purchases; flag an item as a fixed asset to depreciate it."),
    "Fixed Costs": lambda: line_items_page(
        FIXED_COSTS, "Fixed Costs", "Monthly expenses that do not depend on servings sold."),
    "Variable COGS": cogs_page,
    "Bonus Scheme": bonus_page,
    "Shopping List": shopping_page,
    "Fixed Assets": assets_page,
    "Recurring Expenses": expenses_page,
    "Settings": settings_page,
}

try:
    PAGES[page]()
except StorageError as e:
    st.error(f"Storage problem: {e}")
