# test_invoice_generation.py
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from tealedger.errors import InvalidInput, NotFound
from tealedger.models.core import AppSetting, AuditLog, Invoice, InvoiceStatus, TeaGrade
from tealedger.services import invoicing
from tealedger.services.arrears import preview_auto_arrears, previous_period
from tealedger.services.collections import month_bounds, upsert_collection
from tealedger.services.deductions import upsert_deduction
from tealedger.services.money import DeductionRounding
from tealedger.services.rates import upsert_rate
from tealedger.services.settings import (
    AUTO_ARREARS_KEY, ROUNDING_MODE_KEY, STRATEGY_KEY, InvoiceConfig, load_invoice_config, save_setting,
)

G1, G2 = TeaGrade.GRADE_1, TeaGrade.GRADE_2


@pytest.fixture
def grower(make_customer, record, march_rate):
    """B-001 with 100 kg grade 1 and 50 kg grade 2 in March 2024, plus leaf either side of the month."""
    c = make_customer("B-001", name="K. Perera")
    record(c, date(2024, 3, 1), G1, 60)
    record(c, date(2024, 3, 15), G1, 40)
    record(c, date(2024, 3, 31), G2, 50)
    record(c, date(2024, 2, 29), G1, 30)
    record(c, date(2024, 4, 1), G2, 20)
    return c


def _enable_auto_arrears(db):
    save_setting(db, AUTO_ARREARS_KEY, "true")
    db.commit()


def test_generate_march_invoice(db, grower):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()

    assert inv.status == InvoiceStatus.GENERATED
    assert inv.book_number == "B-001"
    assert inv.customer_name == "K. Perera"
    assert inv.grade1_kg == Decimal("100")
    assert inv.grade2_kg == Decimal("50")
    assert inv.payable_kg == Decimal("144")
    assert inv.total_amount == Decimal("27840.00")
    assert inv.transport_deduction == Decimal("720.00")
    assert inv.net_amount == Decimal("27110.00")
    assert inv.strategy == "per_kg"
    assert [d["date"] for d in inv.collection_details] == ["2024-03-01", "2024-03-15", "2024-03-31"]
    last = inv.collection_details[2]
    assert last["grade"] == "GRADE_2"
    assert Decimal(last["weight_kg"]) == Decimal("50")


def test_generation_is_idempotent(db, grower):
    first = invoicing.calculate(db, grower.id, 2024, 3)
    second = invoicing.calculate(db, grower.id, 2024, 3)
    assert first == second

    a = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()
    b = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()
    assert a.id == b.id
    assert db.query(Invoice).count() == 1


@pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
def test_status_survives_regeneration(db, grower, record, status):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    invoicing.set_status(db, inv.id, status.value.lower())
    db.commit()

    record(grower, date(2024, 3, 20), G2, 50)
    again = invoicing.regenerate_invoice(db, grower.id, 2024, 3)
    db.commit()

    assert again.id == inv.id
    assert again.status == status
    assert again.grade2_kg == Decimal("100")
    assert again.net_amount > Decimal("27110.00")


def test_insert_race_updates_the_existing_row(db, grower, monkeypatch):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    invoicing.set_status(db, inv.id, InvoiceStatus.PAID)
    upsert_deduction(db, grower, 2024, 3, advance_amount=Decimal("1000"))
    db.commit()

    # the first lookup misses the row another writer already committed
    real_find = invoicing.find_invoice
    calls = []

    def stale_then_real(s, customer_id, year, month):
        calls.append(customer_id)
        return None if len(calls) == 1 else real_find(s, customer_id, year, month)

    monkeypatch.setattr(invoicing, "find_invoice", stale_then_real)
    again = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()

    assert len(calls) == 2
    assert again.id == inv.id
    assert again.status == InvoiceStatus.PAID
    assert again.net_amount == Decimal("26110.00")
    assert db.query(Invoice).count() == 1


def test_status_changes_are_audited(db, grower):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    invoicing.set_status(db, inv.id, InvoiceStatus.CANCELLED, actor="u1")
    invoicing.set_status(db, inv.id, InvoiceStatus.GENERATED, actor="u1")
    db.commit()

    rows = db.query(AuditLog).filter(AuditLog.entity_id == inv.id, AuditLog.action == "STATUS").all()
    assert len(rows) == 2
    assert all(r.actor_user_id == "u1" for r in rows)


def test_unknown_status_rejected(db, grower):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    with pytest.raises(InvalidInput):
        invoicing.set_status(db, inv.id, "ARCHIVED")


def test_regeneration_is_audited(db, grower):
    invoicing.generate_invoice(db, grower.id, 2024, 3)
    invoicing.generate_invoice(db, grower.id, 2024, 3, actor="u2")
    db.commit()
    assert db.query(AuditLog).filter(AuditLog.action == "REGENERATE").count() == 1


def test_deductions_flow_into_the_invoice(db, grower):
    upsert_deduction(db, grower, 2024, 3, advance_amount=Decimal("1000"), advance_date=date(2024, 3, 10),
                     tea_packets_count=2, tea_packets_total=Decimal("450.50"))
    db.commit()
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)

    assert inv.advance_amount == Decimal("1000.00")
    assert inv.loan_amount is None
    assert inv.tea_packets_count == 2
    assert inv.total_deductions == Decimal("2180.50")
    assert inv.net_amount == Decimal("25659.50")


def test_resaving_deductions_clears_omitted_lines(db, grower):
    upsert_deduction(db, grower, 2024, 3, advance_amount=Decimal("1000"), loan_amount=Decimal("200"))
    upsert_deduction(db, grower, 2024, 3, loan_amount=Decimal("200"))
    db.commit()
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)

    assert inv.advance_amount is None
    assert inv.loan_amount == Decimal("200.00")
    assert inv.net_amount == Decimal("26910.00")


def test_month_without_rate_card_gives_zero_amounts(db, make_customer, record):
    c = make_customer("B-050")
    record(c, date(2024, 5, 2), G1, 80)
    inv = invoicing.generate_invoice(db, c.id, 2024, 5)

    assert inv.total_kg == Decimal("80")
    assert inv.supply_deduction_percentage == Decimal("4.00")
    assert inv.total_amount == Decimal("0")
    assert inv.net_amount == Decimal("0")


def test_transport_exempt_grower(db, make_customer, record, march_rate):
    c = make_customer("B-002", transport_exempt=True)
    record(c, date(2024, 3, 1), G1, 100)
    record(c, date(2024, 3, 2), G2, 50)
    inv = invoicing.generate_invoice(db, c.id, 2024, 3)

    assert inv.transport_exempt is True
    assert inv.transport_deduction == Decimal("0")
    assert inv.net_amount == Decimal("27830.00")


def test_legacy_strategy_selected_by_setting(db, grower):
    upsert_rate(db, 2024, 3, transport_percentage=Decimal("2"))
    save_setting(db, STRATEGY_KEY, "legacy_percentage")
    db.commit()

    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    assert inv.strategy == "legacy_percentage"
    assert inv.transport_deduction == Decimal("556.80")
    assert inv.net_amount == Decimal("27273.20")


def test_rounding_mode_setting_applies(db, make_customer, record, march_rate):
    c = make_customer("B-003")
    record(c, date(2024, 3, 5), G1, 101)
    save_setting(db, ROUNDING_MODE_KEY, "ceiling")
    db.commit()

    inv = invoicing.generate_invoice(db, c.id, 2024, 3)
    assert inv.supply_deduction_kg == Decimal("5")
    assert inv.payable_kg == Decimal("96")


# ── automatic arrears ───────────────────────────────────────────────────────

def test_negative_month_carries_into_next(db, grower):
    _enable_auto_arrears(db)
    # February: no rate card, so the advance alone drives the net negative
    upsert_deduction(db, grower, 2024, 2, advance_amount=Decimal("500"))
    db.commit()

    feb = invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()
    assert feb.net_amount == Decimal("-500.00")

    mar = invoicing.generate_invoice(db, grower.id, 2024, 3)
    assert mar.last_month_arrears == Decimal("500.00")
    assert mar.total_deductions == Decimal("1230.00")
    assert mar.net_amount == Decimal("26610.00")


def test_manual_and_automatic_arrears_add_up(db, grower):
    _enable_auto_arrears(db)
    upsert_deduction(db, grower, 2024, 2, advance_amount=Decimal("500"))
    upsert_deduction(db, grower, 2024, 3, last_month_arrears=Decimal("200"))
    db.commit()
    invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()

    mar = invoicing.generate_invoice(db, grower.id, 2024, 3)
    assert mar.last_month_arrears == Decimal("700.00")


def test_positive_month_carries_nothing(db, grower):
    _enable_auto_arrears(db)
    upsert_rate(db, 2024, 2, grade1_rate=Decimal("200"))
    db.commit()
    feb = invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()
    assert feb.net_amount > 0

    mar = invoicing.generate_invoice(db, grower.id, 2024, 3)
    assert mar.last_month_arrears is None


def test_january_reads_previous_december(db, make_customer):
    _enable_auto_arrears(db)
    c = make_customer("B-010")
    upsert_deduction(db, c, 2023, 12, advance_amount=Decimal("300"))
    db.commit()
    invoicing.generate_invoice(db, c.id, 2023, 12)
    db.commit()

    jan = invoicing.generate_invoice(db, c.id, 2024, 1)
    assert jan.last_month_arrears == Decimal("300.00")
    assert jan.net_amount == Decimal("-300.00")


def test_flag_off_ignores_previous_balance(db, grower):
    upsert_deduction(db, grower, 2024, 2, advance_amount=Decimal("500"))
    db.commit()
    invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()

    mar = invoicing.generate_invoice(db, grower.id, 2024, 3)
    assert mar.last_month_arrears is None
    assert mar.net_amount == Decimal("27110.00")


def test_out_of_order_generation_needs_regeneration(db, grower):
    _enable_auto_arrears(db)
    upsert_deduction(db, grower, 2024, 2, advance_amount=Decimal("500"))
    db.commit()

    mar = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()
    assert mar.last_month_arrears is None

    invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()
    mar = invoicing.regenerate_invoice(db, grower.id, 2024, 3)
    assert mar.last_month_arrears == Decimal("500.00")


def test_arrears_follow_the_grower_across_book_renumbering(db, make_customer, march_rate):
    _enable_auto_arrears(db)
    c = make_customer("B-020")
    upsert_deduction(db, c, 2024, 2, advance_amount=Decimal("500"))
    db.commit()
    invoicing.generate_invoice(db, c.id, 2024, 2)
    db.commit()

    c.book_number = "B-020A"
    db.commit()
    mar = invoicing.generate_invoice(db, c.id, 2024, 3)
    assert mar.book_number == "B-020A"
    assert mar.last_month_arrears == Decimal("500.00")


def test_preview_auto_arrears(db, grower):
    upsert_deduction(db, grower, 2024, 2, advance_amount=Decimal("500"))
    db.commit()
    invoicing.generate_invoice(db, grower.id, 2024, 2)
    db.commit()

    off = preview_auto_arrears(db, grower.id, 2024, 3, enabled=False)
    assert off["enabled"] is False
    assert off["auto_arrears_amount"] == Decimal("0")

    on = preview_auto_arrears(db, grower.id, 2024, 3, enabled=True)
    assert (on["previous_year"], on["previous_month"]) == (2024, 2)
    assert on["previous_net_amount"] == Decimal("-500.00")
    assert on["auto_arrears_amount"] == Decimal("500.00")


def test_previous_period_wraps_year():
    assert previous_period(2024, 1) == (2023, 12)
    assert previous_period(2024, 7) == (2024, 6)


# ── errors and edges ────────────────────────────────────────────────────────

def test_unknown_grower(db, march_rate):
    with pytest.raises(NotFound):
        invoicing.calculate(db, "no-such-grower", 2024, 3)


@pytest.mark.parametrize("year, month", [(2024, 0), (2024, 13), (0, 5)])
def test_invalid_period(db, grower, year, month):
    with pytest.raises(InvalidInput):
        invoicing.calculate(db, grower.id, year, month)


def test_negative_weight_rejected(db, make_customer):
    c = make_customer("B-030")
    with pytest.raises(InvalidInput):
        upsert_collection(db, c, date(2024, 3, 1), Decimal("-1"), grade=G1)


def test_same_day_same_grade_overwrites(db, make_customer, record, march_rate):
    c = make_customer("B-031")
    record(c, date(2024, 3, 1), G1, 40)
    record(c, date(2024, 3, 1), G1, 45)
    record(c, date(2024, 3, 1), G2, 10)
    snap = invoicing.calculate(db, c.id, 2024, 3)
    assert snap.grade1_kg == Decimal("45")
    assert snap.grade2_kg == Decimal("10")


def test_collection_takes_default_rate_from_card(db, make_customer, march_rate):
    c = make_customer("B-032")
    row = upsert_collection(db, c, date(2024, 3, 4), Decimal("12.5"), grade=G1)
    assert row.rate_per_kg == Decimal("200")
    assert row.total_amount == Decimal("2500.00")


@pytest.mark.parametrize("year, month, last", [(2024, 2, 29), (2023, 2, 28), (2024, 4, 30), (2024, 12, 31)])
def test_month_bounds(year, month, last):
    assert month_bounds(year, month) == (date(year, month, 1), date(year, month, last))


def test_delete_invoice(db, grower):
    inv = invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()
    invoicing.delete_invoice(db, inv.id, actor="u1")
    db.commit()

    with pytest.raises(NotFound):
        invoicing.get_invoice(db, inv.id)
    assert db.query(AuditLog).filter(AuditLog.action == "DELETE").count() == 1


# ── configuration ───────────────────────────────────────────────────────────

def test_config_defaults_from_environment(db):
    assert load_invoice_config(db) == InvoiceConfig(
        auto_arrears_enabled=False, rounding_mode=DeductionRounding.HALF_UP, strategy="per_kg")


def test_config_reads_stored_settings(db):
    save_setting(db, AUTO_ARREARS_KEY, "TRUE")
    save_setting(db, ROUNDING_MODE_KEY, "floor")
    db.commit()
    cfg = load_invoice_config(db)
    assert cfg.auto_arrears_enabled is True
    assert cfg.rounding_mode is DeductionRounding.FLOOR


def test_config_falls_back_on_garbage(db):
    db.add(AppSetting(setting_key=ROUNDING_MODE_KEY, setting_value="bankers"))
    db.add(AppSetting(setting_key=STRATEGY_KEY, setting_value="flat"))
    db.commit()
    cfg = load_invoice_config(db)
    assert cfg.rounding_mode is DeductionRounding.HALF_UP
    assert cfg.strategy == "per_kg"


@pytest.mark.parametrize("key, value", [
    (ROUNDING_MODE_KEY, "bankers"),
    (AUTO_ARREARS_KEY, "yes"),
    (STRATEGY_KEY, "flat"),
    ("  ", "x"),
])
def test_save_setting_validates(db, key, value):
    with pytest.raises(InvalidInput):
        save_setting(db, key, value)


def test_save_setting_accepts_free_form_keys(db):
    row = save_setting(db, "factory_name", "Uva Leaf Co.")
    db.commit()
    assert row.setting_value == "Uva Leaf Co."


def test_foreign_keys_enforced_on_sqlite(db, grower):
    invoicing.generate_invoice(db, grower.id, 2024, 3)
    db.commit()

    db.delete(grower)
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert db.query(Invoice).filter(Invoice.customer_id == grower.id).count() == 1
