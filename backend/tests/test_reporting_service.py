"""
Reporting tests.

Verifies:
- Period boundaries (weekly from Monday, monthly, yearly, all)
- Revenue, cost, profit and received over item snapshots
- Dashboard counts including walk-in dues
"""

from datetime import datetime

import pytest

from zes_pos.extensions import db
from zes_pos.models import Invoice
from zes_pos.services import ledger_service, reporting_service
from zes_pos.services.ledger_service import CartLine, CustomerRef, Tender
from zes_pos.validation import ValidationError

NOW = datetime(2026, 10, 22, 15, 30)  # a Thursday


def _bill(product, qty, paid, customer=None, created_at=None):
    invoice = ledger_service.create_invoice(
        [CartLine(product.id, qty)],
        customer or CustomerRef(name="Walk-in"),
        Tender(paid_cents=paid),
        actor="owner",
    )
    if created_at:
        db.session.query(Invoice).filter_by(id=invoice.id).update({"created_at": created_at})
        db.session.commit()
    return invoice


@pytest.mark.parametrize(
    "period,expected",
    [
        ("weekly", datetime(2026, 10, 19)),
        ("monthly", datetime(2026, 10, 1)),
        ("yearly", datetime(2026, 1, 1)),
        ("all", None),
    ],
)
def test_period_start(period, expected):
    assert reporting_service.period_start(period, NOW) == expected


def test_unknown_period():
    with pytest.raises(ValidationError):
        reporting_service.period_start("daily", NOW)


def test_revenue_report_by_period(make_product):
    product = make_product(price=1000, cost=600, stock=100)
    _bill(product, 2, 2000, created_at=datetime(2026, 10, 20, 10, 0))   # this week
    _bill(product, 1, 0, created_at=datetime(2026, 10, 5, 10, 0))       # this month
    _bill(product, 3, 1000, created_at=datetime(2026, 3, 1, 10, 0))     # this year
    _bill(product, 1, 1000, created_at=datetime(2025, 12, 31, 10, 0))   # last year

    weekly = reporting_service.revenue_report(period="weekly", now=NOW)
    assert weekly["invoice_count"] == 1
    assert weekly["revenue_cents"] == 2000
    assert weekly["cost_cents"] == 1200
    assert weekly["profit_cents"] == 800
    assert weekly["received_cents"] == 2000

    monthly = reporting_service.revenue_report(period="monthly", now=NOW)
    assert (monthly["invoice_count"], monthly["revenue_cents"], monthly["received_cents"]) == (2, 3000, 2000)
    assert monthly["outstanding_cents"] == 1000

    yearly = reporting_service.revenue_report(period="yearly", now=NOW)
    assert (yearly["invoice_count"], yearly["revenue_cents"], yearly["cost_cents"]) == (3, 6000, 3600)

    everything = reporting_service.revenue_report(period="all", now=NOW)
    assert everything["invoice_count"] == 4
    assert everything["profit_cents"] == 7000 - 4200


def test_revenue_report_custom_range(make_product):
    product = make_product(price=1000, cost=None, stock=100)
    _bill(product, 1, 1000, created_at=datetime(2026, 10, 1, 9, 0))
    _bill(product, 1, 1000, created_at=datetime(2026, 10, 10, 9, 0))

    report = reporting_service.revenue_report(start=datetime(2026, 10, 5), end=datetime(2026, 10, 31))
    assert report["period"] == "custom"
    assert report["invoice_count"] == 1
    # unknown cost counts as zero
    assert report["cost_cents"] == 0
    assert report["profit_cents"] == 1000


def test_revenue_report_rejects_mixed_arguments(db_session):
    with pytest.raises(ValidationError):
        reporting_service.revenue_report(period="weekly", start=datetime(2026, 1, 1))
    with pytest.raises(ValidationError):
        reporting_service.revenue_report(start=datetime(2026, 2, 1), end=datetime(2026, 1, 1))


def test_dashboard_summary(app, make_product, make_customer):
    app.config["LOW_STOCK_THRESHOLD"] = 10
    bulb = make_product(name="Bulb", price=500, stock=20)
    make_product(name="Tube", price=900, stock=4)
    ahmad = make_customer(name="Ahmad Ali", phone="03001234567")
    make_customer(name="Sara Khan", phone="03017654321")

    _bill(bulb, 2, 1000)                                              # paid
    _bill(bulb, 2, 400, customer=CustomerRef(customer_id=ahmad.id))   # 600 due
    _bill(bulb, 1, 0, customer=CustomerRef(customer_id=ahmad.id))     # 500 due
    _bill(bulb, 1, 100, customer=CustomerRef(name="Bilal"))           # walk-in 400 due

    summary = reporting_service.dashboard_summary()
    assert summary["product_count"] == 2
    assert summary["low_stock_count"] == 1  # Tube; Bulb is at 14
    assert summary["customer_count"] == 2
    assert summary["invoice_count"] == 4
    assert summary["received_cents"] == 1500
    assert summary["total_due_cents"] == 1500
    assert summary["pending_customers"] == 2
    assert summary["pending_invoices"] == 3
