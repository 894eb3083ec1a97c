# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, case

from ..extensions import db
from ..models import Customer, Invoice, InvoiceItem, Product
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError
from .ledger_service import STATUS_PARTIAL, STATUS_UNPAID

REPORT_PERIODS = ("weekly", "monthly", "yearly", "all")


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    """
    Start of the current reporting period.

    weekly starts Monday 00:00, monthly on the 1st, yearly on Jan 1;
    "all" has no lower bound.
    """
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        return midnight - timedelta(days=midnight.weekday())
    if period == "monthly":
        return midnight.replace(day=1)
    if period == "yearly":
        return midnight.replace(month=1, day=1)
    if period == "all":
        return None
    raise ValidationError(f"period must be one of {', '.join(REPORT_PERIODS)}")


def revenue_report(
    *,
    period: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Revenue, cost and profit over a period or an explicit [start, end] range.

    Cost uses the cost snapshot on each invoice item; items sold without a
    known cost contribute zero cost.
    """
    if start is None and end is None:
        start = period_start(period or "all", now)
    elif period:
        raise ValidationError("Pass either period or start/end, not both")
    if start and end and start > end:
        raise ValidationError("start must be before end")

    invoice_q = db.session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.total_cents), 0),
        func.coalesce(func.sum(Invoice.paid_cents), 0),
        func.coalesce(func.sum(Invoice.due_cents), 0),
    )
    cost_q = db.session.query(
        func.coalesce(
            func.sum(InvoiceItem.quantity * func.coalesce(InvoiceItem.cost_per_unit_cents, 0)),
            0,
        )
    ).join(Invoice, InvoiceItem.invoice_id == Invoice.id)

    if start:
        invoice_q = invoice_q.filter(Invoice.created_at >= start)
        cost_q = cost_q.filter(Invoice.created_at >= start)
    if end:
        invoice_q = invoice_q.filter(Invoice.created_at <= end)
        cost_q = cost_q.filter(Invoice.created_at <= end)

    count, revenue, received, outstanding = invoice_q.one()
    cost = int(cost_q.scalar() or 0)
    revenue = int(revenue or 0)

    return {
        "period": period if period else ("custom" if (start or end) else "all"),
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "invoice_count": int(count or 0),
        "revenue_cents": revenue,
        "cost_cents": cost,
        "profit_cents": revenue - cost,
        "received_cents": int(received or 0),
        "outstanding_cents": int(outstanding or 0),
    }


def dashboard_summary() -> dict:
    """Counter-side overview: stock, customers and money still owed."""
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)

    product_count = db.session.query(func.count(Product.id)).scalar() or 0
    low_stock_count = (
        db.session.query(func.count(Product.id)).filter(Product.stock < threshold).scalar() or 0
    )
    customer_count = db.session.query(func.count(Customer.id)).scalar() or 0

    invoice_count, received, total_due = db.session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.paid_cents), 0),
        func.coalesce(func.sum(Invoice.due_cents), 0),
    ).one()

    pending_invoices = (
        db.session.query(func.count(Invoice.id))
        .filter(Invoice.status.in_([STATUS_PARTIAL, STATUS_UNPAID]))
        .scalar() or 0
    )

    # Registered customers count by id, walk-ins by name
    customer_key = case(
        (Invoice.customer_id.isnot(None), Invoice.customer_id),
        else_=func.lower(Invoice.customer_name),
    )
    pending_customers = (
        db.session.query(func.count(func.distinct(customer_key)))
        .filter(Invoice.due_cents > 0)
        .scalar() or 0
    )

    return {
        "product_count": int(product_count),
        "low_stock_threshold": threshold,
        "low_stock_count": int(low_stock_count),
        "customer_count": int(customer_count),
        "invoice_count": int(invoice_count or 0),
        "received_cents": int(received or 0),
        "total_due_cents": int(total_due or 0),
        "pending_customers": int(pending_customers),
        "pending_invoices": int(pending_invoices),
    }
