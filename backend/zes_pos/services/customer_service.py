# backend/zes_pos/services/customer_service.py
"""
Customer Service

WHY: Customers carry a running balance (total_due_cents) so the shop can
see who owes what without summing invoices on every screen.

BALANCE: adjust_due is the only write path for total_due_cents and is
called exclusively from ledger_service inside its transaction. Profile
edits cannot touch the balance.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Invoice, Payment
from ..validation import ValidationError, NotFoundError
from .concurrency import begin_write, lock_for_update, run_with_retry

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "email", "address"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def adjust_due(customer_id: str | None, delta: int) -> int | None:
    """
    Add delta (positive or negative) to a customer's running balance.

    Walk-in sales pass customer_id=None; the call is then a no-op and the
    due amount lives on the invoice alone.

    No floor is applied here; the ledger's overpayment policy keeps the
    balance from going below zero.

    Must be called inside the caller's transaction (does not commit).

    Returns:
        The new balance, or None for walk-ins

    Raises:
        NotFoundError: If customer_id is set but does not exist
    """
    if customer_id is None:
        return None

    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")

    customer.total_due_cents = customer.total_due_cents + delta
    return customer.total_due_cents


def create_customer(*, patch: dict) -> Customer:
    c = Customer(total_due_cents=0)
    apply_customer_patch(c, patch)
    db.session.add(c)
    db.session.commit()
    return c


def update_customer(*, customer_id: str, patch: dict) -> Customer:
    if "total_due_cents" in patch:
        raise ValidationError("total_due_cents is maintained by the ledger and cannot be edited")

    def _op():
        begin_write()
        c = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not c:
            raise NotFoundError(f"Customer {customer_id} not found")
        apply_customer_patch(c, patch)
        db.session.commit()
        return c

    return run_with_retry(_op)


def get_customer(customer_id: str) -> Customer:
    c = db.session.get(Customer, customer_id)
    if not c:
        raise NotFoundError(f"Customer {customer_id} not found")
    return c


def get_customer_by_phone(phone: str) -> Customer:
    c = (
        db.session.query(Customer)
        .filter(Customer.phone == phone.strip())
        .order_by(Customer.created_at.asc())
        .first()
    )
    if not c:
        raise NotFoundError(f"No customer with phone {phone}")
    return c


def list_customers(*, q: str | None = None) -> list[Customer]:
    """List customers by name; q matches name or phone (case-insensitive substring)."""
    query = db.session.query(Customer)
    if q:
        pattern = f"%{q.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Customer.name).like(pattern),
            Customer.phone.like(pattern),
        ))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def customer_statement(customer_id: str) -> dict:
    """
    Customer balance with the invoices and payments behind it.

    Returns:
        - customer: Customer dict
        - invoices: All invoices for the customer, newest first
        - payments: All payments for the customer, newest first
        - open_due_cents: Sum of due over open invoices (should equal total_due_cents)
    """
    customer = get_customer(customer_id)

    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.customer_id == customer_id)
        .order_by(Invoice.created_at.desc())
        .all()
    )
    payments = (
        db.session.query(Payment)
        .filter(Payment.customer_id == customer_id)
        .order_by(Payment.created_at.desc())
        .all()
    )

    return {
        "customer": customer.to_dict(),
        "invoices": [inv.to_dict() for inv in invoices],
        "payments": [p.to_dict() for p in payments],
        "open_due_cents": sum(inv.due_cents for inv in invoices if inv.due_cents > 0),
    }
