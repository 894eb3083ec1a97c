# backend/zes_pos/services/ledger_service.py
"""
Ledger Service - invoice creation, payment receipt, and balance reconciliation

WHY: Billing touches up to four record types at once (invoice + items,
products, customer, payments). Each public write here is ONE transaction:
either every write commits or none does.

DESIGN PRINCIPLES:
- Snapshot semantics: invoice items copy product name/unit/price/cost at
  billing time; later catalog edits never change history
- Derived status: status is a pure function of (paid, due), never set directly
- Append-only journal: every rupee received is a Payment row, including the
  amount tendered at the counter, so paid == sum(payments)
- Explicit actor: callers pass the operator identity; nothing is read from
  ambient session state

OVERPAYMENT POLICY:
- At the counter, cash over-tender becomes change (paid is clamped to total);
  any other method must not exceed the total
- Later payments may not exceed the remaining due, and a paid invoice
  accepts no further payments
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..ids import invoice_number_for
from ..models import Customer, Invoice, InvoiceItem, Payment, Product
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError, ConflictError
from .catalog_service import adjust_stock
from .customer_service import adjust_due
from .concurrency import begin_write, lock_for_update, run_with_retry

log = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS / STATUS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_EASYPAY = "easypay"
METHOD_JAZZCASH = "jazzcash"
METHOD_BANK = "bank"

PAYMENT_METHODS = (
    METHOD_CASH,
    METHOD_CARD,
    METHOD_EASYPAY,
    METHOD_JAZZCASH,
    METHOD_BANK,
)

STATUS_UNPAID = "unpaid"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"

INVOICE_STATUSES = (STATUS_UNPAID, STATUS_PARTIAL, STATUS_PAID)

WALK_IN_NAME = "Walk-in Customer"


# =============================================================================
# COMMANDS
# =============================================================================

@dataclass(frozen=True)
class CartLine:
    """One requested product and quantity in a billing cart."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class CustomerRef:
    """
    Who the invoice is for.

    Either customer_id (an existing customer) or an inline walk-in
    name/phone. A walk-in's due is tracked on the invoice only.
    """

    customer_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class Tender:
    """Money handed over at the counter when the invoice is created."""

    paid_cents: int = 0
    method: str = METHOD_CASH


# =============================================================================
# DERIVED VALUES
# =============================================================================

def payment_status(paid_cents: int, due_cents: int) -> str:
    """
    Derive invoice status.

    - paid: nothing left to pay
    - partial: something paid, something left
    - unpaid: nothing paid yet
    """
    if due_cents == 0:
        return STATUS_PAID
    if paid_cents > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


def compute_tax(subtotal_cents: int, rate_bps: int) -> int:
    """Tax on a subtotal at rate_bps basis points, rounded half up to the minor unit."""
    if rate_bps <= 0:
        return 0
    return (subtotal_cents * rate_bps + 5000) // 10000


def _validate_method(method: str) -> None:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {list(PAYMENT_METHODS)}")


def _validate_actor(actor: str) -> None:
    if not actor or not str(actor).strip():
        raise ValidationError("actor is required")


def _validate_cart(cart: Sequence[CartLine]) -> None:
    if not cart:
        raise ValidationError("Cart is empty")
    for line in cart:
        if not line.product_id:
            raise ValidationError("product_id is required for every cart line")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
            raise ValidationError("quantity must be an integer")
        if line.quantity < 1:
            raise ValidationError(f"quantity must be >= 1 (got {line.quantity} for {line.product_id})")


def _allocate_invoice_number(created_at: datetime) -> str:
    """Time-derived number; a numeric suffix disambiguates same-millisecond invoices."""
    base = invoice_number_for(created_at)
    candidate = base
    suffix = 2
    while db.session.query(Invoice.id).filter_by(invoice_number=candidate).first() is not None:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


# =============================================================================
# INVOICE CREATION
# =============================================================================

def create_invoice(
    cart: Sequence[CartLine],
    customer: CustomerRef,
    tender: Tender,
    actor: str,
) -> Invoice:
    """
    Bill a cart.

    Steps (all in one transaction):
    1. Snapshot each product into an InvoiceItem
    2. subtotal = sum(item totals); tax at TAX_RATE_BPS; total = subtotal + tax
    3. paid = min(tendered, total); due = total - paid
    4. status derived from (paid, due)
    5. Persist invoice + items (+ opening Payment when paid > 0)
    6. Decrement stock per line (insufficient stock aborts everything)
    7. Add due to the customer's balance (existing customers only)

    Args:
        cart: Non-empty sequence of CartLine
        customer: CustomerRef (existing id or walk-in name/phone)
        tender: Amount and method handed over at the counter
        actor: Operator identity recorded as created_by

    Returns:
        The persisted Invoice

    Raises:
        ValidationError: Empty cart, bad quantity, bad tender, insufficient stock
        NotFoundError: Unknown product or customer id
    """
    _validate_cart(cart)
    _validate_actor(actor)
    _validate_method(tender.method)
    if isinstance(tender.paid_cents, bool) or not isinstance(tender.paid_cents, int):
        raise ValidationError("paid_cents must be an integer")
    if tender.paid_cents < 0:
        raise ValidationError("paid_cents must be >= 0")

    tax_rate_bps = current_app.config.get("TAX_RATE_BPS", 0)

    def _op():
        begin_write()

        # Resolve who the invoice is for
        customer_row = None
        if customer.customer_id:
            customer_row = db.session.query(Customer).filter_by(id=customer.customer_id).first()
            if not customer_row:
                raise NotFoundError(f"Customer {customer.customer_id} not found")
            customer_name = customer_row.name
            customer_phone = customer_row.phone
        else:
            customer_name = (customer.name or "").strip() or WALK_IN_NAME
            customer_phone = (customer.phone or "").strip() or None

        # 1. Snapshot products
        items = []
        for position, line in enumerate(cart):
            product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
            if not product:
                raise NotFoundError(f"Product {line.product_id} not found")
            items.append(InvoiceItem(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit=product.unit,
                price_per_unit_cents=product.price_per_unit_cents,
                cost_per_unit_cents=product.cost_per_unit_cents,
                total_cents=product.price_per_unit_cents * line.quantity,
            ))

        # 2. Totals
        subtotal = sum(item.total_cents for item in items)
        tax = compute_tax(subtotal, tax_rate_bps)
        total = subtotal + tax

        # 3. Paid / due / change
        change = 0
        paid = tender.paid_cents
        if paid > total:
            if tender.method != METHOD_CASH:
                raise ValidationError(
                    f"Non-cash tender ({tender.method}) cannot exceed the invoice total of {total}"
                )
            change = paid - total
            paid = total
        due = total - paid

        # 4-5. Persist invoice, items and opening payment
        created_at = utcnow()
        invoice = Invoice(
            invoice_number=_allocate_invoice_number(created_at),
            customer_id=customer_row.id if customer_row else None,
            customer_name=customer_name,
            customer_phone=customer_phone,
            subtotal_cents=subtotal,
            tax_cents=tax,
            total_cents=total,
            paid_cents=paid,
            due_cents=due,
            change_cents=change,
            payment_method=tender.method,
            status=payment_status(paid, due),
            created_at=created_at,
            created_by=actor,
        )
        invoice.items = items
        db.session.add(invoice)
        db.session.flush()

        if paid > 0:
            db.session.add(Payment(
                invoice_id=invoice.id,
                customer_id=invoice.customer_id,
                amount_cents=paid,
                method=tender.method,
                created_at=created_at,
                created_by=actor,
            ))

        # 6. Stock
        for line in cart:
            adjust_stock(line.product_id, -line.quantity, commit=False)

        # 7. Customer balance
        if customer_row is not None and due > 0:
            adjust_due(customer_row.id, due)

        db.session.commit()

        log.info(
            "Invoice %s created by %s: total=%d paid=%d due=%d status=%s",
            invoice.invoice_number, actor, total, paid, due, invoice.status,
        )
        return invoice

    return run_with_retry(_op)


# =============================================================================
# PAYMENT RECEIPT
# =============================================================================

def record_payment(
    invoice_id: str,
    amount_cents: int,
    method: str,
    actor: str,
    idempotency_key: str | None = None,
) -> Payment:
    """
    Receive money against an open invoice.

    Steps (all in one transaction, invoice row locked):
    1. Append an immutable Payment
    2. new_paid = paid + amount; new_due = total - new_paid
    3. Recompute status
    4. Persist paid/due/status on the invoice
    5. Subtract amount from the customer's balance (if any)

    Duplicate calls without an idempotency_key apply twice; that is a caller
    error. With a key, a replay returns the original Payment unchanged.

    Raises:
        ValidationError: amount <= 0, bad method, invoice already paid,
            or amount exceeds the remaining due
        NotFoundError: Unknown invoice
        ConflictError: idempotency_key reused for a different request
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")
    _validate_method(method)
    _validate_actor(actor)

    def _replay(existing: Payment) -> Payment:
        if (
            existing.invoice_id != invoice_id
            or existing.amount_cents != amount_cents
            or existing.method != method
        ):
            raise ConflictError(f"Idempotency key {idempotency_key!r} was already used for a different payment")
        log.info("Replayed payment %s for idempotency key %r", existing.id, idempotency_key)
        return existing

    def _op():
        begin_write()

        if idempotency_key:
            existing = db.session.query(Payment).filter_by(idempotency_key=idempotency_key).first()
            if existing:
                payment = _replay(existing)
                db.session.commit()
                return payment

        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        if invoice.status == STATUS_PAID or invoice.due_cents <= 0:
            raise ValidationError(f"Invoice {invoice.invoice_number} is already paid")

        if amount_cents > invoice.due_cents:
            raise ValidationError(
                f"Payment of {amount_cents} exceeds remaining due of {invoice.due_cents} "
                f"on invoice {invoice.invoice_number}"
            )

        # 1. Journal
        payment = Payment(
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            amount_cents=amount_cents,
            method=method,
            idempotency_key=idempotency_key,
            created_at=utcnow(),
            created_by=actor,
        )
        db.session.add(payment)

        # 2-4. Invoice balance and status
        new_paid = invoice.paid_cents + amount_cents
        new_due = invoice.total_cents - new_paid
        invoice.paid_cents = new_paid
        invoice.due_cents = new_due
        invoice.status = payment_status(new_paid, new_due)

        # 5. Customer balance
        adjust_due(invoice.customer_id, -amount_cents)

        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request committed the same idempotency key first
            db.session.rollback()
            if not idempotency_key:
                raise
            existing = db.session.query(Payment).filter_by(idempotency_key=idempotency_key).first()
            if not existing:
                raise
            return _replay(existing)

        log.info(
            "Payment %s of %d on invoice %s by %s: paid=%d due=%d status=%s",
            payment.id, amount_cents, invoice.invoice_number, actor,
            invoice.paid_cents, invoice.due_cents, invoice.status,
        )
        return payment

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: str) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    *,
    status: str | None = None,
    customer_id: str | None = None,
    q: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Invoice]:
    """
    List invoices, newest first.

    Args:
        status: unpaid, partial or paid
        customer_id: Only this customer's invoices
        q: Case-insensitive substring on invoice number, customer name or phone
        start/end: Inclusive creation-time bounds (UTC)
    """
    query = db.session.query(Invoice)
    if status:
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(INVOICE_STATUSES)}")
        query = query.filter(Invoice.status == status)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if q:
        pattern = f"%{q.strip().lower()}%"
        query = query.filter(
            func.lower(Invoice.invoice_number).like(pattern)
            | func.lower(Invoice.customer_name).like(pattern)
            | func.coalesce(Invoice.customer_phone, "").like(pattern)
        )
    if start:
        query = query.filter(Invoice.created_at >= start)
    if end:
        query = query.filter(Invoice.created_at <= end)
    return query.order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc()).all()


def list_pending_invoices() -> list[Invoice]:
    """Invoices with money still owed (partial and unpaid), newest first."""
    return (
        db.session.query(Invoice)
        .filter(Invoice.status.in_([STATUS_PARTIAL, STATUS_UNPAID]))
        .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
        .all()
    )


def list_payments(invoice_id: str) -> list[Payment]:
    get_invoice(invoice_id)
    return (
        db.session.query(Payment)
        .filter_by(invoice_id=invoice_id)
        .order_by(Payment.created_at.asc())
        .all()
    )


# =============================================================================
# CONSISTENCY AUDIT
# =============================================================================

def _issue(check: str, entity: str, entity_id: str, expected, actual) -> dict:
    return {
        "check": check,
        "entity": entity,
        "id": entity_id,
        "expected": expected,
        "actual": actual,
    }


def verify_ledger() -> list[dict]:
    """
    Recompute every ledger invariant from scratch and report drift.

    Checks:
    - invoice_balance: due == total - paid
    - invoice_status: status == payment_status(paid, due)
    - invoice_totals: subtotal == sum(items), total == subtotal + tax
    - invoice_items: invoice has at least one item
    - invoice_payments: paid == sum(payments)
    - customer_balance: total_due == sum(due) over open invoices
    - product_stock: stock >= 0

    Returns:
        One dict per violation (empty list when the ledger is consistent)
    """
    issues: list[dict] = []

    item_sums = dict(
        db.session.query(InvoiceItem.invoice_id, func.sum(InvoiceItem.total_cents))
        .group_by(InvoiceItem.invoice_id)
        .all()
    )
    payment_sums = dict(
        db.session.query(Payment.invoice_id, func.sum(Payment.amount_cents))
        .group_by(Payment.invoice_id)
        .all()
    )

    for inv in db.session.query(Invoice).order_by(Invoice.created_at.asc()).all():
        if inv.due_cents != inv.total_cents - inv.paid_cents:
            issues.append(_issue("invoice_balance", "invoice", inv.id, inv.total_cents - inv.paid_cents, inv.due_cents))
        expected_status = payment_status(inv.paid_cents, inv.due_cents)
        if inv.status != expected_status:
            issues.append(_issue("invoice_status", "invoice", inv.id, expected_status, inv.status))
        if inv.id not in item_sums:
            issues.append(_issue("invoice_items", "invoice", inv.id, ">= 1 item", 0))
        elif int(item_sums[inv.id]) != inv.subtotal_cents:
            issues.append(_issue("invoice_totals", "invoice", inv.id, int(item_sums[inv.id]), inv.subtotal_cents))
        if inv.subtotal_cents + inv.tax_cents != inv.total_cents:
            issues.append(_issue("invoice_totals", "invoice", inv.id, inv.subtotal_cents + inv.tax_cents, inv.total_cents))
        paid_from_journal = int(payment_sums.get(inv.id) or 0)
        if paid_from_journal != inv.paid_cents:
            issues.append(_issue("invoice_payments", "invoice", inv.id, paid_from_journal, inv.paid_cents))

    open_due = dict(
        db.session.query(Invoice.customer_id, func.sum(Invoice.due_cents))
        .filter(Invoice.customer_id.isnot(None), Invoice.due_cents > 0)
        .group_by(Invoice.customer_id)
        .all()
    )
    for customer in db.session.query(Customer).all():
        expected = int(open_due.get(customer.id) or 0)
        if customer.total_due_cents != expected:
            issues.append(_issue("customer_balance", "customer", customer.id, expected, customer.total_due_cents))

    for product in db.session.query(Product).filter(Product.stock < 0).all():
        issues.append(_issue("product_stock", "product", product.id, ">= 0", product.stock))

    if issues:
        log.warning("Ledger verification found %d issue(s)", len(issues))
    return issues
