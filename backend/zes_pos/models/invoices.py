from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z


class Invoice(db.Model):
    """
    Billing document for one counter sale.

    INVARIANTS (enforced by ledger_service, backstopped by constraints):
    - due_cents == total_cents - paid_cents
    - due_cents >= 0
    - status is derived from (paid, due), never set on its own

    MUTABILITY: After creation only paid_cents, due_cents and status change,
    and only through payment receipt. Invoices are never deleted.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.CheckConstraint("due_cents = total_cents - paid_cents", name="ck_invoices_due_balance"),
        db.CheckConstraint("due_cents >= 0", name="ck_invoices_due_nonnegative"),
        db.CheckConstraint("paid_cents >= 0", name="ck_invoices_paid_nonnegative"),
        db.Index("ix_invoices_status_created", "status", "created_at"),
        db.Index("ix_invoices_customer_created", "customer_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Human-readable number derived from creation time (e.g., "INV-261019-140307412")
    invoice_number = db.Column(db.String(64), nullable=False)

    # Walk-in sales carry no customer reference
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Totals (all amounts in minor units)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    due_cents = db.Column(db.Integer, nullable=False)

    # Cash handed back when the counter tender exceeded the total
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)  # unpaid, partial, paid

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.String(64), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} total={self.total_cents} paid={self.paid_cents} status={self.status}>"

    def to_dict(self, include_cost: bool = False) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "items": [item.to_dict(include_cost=include_cost) for item in self.items],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "due_cents": self.due_cents,
            "change_cents": self.change_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "version_id": self.version_id,
        }


class InvoiceItem(db.Model):
    """
    Line item on an invoice.

    SNAPSHOT: product_name, unit, price and cost are copied from the product
    when the invoice is written. Later catalog edits never reach back here.
    product_id is a plain reference (no FK) so deleting a product leaves
    history intact.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)

    # Cart order
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.String(36), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=True)
    total_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("Invoice", back_populates="items")

    def to_dict(self, include_cost: bool = False) -> dict:
        data = {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "price_per_unit_cents": self.price_per_unit_cents,
            "total_cents": self.total_cents,
        }
        if include_cost:
            data["cost_per_unit_cents"] = self.cost_per_unit_cents
        return data


class Payment(db.Model):
    """
    Money received against an invoice.

    IMMUTABLE: Append-only journal. Records are never updated or deleted;
    an invoice's paid_cents always equals the sum of its payments.

    IDEMPOTENCY: idempotency_key is optional and caller-supplied. When set,
    a retried request returns the original payment instead of applying twice.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("idempotency_key", name="uq_payments_idempotency_key"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_invoice_created", "invoice_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)

    # Denormalized from the invoice at the time of payment
    customer_id = db.Column(db.String(36), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.String(64), nullable=False)

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True, order_by="Payment.created_at"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
