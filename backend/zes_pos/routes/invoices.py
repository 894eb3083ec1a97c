# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

"""
Invoice API Routes

WHY: The counter bills a cart in one request. Stock, the customer's
balance and the opening payment all move in the same transaction.

SECURITY:
- CREATE_INVOICE permission required for billing and viewing invoices
- Item cost snapshots are only included with VIEW_COST
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission, can
from ..services import ledger_service
from ..services.concurrency import ConsistencyError
from ..services.ledger_service import CartLine, CustomerRef, Tender
from ..time_utils import parse_iso_datetime
from ..validation import coerce_int, ValidationError, NotFoundError

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _serialize(invoice) -> dict:
    return invoice.to_dict(include_cost=can("VIEW_COST"))


def _parse_cart(raw) -> list[CartLine]:
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    cart = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("each item must be an object")
        cart.append(CartLine(
            product_id=str(entry.get("product_id") or ""),
            quantity=coerce_int("quantity", entry.get("quantity")),
        ))
    return cart


def _parse_customer(data: dict) -> CustomerRef:
    customer = data.get("customer") or {}
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object")
    return CustomerRef(
        customer_id=customer.get("id") or customer.get("customer_id"),
        name=customer.get("name"),
        phone=customer.get("phone"),
    )


@invoices_bp.post("")
@require_auth
@require_permission("CREATE_INVOICE")
def create_invoice_route():
    """
    Bill a cart.

    Request body:
    {
        "items": [{"product_id": "...", "quantity": 2}],
        "customer": {"id": "..."}  or  {"name": "Walk-in", "phone": "0300..."},
        "paid_cents": 50000,
        "payment_method": "cash"
    }

    Returns:
        201: Invoice created
        400: Invalid input or insufficient stock
        404: Unknown product or customer
        409: Concurrent modification, retry
    """
    data = request.get_json(silent=True) or {}
    try:
        cart = _parse_cart(data.get("items"))
        tender = Tender(
            paid_cents=coerce_int("paid_cents", data.get("paid_cents", 0)),
            method=data.get("payment_method") or ledger_service.METHOD_CASH,
        )
        invoice = ledger_service.create_invoice(
            cart=cart,
            customer=_parse_customer(data),
            tender=tender,
            actor=g.current_user.username,
        )
        return jsonify({"invoice": _serialize(invoice)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConsistencyError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_auth
@require_permission("CREATE_INVOICE")
def list_invoices_route():
    """
    Query params:
    - status: unpaid | partial | paid
    - customer_id
    - q: invoice number, customer name or phone
    - from / to: ISO-8601 bounds
    """
    try:
        invoices = ledger_service.list_invoices(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id"),
            q=request.args.get("q"),
            start=parse_iso_datetime(request.args.get("from")),
            end=parse_iso_datetime(request.args.get("to")),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoices": [_serialize(inv) for inv in invoices]}), 200


@invoices_bp.get("/pending")
@require_auth
@require_permission("CREATE_INVOICE")
def pending_invoices_route():
    invoices = ledger_service.list_pending_invoices()
    return jsonify({
        "invoices": [_serialize(inv) for inv in invoices],
        "total_due_cents": sum(inv.due_cents for inv in invoices),
    }), 200


@invoices_bp.get("/<invoice_id>")
@require_auth
@require_permission("CREATE_INVOICE")
def get_invoice_route(invoice_id: str):
    """Read-only invoice value object, as consumed by the printable document."""
    try:
        return jsonify({"invoice": _serialize(ledger_service.get_invoice(invoice_id))}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
