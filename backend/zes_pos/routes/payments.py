# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment Receipt API Routes

WHY: Customers settle open invoices over time. Each receipt is an
append-only journal entry that also moves the invoice and customer balances.

IDEMPOTENCY: Clients may send an Idempotency-Key header (or an
"idempotency_key" body field). A retried request with the same key returns
the original payment instead of applying it twice.

SECURITY:
- RECORD_PAYMENT permission required
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..services import ledger_service
from ..services.concurrency import ConsistencyError
from ..validation import coerce_int, ValidationError, NotFoundError, ConflictError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_permission("RECORD_PAYMENT")
def record_payment_route():
    """
    Receive a payment against an invoice.

    Request body:
    {
        "invoice_id": "...",
        "amount_cents": 10000,
        "method": "cash"
    }

    Returns:
        201: Payment recorded, with the updated invoice
        400: Invalid amount/method, invoice already paid, or overpayment
        404: Unknown invoice
        409: Idempotency key mismatch or concurrent modification
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice_id = data.get("invoice_id")
        if not invoice_id or "amount_cents" not in data:
            raise ValidationError("invoice_id and amount_cents required")

        payment = ledger_service.record_payment(
            invoice_id=invoice_id,
            amount_cents=coerce_int("amount_cents", data.get("amount_cents")),
            method=data.get("method") or ledger_service.METHOD_CASH,
            actor=g.current_user.username,
            idempotency_key=request.headers.get("Idempotency-Key") or data.get("idempotency_key"),
        )
        invoice = ledger_service.get_invoice(payment.invoice_id)
        return jsonify({
            "payment": payment.to_dict(),
            "invoice": {
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "paid_cents": invoice.paid_cents,
                "due_cents": invoice.due_cents,
                "status": invoice.status,
            },
        }), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ConflictError, ConsistencyError) as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/invoices/<invoice_id>")
@require_auth
@require_permission("RECORD_PAYMENT")
def list_invoice_payments_route(invoice_id: str):
    try:
        payments = ledger_service.list_payments(invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "invoice_id": invoice_id,
        "payments": [p.to_dict() for p in payments],
        "total_paid_cents": sum(p.amount_cents for p in payments),
    }), 200
