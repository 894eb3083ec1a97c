# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

"""
Customer routes.

total_due_cents is read-only here; it only moves through invoices and
payments.
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_permission
from ..models import Customer
from ..services import customer_service
from ..services.concurrency import ConsistencyError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address"},
    required_on_create={"name", "phone"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def list_customers_route():
    customers = customer_service.list_customers(q=request.args.get("q"))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch)
        return jsonify({"customer": customer.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/by-phone/<phone>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def get_customer_by_phone_route(phone: str):
    try:
        return jsonify({"customer": customer_service.get_customer_by_phone(phone).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.get("/<customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def get_customer_route(customer_id: str):
    try:
        return jsonify({"customer": customer_service.get_customer(customer_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.put("/<customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        if "total_due_cents" in payload:
            raise ValidationError("total_due_cents is maintained by the ledger and cannot be edited")
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
        return jsonify({"customer": customer.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConsistencyError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<customer_id>/statement")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def customer_statement_route(customer_id: str):
    try:
        return jsonify(customer_service.customer_statement(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
