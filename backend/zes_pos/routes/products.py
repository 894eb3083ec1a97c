# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
- cost_per_unit_cents is only readable and writable with VIEW_COST
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_permission, can
from ..models import Product
from ..services import catalog_service
from ..services.concurrency import ConsistencyError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
    NotFoundError,
)

_PRODUCT_FIELDS = {"name", "category", "unit", "price_per_unit_cents", "stock", "watts"}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=_PRODUCT_FIELDS | {"cost_per_unit_cents"},
    required_on_create={"name", "price_per_unit_cents"},
)

# Shopkeepers manage stock and prices but never see or set cost
PRODUCT_POLICY_NO_COST = ModelValidationPolicy(
    writable_fields=_PRODUCT_FIELDS,
    required_on_create={"name", "price_per_unit_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _policy() -> ModelValidationPolicy:
    return PRODUCT_POLICY if can("VIEW_COST") else PRODUCT_POLICY_NO_COST


def _serialize(product: Product) -> dict:
    return product.to_dict(include_cost=can("VIEW_COST"))


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - category: exact category (optional)
    - q: substring of name or category (optional)
    """
    products = catalog_service.list_products(
        category=request.args.get("category"),
        q=request.args.get("q"),
    )
    return jsonify({"products": [_serialize(p) for p in products]}), 200


@products_bp.get("/categories")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    return jsonify({"categories": catalog_service.list_categories()}), 200


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_PRODUCTS")
def low_stock_route():
    try:
        raw = request.args.get("threshold")
        threshold = coerce_int("threshold", raw) if raw is not None else current_app.config["LOW_STOCK_THRESHOLD"]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    products = catalog_service.list_low_stock(threshold)
    return jsonify({"threshold": threshold, "products": [_serialize(p) for p in products]}), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=_policy(), partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch=patch)
        return jsonify({"product": _serialize(product)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: str):
    try:
        return jsonify({"product": _serialize(catalog_service.get_product(product_id))}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.put("/<product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: str):
    """Patch semantics: only provided fields change. stock is an absolute target."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=_policy(), partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(product_id=product_id, patch=patch)
        return jsonify({"product": _serialize(product)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConsistencyError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: str):
    """Delete a product. Invoices that reference it keep their snapshots."""
    try:
        catalog_service.delete_product(product_id=product_id)
        return jsonify({"deleted": product_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<product_id>/stock")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def adjust_stock_route(product_id: str):
    """
    Receive or write off stock.

    Request body: {"delta": 25}  (negative to remove)
    """
    data = request.get_json(silent=True) or {}
    try:
        if "delta" not in data:
            raise ValidationError("delta required")
        delta = coerce_int("delta", data.get("delta"))
        stock = catalog_service.adjust_stock(product_id, delta)
        return jsonify({"product_id": product_id, "stock": stock}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConsistencyError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
