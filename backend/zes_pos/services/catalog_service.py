# backend/zes_pos/services/catalog_service.py
"""
Catalog Service

WHY: Products are the leaf of the ledger. Billing reads their price and
cost snapshots and decrements their stock; catalog management edits them.

STOCK GUARD: Every stock change, whether from billing or from a manual
edit, goes through _apply_stock_delta so a negative result is rejected
before anything is flushed.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product
from ..validation import ValidationError, NotFoundError
from .concurrency import begin_write, lock_for_update, run_with_retry

log = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "category",
    "unit",
    "price_per_unit_cents",
    "cost_per_unit_cents",
    "stock",
    "watts",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS or k == "stock":
            continue
        setattr(p, k, v)


def _get_locked(product_id: str) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _apply_stock_delta(product: Product, delta: int) -> int:
    """
    Compute and stage the new stock level on an already-locked product.

    Raises ValidationError (and stages nothing) if the result would be negative.
    """
    next_stock = product.stock + delta
    if next_stock < 0:
        raise ValidationError(
            f"Insufficient stock for {product.name}: have {product.stock}, need {-delta}",
        )
    product.stock = next_stock
    return next_stock


# =============================================================================
# STOCK
# =============================================================================

def adjust_stock(product_id: str, delta: int, *, commit: bool = True) -> int:
    """
    Add delta (positive or negative) to a product's stock.

    Args:
        product_id: Product to adjust
        delta: Signed quantity change
        commit: When False, the change is staged in the caller's transaction
            (used by ledger_service so billing stays atomic)

    Returns:
        The new stock level

    Raises:
        NotFoundError: If the product does not exist
        ValidationError: If the result would be negative (nothing is persisted)
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")

    if not commit:
        return _apply_stock_delta(_get_locked(product_id), delta)

    def _op():
        begin_write()
        product = _get_locked(product_id)
        next_stock = _apply_stock_delta(product, delta)
        db.session.commit()
        log.info("Stock for product %s adjusted by %+d to %d", product_id, delta, next_stock)
        return next_stock

    return run_with_retry(_op)


# =============================================================================
# CRUD
# =============================================================================

def create_product(*, patch: dict) -> Product:
    """
    Create product from a validated patch dict.

    Raises:
        ValidationError: If stock would start negative
    """
    stock = patch.get("stock") or 0
    if stock < 0:
        raise ValidationError("stock must be >= 0")

    p = Product(stock=stock)
    apply_product_patch(p, patch)
    if p.category is None:
        p.category = ""

    db.session.add(p)
    db.session.commit()
    log.info("Created product %s (%s)", p.id, p.name)
    return p


def update_product(*, product_id: str, patch: dict) -> Product:
    """
    Patch a product.

    A "stock" key is treated as an absolute target and is routed through
    the same non-negative guard that billing uses.
    """
    def _op():
        begin_write()
        p = _get_locked(product_id)
        apply_product_patch(p, patch)
        if "stock" in patch:
            target = patch["stock"]
            if target is None:
                raise ValidationError("stock cannot be null")
            _apply_stock_delta(p, target - p.stock)
        db.session.commit()
        return p

    return run_with_retry(_op)


def delete_product(*, product_id: str) -> None:
    """
    Delete a product.

    Historical invoice items keep their product_id and snapshot fields;
    nothing cascades.
    """
    p = db.session.query(Product).filter_by(id=product_id).first()
    if not p:
        raise NotFoundError(f"Product {product_id} not found")
    db.session.delete(p)
    db.session.commit()
    log.info("Deleted product %s (%s)", product_id, p.name)


def get_product(product_id: str) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise NotFoundError(f"Product {product_id} not found")
    return p


def list_products(*, category: str | None = None, q: str | None = None) -> list[Product]:
    """
    List products ordered by name.

    Args:
        category: Exact category match (optional)
        q: Case-insensitive substring on name or category (optional)
    """
    query = db.session.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if q:
        pattern = f"%{q.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.category).like(pattern),
        ))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category != "")
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def list_low_stock(threshold: int) -> list[Product]:
    """Products whose stock is strictly below threshold, lowest first."""
    return (
        db.session.query(Product)
        .filter(Product.stock < threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
