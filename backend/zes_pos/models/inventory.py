from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog entry for an item the shop sells.

    STOCK: Never negative. The check constraint is the last line; every
    service path rejects a negative result before flushing.

    COST: cost_per_unit_cents is owner-only data. to_dict() omits it unless
    the caller asks for it explicitly.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("price_per_unit_cents >= 0", name="ck_products_price_nonnegative"),
        db.CheckConstraint(
            "cost_per_unit_cents IS NULL OR cost_per_unit_cents >= 0",
            name="ck_products_cost_nonnegative",
        ),
        db.Index("ix_products_category_name", "category", "name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, default="")

    # piece, meter, pack
    unit = db.Column(db.String(16), nullable=False, default="piece")

    # Authoritative storage in minor units (frontend may only format for display)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    watts = db.Column(db.String(32), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "price_per_unit_cents": self.price_per_unit_cents,
            "stock": self.stock,
            "watts": self.watts,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_cost:
            data["cost_per_unit_cents"] = self.cost_per_unit_cents
        return data
