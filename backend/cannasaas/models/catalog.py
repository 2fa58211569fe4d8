from __future__ import annotations

from ..extensions import db
from cannasaas.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data, scoped to a dispensary.

    batch_number and license_number are the regulatory identifiers that get
    copied onto every order line sold from this product.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_dispensary_active", "dispensary_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)
    license_number = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    dispensary = db.relationship("Dispensary", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} dispensary_id={self.dispensary_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dispensary_id": self.dispensary_id,
            "name": self.name,
            "category": self.category,
            "batch_number": self.batch_number,
            "license_number": self.license_number,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ProductVariant(db.Model):
    """
    Sellable variant (e.g. "3.5g", "1oz") and its on-hand inventory.

    quantity is authoritative and is only changed through
    inventory_service.adjust_quantity, which floors it at zero.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_product_variants_quantity_nonneg"),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} name={self.name!r} quantity={self.quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "weight_grams": str(self.weight_grams) if self.weight_grams is not None else None,
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
        }


class StockMovement(db.Model):
    """
    Append-only record of each inventory adjustment.

    An order's sale decrements can be reconstructed from these rows
    (order_id is set), so a crash between order write and inventory
    adjustment is recoverable.
    """
    __tablename__ = "stock_movements"

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    delta = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(32), nullable=False)  # sale, cancellation, restock, adjust, damage
    order_id = db.Column(db.String(36), nullable=True, index=True)
    performed_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "delta": self.delta,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reason": self.reason,
            "order_id": self.order_id,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }
