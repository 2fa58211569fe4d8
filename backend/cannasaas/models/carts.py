from __future__ import annotations

from ..extensions import db
from cannasaas.time_utils import utcnow


class Cart(db.Model):
    """Mutable shopping cart: one per (customer, dispensary)."""
    __tablename__ = "carts"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "dispensary_id", name="uq_carts_customer_dispensary"),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "CartItem",
        backref="cart",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )


class CartItem(db.Model):
    """Cart line; unit_price_cents is captured when the item is added."""
    __tablename__ = "cart_items"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    variant = db.relationship("ProductVariant")
