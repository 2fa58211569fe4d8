from __future__ import annotations

from ..extensions import db
from cannasaas.time_utils import to_utc_z


class Organization(db.Model):
    """
    Multi-tenant root: every retailer is an Organization.

    All dispensaries, customers and orders belong to exactly one
    organization. No data may cross organization boundaries.

    COMPLIANCE POLICY:
    The tenant decides which checks apply before a sale:
    - age_verification_required: customer must have a date of birth and meet
      the minimum age (21, or 18 when medical_only)
    - require_id_scan: a stored ID verification older than the configured
      window must be redone
    - daily_purchase_limit_grams: cap on weight purchased per local day
    """
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    age_verification_required = db.Column(db.Boolean, nullable=False, default=True)
    medical_only = db.Column(db.Boolean, nullable=False, default=False)
    require_id_scan = db.Column(db.Boolean, nullable=False, default=False)
    daily_purchase_limit_grams = db.Column(db.Numeric(10, 3), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        limit = self.daily_purchase_limit_grams
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "age_verification_required": self.age_verification_required,
            "medical_only": self.medical_only,
            "require_id_scan": self.require_id_scan,
            "daily_purchase_limit_grams": str(limit) if limit is not None else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Dispensary(db.Model):
    """
    Selling location within an organization.

    Scope for inventory, order numbering and daily reports. The local
    timezone decides which calendar day an order belongs to.
    """
    __tablename__ = "dispensaries"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_dispensaries_org_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    # None falls back to Config.DEFAULT_TAX_JURISDICTION
    tax_jurisdiction = db.Column(db.String(16), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("dispensaries", lazy=True))

    def __repr__(self) -> str:
        return f"<Dispensary id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "tax_jurisdiction": self.tax_jurisdiction,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
