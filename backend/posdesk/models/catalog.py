from __future__ import annotations

from ..extensions import db
from posdesk.time_utils import to_utc_z, utcnow

PRODUCT_CATEGORIES = ("General", "Beverages", "Snacks", "Electronics", "Clothing", "Other")


class Product(db.Model):
    """
    Catalog entry owned by a single user.

    Stock is mutated directly by the catalog manager and decremented as a
    side effect of checkout. Historical sales and invoices copy name and
    price at write time, so edits and deletes here never rewrite history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_user_name", "user_id", "name"),
        db.Index("ix_products_user_category", "user_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="General")
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} user_id={self.user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
