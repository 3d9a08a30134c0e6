from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SALE_STATUS_PENDING = "pending"
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"

PAYMENT_CASH = "cash"
PAYMENT_MPESA = "mpesa"
PAYMENT_BANK_TRANSFER = "bank_transfer"
PAYMENT_CARD = "card"
PAYMENT_OTHER = "other"

PAYMENT_METHODS = (
    PAYMENT_CASH,
    PAYMENT_MPESA,
    PAYMENT_BANK_TRANSFER,
    PAYMENT_CARD,
    PAYMENT_OTHER,
)


class Sale(db.Model):
    """
    POS sale, created together with its items and register entry.

    offline_id is the client-generated idempotency key used by offline-queued
    registers; (business_id, offline_id) is unique so a retried submission is
    rejected instead of decrementing stock twice.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("business_id", "offline_id", name="uq_sales_business_offline_id"),
        db.Index("ix_sales_business_branch_sold", "business_id", "branch_id", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED)

    offline_id = db.Column(db.String(100), nullable=True)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "offline_id": self.offline_id,
            "sold_at": to_utc_z(self.sold_at),
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """Line item on a sale; unit price is a snapshot taken at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class CashRegisterEntry(db.Model):
    """Payment record for a sale. Exactly one per sale."""
    __tablename__ = "cash_register_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)

    payment_method = db.Column(db.String(32), nullable=False)
    reference_code = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    recorded_by_user_id = db.Column(db.Integer, nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("register_entry", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "branch_id": self.branch_id,
            "sale_id": self.sale_id,
            "payment_method": self.payment_method,
            "reference_code": self.reference_code,
            "amount_cents": self.amount_cents,
            "recorded_by_user_id": self.recorded_by_user_id,
            "recorded_at": to_utc_z(self.recorded_at),
        }
