from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale header, owned by the sales subsystem.

    The ledger only needs it as the disposition target of SOLD instances
    (see instance_service.mark_sold).
    """
    __tablename__ = "sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED")
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "status": self.status,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
        }
