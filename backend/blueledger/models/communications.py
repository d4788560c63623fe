from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .tenancy import new_id


class Message(db.Model):
    """
    Worker-to-admin message. Append-only apart from admin deletion;
    MULTI-TENANT: always read and deleted through a company_id predicate.
    """
    __tablename__ = "messages"
    __table_args__ = (
        db.Index("ix_messages_company_created", "company_id", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    company_id = db.Column(db.String(32), db.ForeignKey("companies.id"), nullable=False, index=True)

    from_uid = db.Column(db.String(32), nullable=False)
    from_name = db.Column(db.String(255), nullable=False)
    from_email = db.Column(db.String(255), nullable=False, default="")

    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "from_uid": self.from_uid,
            "from_name": self.from_name,
            "from_email": self.from_email,
            "text": self.text,
            "created_at": to_utc_z(self.created_at),
        }
