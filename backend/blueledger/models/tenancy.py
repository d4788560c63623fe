from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z


def new_id() -> str:
    return uuid.uuid4().hex


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    All products, profiles and messages carry company_id and no record may
    reference another company's data. An admin's signup creates the company
    and the admin becomes its owner.
    """
    __tablename__ = "companies"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    owner_uid = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_uid": self.owner_uid,
            "created_at": to_utc_z(self.created_at),
        }
