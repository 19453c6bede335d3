from __future__ import annotations

from ..extensions import db


class Setting(db.Model):
    """
    Key-value application settings.

    Known keys: "prices", "business_profile", "templates". Values are JSON
    documents; services merge them over built-in defaults on read.
    """
    __tablename__ = "settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True)
    value = db.Column(db.JSON, nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Setting {self.key!r}>"
