"""Base model shared by all persisted entities."""
import uuid
from datetime import datetime
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db


class BaseModel(db.Model):
    """
    Abstract base model.

    Every row carries a UUID primary key, creation/update timestamps
    and an integer ``version`` used for compare-and-swap updates.
    """

    __abstract__ = True

    id = db.Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
    version = db.Column(db.Integer, nullable=False, default=1)

    @staticmethod
    def _iso(value):
        return value.isoformat() if value else None
