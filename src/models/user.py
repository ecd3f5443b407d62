"""User domain model."""
from datetime import datetime
from sqlalchemy.dialects.postgresql import UUID
from src.extensions import db
from src.models.base import BaseModel
from src.models.enums import UserRole, TwoFactorMethod


class User(BaseModel):
    """
    User account model.

    Only the fields owned by the authentication defense engine live here:
    lockout counters, known origins/devices and second factor state.
    """

    __tablename__ = "user"

    email = db.Column(
        db.String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.USER,
    )

    # Throttle & lockout state
    failed_login_count = db.Column(db.Integer, nullable=False, default=0)
    last_failed_login_at = db.Column(db.DateTime, nullable=True)
    total_failed_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime, nullable=True, index=True)
    captcha_required_since = db.Column(db.DateTime, nullable=True)

    # Known origins/devices, newest last
    known_locations = db.Column(db.JSON, nullable=False, default=list)
    known_devices = db.Column(db.JSON, nullable=False, default=list)
    last_login_at = db.Column(db.DateTime, nullable=True)
    last_login_ip = db.Column(db.String(64), nullable=True)
    last_login_location = db.Column(db.String(255), nullable=True)

    # Second factor
    two_factor_enabled = db.Column(db.Boolean, nullable=False, default=False)
    two_factor_method = db.Column(db.Enum(TwoFactorMethod), nullable=True)
    two_factor_secret = db.Column(db.String(255), nullable=True)
    two_factor_verified_at = db.Column(db.DateTime, nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)
    phone_verified = db.Column(db.Boolean, nullable=False, default=False)
    two_factor_last_reset_by = db.Column(UUID(as_uuid=True), nullable=True)
    two_factor_last_reset_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN

    def is_locked(self, now: datetime = None) -> bool:
        """An account is locked iff locked_until is set and in the future."""
        now = now or datetime.utcnow()
        return self.locked_until is not None and self.locked_until > now

    def to_dict(self) -> dict:
        """Convert to dictionary, excluding second factor secrets."""
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role.value if self.role else None,
            "failed_login_count": self.failed_login_count,
            "locked_until": self._iso(self.locked_until),
            "captcha_required_since": self._iso(self.captcha_required_since),
            "last_login_at": self._iso(self.last_login_at),
            "last_login_location": self.last_login_location,
            "two_factor_enabled": self.two_factor_enabled,
        }

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
