# ===== booking_assistant/models/calendar_integration.py =====
from sqlalchemy import Column, String, DateTime, LargeBinary, ForeignKey, UniqueConstraint
from booking_assistant.models.base import Base
from booking_assistant.utils.datetime_utils import utcnow
import uuid


class IntegrationStatus:
    CONNECTED = "connected"
    NOT_CONNECTED = "not_connected"


class CalendarIntegration(Base):
    """OAuth credentials for one calendar owner (the business itself or one of its staff)"""
    __tablename__ = "calendar_integrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = Column(String(36), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(String(36), nullable=True, index=True)  # NULL = business owner's calendar

    provider = Column(String(20), default="google")
    calendar_id = Column(String(255), default="primary")
    calendar_email = Column(String(255), nullable=True)

    # OAuth tokens, Fernet-encrypted
    access_token_encrypted = Column(LargeBinary, nullable=True)
    refresh_token_encrypted = Column(LargeBinary, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    integration_status = Column(String(20), default=IntegrationStatus.CONNECTED)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)
    disconnected_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("business_id", "staff_id", "provider", name="uq_calendar_integration_owner"),
    )

    @property
    def is_connected(self) -> bool:
        return (
            self.integration_status == IntegrationStatus.CONNECTED
            and self.refresh_token_encrypted is not None
        )

    def mark_disconnected(self):
        """Clear stored tokens so later calls fail fast instead of retry-looping"""
        self.integration_status = IntegrationStatus.NOT_CONNECTED
        self.access_token_encrypted = None
        self.refresh_token_encrypted = None
        self.token_expires_at = None
        self.disconnected_at = utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "staff_id": self.staff_id,
            "provider": self.provider,
            "calendar_id": self.calendar_id,
            "calendar_email": self.calendar_email,
            "status": self.integration_status,
            "is_connected": self.is_connected,
        }
