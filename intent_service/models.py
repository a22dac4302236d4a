from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text
from intent_service.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String, index=True)           # Stripe Event ID, not unique: redeliveries add rows
    type = Column(String, index=True)
    payload = Column(Text)                          # JSON of data.object
    received_at = Column(DateTime(timezone=True), default=_utcnow)
