"""Stripe webhook event ledger for idempotency."""
from sqlalchemy import Column, String, DateTime
from tenantkit.database import Base
from tenantkit.utils.dates import utcnow, isoformat


class WebhookEvent(Base):
    """One row per provider event id delivered to /webhook."""
    __tablename__ = 'webhook_events'

    id = Column(String(255), primary_key=True)  # Stripe event id (evt_...)
    type = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='processing', index=True)
    outcome = Column(String(20), nullable=True)
    received_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    processed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<WebhookEvent(id='{self.id}', type='{self.type}', status='{self.status}')>"

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'type': self.type,
            'status': self.status,
            'outcome': self.outcome,
            'received_at': isoformat(self.received_at),
            'processed_at': isoformat(self.processed_at),
        }

    @property
    def is_processed(self):
        """Check if event has been processed."""
        return self.status == 'processed'
