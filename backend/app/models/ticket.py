"""
Ticket model. The QR token is never stored: it is recomputed from
(event_id, id, unique_code, event.date) whenever it is needed.
"""

from sqlalchemy import Column, Integer, String, ForeignKey

from app.db.base import Base, TimestampMixin


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    unique_code = Column(String(64), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, event={self.event_id}, user={self.user_id})>"
