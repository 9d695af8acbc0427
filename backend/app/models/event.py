"""
Event model. Carpool offers and tickets hang off events; event CRUD is
handled elsewhere.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Index

from app.db.base import Base, TimestampMixin, UTCDateTime


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(UTCDateTime(), nullable=False)
    location = Column(String(255), nullable=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, date={self.date})>"
