"""
Seat model.

`is_available` is the mutual-exclusion point for reservations: it is only ever
flipped with a conditional UPDATE keyed on its current value, never by
read-modify-write through the ORM.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from seatify.db.base import Base, TimestampMixin


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    seat_row = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    event = relationship("Event", back_populates="seats", lazy="raise")

    __table_args__ = (
        UniqueConstraint("event_id", "seat_row", "seat_number", name="uq_seat_position"),
    )

    @property
    def label(self) -> str:
        return f"{self.seat_row}{self.seat_number}"

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, event={self.event_id}, label={self.label}, available={self.is_available})>"
