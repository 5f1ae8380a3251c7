# backend/franchise_booking/models/service.py
"""Catalog service projection. Owned by catalog management; read-only here."""

from sqlalchemy import Boolean, Column, Numeric, String
import ulid

from ..database import Base


class Service(Base):
    """A bookable service with its hourly rate and default duration."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # per hour
    duration_hours = Column(Numeric(5, 2), nullable=True)
    call_out_fee = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Service {self.id}: {self.name} @ {self.price}/h>"
