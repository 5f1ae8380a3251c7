# backend/franchise_booking/models/professional.py
"""
Professional and customer projections.

Profiles are owned by the identity and onboarding systems. The engine keeps
only the columns it reads, plus the rating aggregate it is responsible for.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Professional(Base):
    """Service provider; ``rating_average`` and ``total_reviews`` are derived."""

    __tablename__ = "professionals"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    # Written only by the rating aggregator
    rating_average = Column(Numeric(3, 1), nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    bookings = relationship("Booking", back_populates="professional")

    def __repr__(self) -> str:
        return f"<Professional {self.id}: {self.business_name}>"


class Customer(Base):
    """Customer projection used for booking ownership and display."""

    __tablename__ = "customers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    bookings = relationship("Booking", back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer {self.id}: {self.first_name} {self.last_name}>"
