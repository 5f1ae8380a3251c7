# backend/franchise_booking/repositories/professional_repository.py
"""
Repository for professionals.

Besides the generic reads, it owns the denormalized rating columns
(``rating_average``, ``total_reviews``) that the review service recomputes.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from ..models.professional import Professional
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProfessionalRepository(BaseRepository[Professional]):
    """Data access for professionals, including the derived rating columns."""

    def __init__(self, db: Session):
        super().__init__(db, Professional)
        self.logger = logging.getLogger(__name__)

    def set_rating_aggregate(
        self, professional: Professional, rating_average: Any, total_reviews: int
    ) -> Professional:
        return self.apply_changes(
            professional, rating_average=rating_average, total_reviews=total_reviews
        )
