"""SQLAlchemy Declarative Base — shared base class and column-type defaults.

Invariants:
    - All models inherit from Base; Base.metadata is what alembic and create_all see
    - Decimal attributes default to Numeric(38, 18): 18 fractional digits hold any
      amount of an 18-decimal native token exactly
    - datetime attributes default to timezone-aware columns (all stored times are UTC)

Design Decisions:
    - Separate file for Base: avoids circular imports between models
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all Autopay ORM models."""
    type_annotation_map = {
        Decimal: Numeric(38, 18),
        datetime: DateTime(timezone=True),
    }
