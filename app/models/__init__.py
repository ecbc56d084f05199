# Import the declarative base
from app.db.base import Base  # noqa: F401

# Import all models for Alembic/SQLAlchemy discovery
# Note: These imports are required so that they register themselves on Base.metadata
from app.models.discount import (  # noqa: F401
    AppliedDiscount,
    DiscountAuditLog,
    DiscountType,
)
