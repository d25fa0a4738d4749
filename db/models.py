"""
SQLAlchemy ORM Models
Tables: flows.
The flow graph is stored verbatim as JSONB, together with the validation
outcome it was saved with. All enum-like columns use plain TEXT.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Flow(Base):
    __tablename__ = "flows"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    description = Column(Text)
    flow = Column(JSONB, nullable=False)
    is_valid = Column(Boolean, nullable=False, default=False)
    draft = Column(Boolean, nullable=False, default=False)
    errors = Column(JSONB, nullable=False, default=list)
    warnings = Column(JSONB, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self, include_flow=True):
        data = {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "is_valid": self.is_valid,
            "draft": self.draft,
            "errors": self.errors or [],
            "warnings": self.warnings or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_flow:
            data["flow"] = self.flow
        return data
