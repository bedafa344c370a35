"""
Prompt Builder — Shared Library Item Model
Curated, publicly readable prompt recipes.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text, JSON, Boolean

from promptbuilder.core.database import Base


class SharedLibraryItem(Base):
    __tablename__ = "shared_library_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    tags = Column(JSON, nullable=True)
    components = Column(JSON, nullable=False, default=list)
    suggested_provider = Column(String(50), nullable=True)
    suggested_model = Column(String(255), nullable=True)
    example_input = Column(Text, nullable=True)
    example_output_description = Column(Text, nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<SharedLibraryItem(id='{self.id}', name='{self.name}')>"
