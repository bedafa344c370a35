"""
Prompt Builder — UserSettings Model
Last used provider/model and encrypted per-provider API keys.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, JSON

from promptbuilder.core.database import Base


class UserSettings(Base):
    __tablename__ = "user_settings"

    user_id = Column(String(36), primary_key=True)
    last_selected_provider = Column(String(50), nullable=True)
    last_selected_model = Column(String(255), nullable=True)
    user_api_keys_encrypted = Column(JSON, nullable=True)  # {"openai": "<fernet token>", ...}
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<UserSettings(user_id='{self.user_id}', provider='{self.last_selected_provider}')>"
