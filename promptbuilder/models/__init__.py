"""Prompt Builder — Database Models"""

from promptbuilder.models.subscription import Subscription
from promptbuilder.models.prompt import Prompt
from promptbuilder.models.template import Template
from promptbuilder.models.user_settings import UserSettings
from promptbuilder.models.library_item import SharedLibraryItem

__all__ = ["Subscription", "Prompt", "Template", "UserSettings", "SharedLibraryItem"]
