"""
Prompt Builder Backend — Pydantic Schemas
Request/response models. Wire names are camelCase where the frontend
expects them; Python code uses the snake_case field names.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ── Composition ──────────────────────────────────────────────────────────────
class ComponentData(BaseModel):
    id: int
    type: str = Field(min_length=1, description="Component type, e.g. Instructions, Context, Role")
    content: str = ""


class ComposeRequest(BaseModel):
    components: List[ComponentData] = Field(default_factory=list)
    variables: Dict[str, str] = Field(default_factory=dict, description="Values for {{variable}} tokens")


class ComposeResponse(BaseModel):
    prompt: str
    rendered_prompt: str = Field(alias="renderedPrompt")
    variables: List[str]
    variable_values: Dict[str, str] = Field(alias="variableValues")

    class Config:
        populate_by_name = True


# ── Prompts ──────────────────────────────────────────────────────────────────
class PromptSave(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    components: List[ComponentData]
    settings: Dict[str, Any]
    category: Optional[str] = None
    overwrite: bool = Field(default=True, description="Replace an existing prompt with the same name")


class PromptUpdate(BaseModel):
    id: str
    new_name: Optional[str] = Field(default=None, alias="newName")
    new_category: Optional[str] = Field(default=None, alias="newCategory")

    class Config:
        populate_by_name = True


class PromptSummary(BaseModel):
    id: str
    name: str
    settings: Optional[Dict[str, Any]] = None
    category: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class PromptResponse(PromptSummary):
    user_id: str
    components: List[Dict[str, Any]]
    created_at: datetime


# ── Templates ────────────────────────────────────────────────────────────────
class TemplateSave(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    components: List[ComponentData]
    overwrite: bool = True


class TemplateUpdate(BaseModel):
    id: str
    new_name: str = Field(alias="newName")

    class Config:
        populate_by_name = True


class TemplateSummary(BaseModel):
    id: str
    name: str
    updated_at: datetime

    class Config:
        from_attributes = True


class TemplateResponse(TemplateSummary):
    components: List[Dict[str, Any]]
    created_at: datetime


# ── User Settings ────────────────────────────────────────────────────────────
class UserSettingsUpdate(BaseModel):
    """Either a key save/removal, a preference update, or both."""
    provider_to_save: Optional[str] = None
    plaintext_api_key: Optional[str] = None
    consent_given: Optional[bool] = None
    last_selected_provider: Optional[str] = None
    last_selected_model: Optional[str] = None

    @property
    def has_key_payload(self) -> bool:
        return self.provider_to_save is not None and self.consent_given is not None


class UserSettingsResponse(BaseModel):
    last_selected_provider: Optional[str] = None
    last_selected_model: Optional[str] = None
    has_openai_key_saved: bool = False
    has_anthropic_key_saved: bool = False
    has_google_key_saved: bool = False


# ── Shared Library ───────────────────────────────────────────────────────────
class LibraryItemResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    category: Optional[str]
    tags: Optional[List[str]]
    components: List[Dict[str, Any]]
    suggested_provider: Optional[str]
    suggested_model: Optional[str]
    example_input: Optional[str]
    example_output_description: Optional[str]
    is_featured: bool
    created_at: datetime

    class Config:
        from_attributes = True


class LibraryPage(BaseModel):
    items: List[LibraryItemResponse]
    total_count: int = Field(alias="totalCount")

    class Config:
        populate_by_name = True


# ── Providers / Refinement ───────────────────────────────────────────────────
class ModelsResponse(BaseModel):
    models: List[str]


class ValidateKeyRequest(BaseModel):
    provider: str = Field(min_length=1)
    api_key: str = Field(min_length=1, alias="apiKey")

    class Config:
        populate_by_name = True


class ValidateKeyResponse(BaseModel):
    is_valid: bool = Field(alias="isValid")
    models: Optional[List[str]] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class QualifyRequest(BaseModel):
    prompt_text: str = Field(min_length=1, alias="promptText")

    class Config:
        populate_by_name = True


class QualifyResponse(BaseModel):
    type: str
    detail: Optional[str] = None


class RefineRequest(BaseModel):
    prompt: Optional[str] = None
    components: Optional[List[ComponentData]] = None
    variables: Dict[str, str] = Field(default_factory=dict)
    provider: Optional[str] = None
    model: Optional[str] = None


class RefineUserRequest(BaseModel):
    prompt: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    model: str = Field(min_length=1)
    api_key: Optional[str] = Field(default=None, alias="apiKey")

    class Config:
        populate_by_name = True


class RefineResponse(BaseModel):
    refined_prompt: str = Field(alias="refinedPrompt")

    class Config:
        populate_by_name = True


# ── Billing ──────────────────────────────────────────────────────────────────
class CheckoutRequest(BaseModel):
    price_id: str = Field(min_length=1, alias="priceId")

    class Config:
        populate_by_name = True


class CheckoutResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    url: Optional[str] = None

    class Config:
        populate_by_name = True


class CheckoutStatusResponse(BaseModel):
    success: bool
    status: Optional[str] = None
    payment_status: Optional[str] = None
    customer: Optional[str] = None


class PortalResponse(BaseModel):
    url: str


class SubscriptionResponse(BaseModel):
    plan_id: str
    status: str
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    cancel_at_period_end: bool = False
    has_access: bool = False
    access_reason: Optional[str] = None

    class Config:
        from_attributes = True
