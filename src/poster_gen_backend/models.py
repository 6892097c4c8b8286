from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PosterStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    FAILED = "failed"


class ArtifactMode(str, Enum):
    PDF = "pdf"
    IMAGE = "image"

    @property
    def extension(self) -> str:
        return ".pdf" if self is ArtifactMode.PDF else ".png"


class FieldSpec(BaseModel):
    """One expected entry of a template's required-field schema.

    Stored schemas written by older admin tooling use camelCase keys
    (``maxLength``, ``patternTitle``); both spellings are accepted.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    label: str = ""
    type: str = "text"
    pattern: Optional[str] = None
    max_length: Optional[int] = Field(default=None, validation_alias=AliasChoices("max_length", "maxLength"))
    pattern_title: Optional[str] = Field(default=None, validation_alias=AliasChoices("pattern_title", "patternTitle"))

    @property
    def display_label(self) -> str:
        return self.label or self.name


class PosterInput(BaseModel):
    business_name: str = Field(..., min_length=1, max_length=100)
    data: Dict[str, Any] = Field(default_factory=dict)
    customization_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("business_name")
    @classmethod
    def _strip_business_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("business_name must not be blank")
        return value

    @field_validator("data", "customization_data", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class PosterView(BaseModel):
    id: int
    template_id: int
    business_name: str
    artifact_url: Optional[str] = None
    status: PosterStatus
    user_input_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class LayoutCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    file_path: str = Field(..., min_length=1, max_length=255)


class LayoutView(BaseModel):
    id: int
    name: str
    file_path: str
    created_at: datetime


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    layout_id: int = Field(..., gt=0)
    price: int = Field(0, ge=0)
    thumbnail_url: Optional[str] = Field(None, max_length=255)
    is_active: bool = True
    required_fields: List[FieldSpec] = Field(default_factory=list)
    default_customization: Dict[str, Any] = Field(default_factory=dict)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    layout_id: Optional[int] = Field(None, gt=0)
    price: Optional[int] = Field(None, ge=0)
    thumbnail_url: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None
    required_fields: Optional[List[FieldSpec]] = None
    default_customization: Optional[Dict[str, Any]] = None


class TemplateView(BaseModel):
    id: int
    name: str
    type: str
    layout_id: int
    layout_file_path: Optional[str] = None
    price: int
    thumbnail_url: Optional[str] = None
    is_active: bool
    required_fields: List[FieldSpec]
    default_customization: Dict[str, Any]


class AssetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    data: str = Field(..., min_length=1)
    default_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")


class AssetView(BaseModel):
    id: int
    name: str
    type: str
    data: str
    default_color: Optional[str] = None


class LogoView(BaseModel):
    id: int
    name: str
    default_color: Optional[str] = None


class OrderCreate(BaseModel):
    total_amount: int = Field(..., ge=0)


class OrderView(BaseModel):
    id: int
    user_id: int
    order_number: str
    total_amount: int
    status: str
    receipt: Optional[str] = None
    created_at: datetime


class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(..., min_length=8)
    role: Literal["user", "admin"] = "user"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserView(BaseModel):
    id: int
    email: str
    role: str
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserView
