# services/collect/models.py
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Enums
class PaymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    RETRY = "retry"


class CollectionTag(str, Enum):
    PRIMARY = "primary"
    RETRY = "retry"
    BACKUP = "backup"
    CUSTOM = "custom"


class UserRole(str, Enum):
    ADMIN = "admin"
    CHILD_ADMIN = "child_admin"


class Settlement(str, Enum):
    YES = "yes"
    NO = "no"


class CamelModel(BaseModel):
    """Request body read with camelCase keys; snake_case is accepted too"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# apps.app_id is VARCHAR(5) holding a 5-digit number
APP_ID_PATTERN = r"^\d{5}$"


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must be a non-empty string")
    return value


# Auth
class LoginRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_identifier(self):
        if not (self.username or self.email):
            raise ValueError("username or email is required")
        return self

    @property
    def identifier(self) -> str:
        return (self.username or self.email).strip()


# Payments
class PaymentWebhook(CamelModel):
    uuid: str = Field(..., max_length=255)
    app_id: str = Field(..., pattern=APP_ID_PATTERN)
    pt_status: PaymentStatus
    collection_id: str = Field(..., max_length=255)
    amount: Optional[Any] = None
    ant: Optional[Any] = None
    transaction_date: Optional[datetime] = None

    strip_text = field_validator("uuid", "app_id", "collection_id")(_not_blank)

    @property
    def raw_amount(self) -> Any:
        """The delivered amount, preferring `amount` over the legacy `ant` string"""
        return self.amount if self.amount is not None else self.ant


# Apps
class AppCreate(CamelModel):
    app_name: str = Field(..., max_length=255)
    app_logo_url: str

    strip_text = field_validator("app_name", "app_logo_url")(_not_blank)


class AppUpdate(CamelModel):
    app_name: Optional[str] = Field(None, max_length=255)
    app_logo_url: Optional[str] = None

    strip_text = field_validator("app_name", "app_logo_url")(_not_blank)

    @model_validator(mode="after")
    def require_one_field(self):
        if self.app_name is None and self.app_logo_url is None:
            raise ValueError("At least one field (appName or appLogoUrl) must be provided")
        return self


# Users
class UserCreate(CamelModel):
    username: str = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.CHILD_ADMIN
    app_ids: list[str] = Field(default_factory=list)

    strip_text = field_validator("username")(_not_blank)


class UserUpdate(CamelModel):
    username: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)
    app_ids: Optional[list[str]] = None

    strip_text = field_validator("username")(_not_blank)


class AssignApps(CamelModel):
    app_ids: list[str]


# Spends
class SpendUpsert(CamelModel):
    app_id: str = Field(..., pattern=APP_ID_PATTERN)
    date: date
    spend_amount: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    settlement: Optional[Settlement] = None

    strip_text = field_validator("app_id")(_not_blank)


# Collections
class CollectionBatch(CamelModel):
    app_id: str = Field(..., pattern=APP_ID_PATTERN)
    # Items are validated one by one so a bad item does not sink the batch
    collections: list[Any] = Field(..., min_length=1)

    strip_text = field_validator("app_id")(_not_blank)
