from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EmailLoginPayload(CamelModel):
    # sem EmailStr: formato inválido deve cair no erro genérico de credenciais
    email: Optional[str] = None
    password: Optional[str] = None


class TeamLoginPayload(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class RefreshPayload(CamelModel):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class RegisterPayload(CamelModel):
    email: EmailStr
    password: str
    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field("", alias="lastName")
    restaurant_name: Optional[str] = Field(None, alias="restaurantName")
    restaurant_type: Optional[str] = Field(None, alias="restaurantType")

    @field_validator("first_name")
    @classmethod
    def _strip_first_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("firstName must not be blank")
        return value


class ChangePasswordPayload(CamelModel):
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")


class JoinRequestPayload(CamelModel):
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")


class TeamMemberUpdate(CamelModel):
    status: Optional[str] = None
    role: Optional[str] = None
    capabilities: Optional[Dict[str, bool]] = None


class IdentityRead(CamelModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    email: str
    name: str
    first_name: str = Field(..., serialization_alias="firstName")
    last_name: str = Field(..., serialization_alias="lastName")
    role: str
    status: str
    tenant_id: Optional[str] = Field(None, serialization_alias="tenantId")
    organization: Optional[str] = None
    capabilities: Dict[str, bool] = Field(default_factory=dict)
    last_login_at: Optional[datetime] = Field(None, serialization_alias="lastLoginAt")


class JoinRequestRead(CamelModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    first_name: str = Field(..., serialization_alias="firstName")
    last_name: str = Field(..., serialization_alias="lastName")
    tenant_id: str = Field(..., serialization_alias="tenantId")
    organization: Optional[str] = None
    status: str
    identity_id: Optional[str] = Field(None, serialization_alias="identityId")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    approved_at: Optional[datetime] = Field(None, serialization_alias="approvedAt")
    rejected_at: Optional[datetime] = Field(None, serialization_alias="rejectedAt")
