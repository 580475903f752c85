from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from uuid import UUID


class UserCreate(BaseModel):
    """Schema for user registration"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    is_admin: bool = False  # honoured only when an administrator registers the account

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class UserLogin(BaseModel):
    """Schema for user login"""
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    """Schema for user response"""
    id: UUID
    name: str
    email: str
    is_admin: bool
    created_at: datetime | None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: UUID
    name: str
    email: str

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
