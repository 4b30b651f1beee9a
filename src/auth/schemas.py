"""Pydantic schemas for auth requests."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# Request bodies accept both snake_case and the camelCase names older clients send
_aliases = ConfigDict(populate_by_name=True)


class SignupRequest(BaseModel):
    model_config = _aliases

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    display_name: str = Field(min_length=2, max_length=255, alias="displayName")
    phone: str | None = None
    role: str | None = None


class SigninRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    model_config = _aliases

    refresh_token: str = Field(min_length=1, alias="refreshToken")


class UpdatePasswordRequest(BaseModel):
    model_config = _aliases

    current_password: str = Field(min_length=1, alias="currentPassword")
    new_password: str = Field(min_length=8, max_length=128, alias="newPassword")


class EmailRequest(BaseModel):
    email: EmailStr


class TokenRequest(BaseModel):
    token: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    model_config = _aliases

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128, alias="newPassword")
