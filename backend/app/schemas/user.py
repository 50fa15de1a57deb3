"""Pydantic schemas for registration, login and token exchange."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


class UserCredentialsLoose(BaseModel):
    """Register/login body for development and test: length checks only."""

    username: str = Field(
        min_length=3,
        max_length=50,
        pattern=USERNAME_PATTERN,
        description="Letters, digits, underscore and hyphen only",
    )
    password: str = Field(min_length=8, max_length=100)


class UserCredentials(UserCredentialsLoose):
    """Register/login body for production: password also needs lower, upper and digit."""

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not (any(c.islower() for c in v) and any(c.isupper() for c in v) and any(c.isdigit() for c in v)):
            raise ValueError("Password must contain a lowercase letter, an uppercase letter and a digit")
        return v


def get_user_schema(strict: bool) -> type[UserCredentialsLoose]:
    return UserCredentials if strict else UserCredentialsLoose


class RefreshBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken", min_length=1)


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")


class MessageResponse(BaseModel):
    message: str


class SessionOut(BaseModel):
    """A live refresh-token record, without the token itself."""

    model_config = ConfigDict(populate_by_name=True)

    token_id: str = Field(alias="tokenId")
    device_info: str = Field(alias="deviceInfo")
    created_at: datetime = Field(alias="createdAt")
    last_used: datetime = Field(alias="lastUsed")
