# app/schemas/auth.py
from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(SQLModel):
    """
    Registration form.

    Validation rules:
      - nombre cannot be empty or whitespace
      - password at least 6 characters
    """

    model_config = ConfigDict(extra="forbid")

    nombre: str = Field(max_length=200)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("nombre")
    @classmethod
    def normalize_nombre(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("nombre cannot be empty")
        return v


class ForgotPasswordRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: str


class ResetPasswordRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    password: str
    confirm_password: str | None = None
