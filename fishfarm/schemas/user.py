from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(validation_alias=AliasChoices("password", "contrasena"))

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class UserOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    role: str


class LoginResponse(BaseModel):
    ok: bool = True
    token: str
    user: UserOut


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetCodeVerification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    code: str = Field(default="", validation_alias=AliasChoices("code", "codigo"))

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        if isinstance(v, int):
            return str(v)
        return v


class NewPassword(BaseModel):
    password: str = ""
