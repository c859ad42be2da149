from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Optional

# Spanish state names the frontend still sends in filters
STATE_ALIASES = {
    "PENDIENTE": "PENDING",
    "APROBADO": "APPROVED",
    "RECHAZADO": "REJECTED",
}


def normalize_state(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if not value:
        return None
    return STATE_ALIASES.get(value, value)


def _strip(v):
    if isinstance(v, str):
        return v.strip()
    return v


class RequestCreate(BaseModel):
    """Accepts both the English and the Spanish field names."""
    model_config = ConfigDict(populate_by_name=True)

    table: str = Field(validation_alias=AliasChoices("table", "tabla"))
    record_id: int = Field(validation_alias=AliasChoices("record_id", "recordId", "registro_id"))
    reason: str = Field(validation_alias=AliasChoices("reason", "motivo"))

    @field_validator("table", "reason", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return _strip(v)


class RequestDecision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str                      # approve / reject
    comment: Optional[str] = Field(default=None, validation_alias=AliasChoices("comment", "comentario"))

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class CodeVerification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(validation_alias=AliasChoices("code", "codigo"))

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        # some clients send the code as a number
        if isinstance(v, int):
            return str(v)
        return _strip(v)


class RequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    target_table: str
    target_record_id: int
    requester_id: int
    reason: str
    state: str
    approver_id: Optional[int] = None
    decided_at: Optional[datetime] = None
    decision_comment: Optional[str] = None
    code_expires_at: Optional[datetime] = None
    code_used: bool
    created_at: datetime


class RequestListItem(RequestOut):
    requester_name: Optional[str] = None
    requester_email: Optional[str] = None


class RequestPageOut(BaseModel):
    data: List[RequestListItem]
    page: int
    page_size: int = Field(serialization_alias="pageSize")
    total: int
    pages: int


class PendingRequestOut(BaseModel):
    id: int
    has_code: bool = Field(serialization_alias="hasCode")
    state: str = Field(serialization_alias="estado")
    expires_at: Optional[datetime] = Field(default=None, serialization_alias="expiresAt")
    requester_id: int = Field(serialization_alias="operador_id")


class PendingStatusOut(BaseModel):
    pending: bool
    request: Optional[PendingRequestOut] = None


class VerificationOut(BaseModel):
    success: bool = True
    request_id: int
    used_at: datetime
    msg: str
