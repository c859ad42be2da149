from pydantic import AliasChoices, BaseModel, ConfigDict, Field
import datetime as dt
from typing import Optional


class LossCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lot_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("lot_id", "lote_id"))
    pond_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("pond_id", "piscina_id"))
    date: dt.date = Field(validation_alias=AliasChoices("date", "fecha"))
    dead: int = Field(default=0, ge=0, validation_alias=AliasChoices("dead", "muertos"))
    missing: int = Field(default=0, ge=0, validation_alias=AliasChoices("missing", "faltantes"))
    surplus: int = Field(default=0, ge=0, validation_alias=AliasChoices("surplus", "sobrantes"))
    deformed: int = Field(default=0, ge=0, validation_alias=AliasChoices("deformed", "deformes"))


class LossReplace(LossCreate):
    """PUT body: every column is sent; ``active`` only when restoring/deactivating."""
    dead: int = Field(ge=0, validation_alias=AliasChoices("dead", "muertos"))
    missing: int = Field(ge=0, validation_alias=AliasChoices("missing", "faltantes"))
    surplus: int = Field(ge=0, validation_alias=AliasChoices("surplus", "sobrantes"))
    deformed: int = Field(ge=0, validation_alias=AliasChoices("deformed", "deformes"))
    active: Optional[bool] = None


class LossPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lot_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("lot_id", "lote_id"))
    pond_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("pond_id", "piscina_id"))
    date: Optional[dt.date] = Field(default=None, validation_alias=AliasChoices("date", "fecha"))
    dead: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("dead", "muertos"))
    missing: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("missing", "faltantes"))
    surplus: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("surplus", "sobrantes"))
    deformed: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("deformed", "deformes"))
    active: Optional[bool] = None


class LossOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lot_id: Optional[int] = None
    pond_id: Optional[int] = None
    date: dt.date
    dead: int
    missing: int
    surplus: int
    deformed: int
    active: bool
    created_by: Optional[int] = None
    created_at: dt.datetime
    updated_by: Optional[int] = None
    updated_at: Optional[dt.datetime] = None
