from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
import datetime as dt
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional


def _to_decimal(v, exp: Decimal, message: str) -> Decimal:
    """Finite Decimal rounded to ``exp``; anything else is a ValueError so pydantic reports it."""
    if isinstance(v, bool):
        raise ValueError(message)
    if isinstance(v, str):
        v = v.strip().replace(",", ".")
    try:
        value = Decimal(str(v))
        if not value.is_finite():
            raise ValueError(message)
        return value.quantize(exp, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(message)


def parse_kilos(v):
    """Kilos arrive as numbers or as text with a decimal comma ("12,5")."""
    if v is None or v == "":
        return None
    value = _to_decimal(v, Decimal("0.001"), "kilos inválido")
    if value < 0:
        raise ValueError("kilos inválido")
    return value


def round_count(v):
    if v is None or v == "":
        return None
    return int(_to_decimal(v, Decimal("1"), "cantidad inválida"))


class HarvestPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lot_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("lot_id", "lote_id"))
    pond_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("pond_id", "piscina_id"))
    date: Optional[dt.date] = Field(default=None, validation_alias=AliasChoices("date", "fecha"))
    trout_count: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("trout_count", "num_truchas"))
    sheet_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("sheet_number", "nro_hoja_cosecha"))
    kilos: Optional[Decimal] = Field(default=None, validation_alias=AliasChoices("kilos", "kilos_text"))
    packages: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("packages", "paquetes"))
    package_type_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("package_type_id", "package_count_id", "tipo_paquete_id")
    )
    detail_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("detail_id", "detalle_id"))
    active: Optional[bool] = None

    @field_validator("kilos", mode="before")
    @classmethod
    def normalize_kilos(cls, v):
        return parse_kilos(v)

    @field_validator("trout_count", "packages", mode="before")
    @classmethod
    def normalize_counts(cls, v):
        return round_count(v)

    @field_validator("sheet_number", mode="before")
    @classmethod
    def strip_sheet(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class HarvestCreate(HarvestPatch):
    date: dt.date = Field(validation_alias=AliasChoices("date", "fecha"))
    trout_count: int = Field(default=0, ge=0, validation_alias=AliasChoices("trout_count", "num_truchas"))
    kilos: Decimal = Field(default=Decimal("0"), validation_alias=AliasChoices("kilos", "kilos_text"))


class HarvestReplace(HarvestCreate):
    """PUT body; ``active`` only when restoring/deactivating."""


class HarvestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lot_id: Optional[int] = None
    pond_id: Optional[int] = None
    date: dt.date
    trout_count: int
    sheet_number: Optional[str] = None
    kilos: Decimal
    packages: Optional[int] = None
    package_type_id: Optional[int] = None
    detail_id: Optional[int] = None
    active: bool
    created_by: Optional[int] = None
    created_at: dt.datetime
    updated_by: Optional[int] = None
    updated_at: Optional[dt.datetime] = None
