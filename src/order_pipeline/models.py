"""
Pydantic models for extracted and rendered orders.
Attributes are snake_case; JSON uses camelCase aliases (model_dump(by_alias=True)).
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientInfo(_Model):
    name: str = ""
    tax_id: str = Field(default="", description="CPF or CNPJ as printed")
    address: str = ""
    phone: str = ""
    email: str = ""
    company: str = ""


class OrderInfo(_Model):
    number: str = Field(default="", description="Order number; natural key for duplicate detection")
    date: str = ""
    payment_method: str = ""
    vendor_name: str = ""
    total_value: float = Field(default=0.0, ge=0.0)


class LineItem(_Model):
    """One product or service row as extracted from the receipt."""
    description: str = ""
    code: str = ""
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0.0, ge=0.0)
    discount_percent: float = Field(default=0.0, ge=0.0)
    line_total: float = Field(default=0.0, ge=0.0)


class VehicleInfo(_Model):
    make: str = ""
    model: str = ""
    year: str = ""
    plate: str = ""
    color: str = ""


class TeamInfo(_Model):
    installer_name: str = ""
    vendor_name: str = ""


class ExtractedOrder(_Model):
    """Result of one extraction. Fields that were not found are empty, never None."""
    client: ClientInfo = Field(default_factory=ClientInfo)
    order: OrderInfo = Field(default_factory=OrderInfo)
    line_items: list[LineItem] = Field(default_factory=list)
    vehicle: VehicleInfo = Field(default_factory=VehicleInfo)
    team: TeamInfo = Field(default_factory=TeamInfo)
    notes: str = ""
    warnings: list[str] = Field(default_factory=list)
    raw_metadata: dict = Field(default_factory=dict)

    @model_validator(mode="after")
    def _mirror_vendor_name(self) -> "ExtractedOrder":
        if self.order.vendor_name and not self.team.vendor_name:
            self.team.vendor_name = self.order.vendor_name
        elif self.team.vendor_name and not self.order.vendor_name:
            self.order.vendor_name = self.team.vendor_name
        return self


class DocumentLineItem(_Model):
    """Line item as handed to the renderer. Lenient: anything missing is 0 or ""."""
    description: str = ""
    code: str = ""
    quantity: int = 0
    unit_price: float = 0.0
    discount_percent: float = 0.0
    line_total: float = 0.0
    installer_name: str = ""

    @field_validator("description", "code", "installer_name", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("unit_price", "discount_percent", "line_total", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> Any:
        from .parsers import parse_decimal
        if v is None or v == "":
            return 0.0
        if isinstance(v, str):
            return parse_decimal(v) or 0.0
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v: Any) -> Any:
        from .parsers import parse_decimal
        if v is None or v == "":
            return 0
        if isinstance(v, str):
            v = parse_decimal(v) or 0
        if isinstance(v, float):
            return int(v)
        return v


class OrderDocument(_Model):
    """Renderer input: extracted data merged with fields entered after review."""
    client: ClientInfo = Field(default_factory=ClientInfo)
    order: OrderInfo = Field(default_factory=OrderInfo)
    line_items: list[DocumentLineItem] = Field(default_factory=list)
    vehicle: VehicleInfo = Field(default_factory=VehicleInfo)
    team: TeamInfo = Field(default_factory=TeamInfo)
    notes: str = ""

    @field_validator("client", "order", "vehicle", "team", mode="before")
    @classmethod
    def _none_to_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("line_items", "notes", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any, info) -> Any:
        if v is None:
            return [] if info.field_name == "line_items" else ""
        return v

    @classmethod
    def from_extracted(
        cls,
        extracted: ExtractedOrder,
        vehicle: Optional[VehicleInfo | dict] = None,
        vendor_name: Optional[str] = None,
        installer_names: Optional[list[str]] = None,
    ) -> "OrderDocument":
        """
        Merge an extraction with data collected afterwards.
        vehicle replaces non-empty vehicle fields; installer_names is positional per line item.
        """
        data = extracted.model_dump(exclude={"warnings", "raw_metadata"})
        if vehicle is not None:
            extra = vehicle.model_dump() if isinstance(vehicle, VehicleInfo) else dict(vehicle)
            data["vehicle"].update({k: v for k, v in extra.items() if v})
        if vendor_name:
            data["order"]["vendor_name"] = vendor_name
            data["team"]["vendor_name"] = vendor_name
        for item, installer in zip(data["line_items"], installer_names or []):
            item["installer_name"] = installer or ""
        return cls.model_validate(data)


class CompanyIdentity(_Model):
    """Header block of the rendered document."""
    name: str = "Like Kar - Som e Acessorios | Estetica Automotiva"
    address: str = "Avenida Bartolomeu de Carlos, 333 - Guarulhos/SP - CEP: 07097-420"
    contact: str = "(11) 4574-0701  |  likekarsuporte@gmail.com"


class ProcessedOrder(BaseModel):
    """Result for a single processed file."""
    source_file: str
    strategy: str
    order: Optional[ExtractedOrder] = None
    error: Optional[str] = None
    output_pdf: Optional[str] = None
