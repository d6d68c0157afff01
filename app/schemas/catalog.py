from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PriceType = Literal["fixed", "range", "from", "tbd"]

_ID_PATTERN = r"^[a-zA-Z0-9_-]+$"


class Brand(BaseModel):
    id: str = Field(min_length=1, max_length=64, pattern=_ID_PATTERN)
    name: str = Field(min_length=1, max_length=255)


class DeviceModel(BaseModel):
    id: str = Field(min_length=1, max_length=64, pattern=_ID_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    brand: str = Field(min_length=1, max_length=64)


class Issue(BaseModel):
    id: str = Field(min_length=1, max_length=64, pattern=_ID_PATTERN)
    name: str = Field(min_length=1, max_length=255)


class PriceEntry(BaseModel):
    """One price per (model, issue). The tag decides which amount fields apply."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=(), extra="ignore")

    model_id: str = Field(alias="modelId", min_length=1)
    issue_id: str = Field(alias="issueId", min_length=1)
    type: PriceType
    price: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    from_: Optional[float] = Field(default=None, alias="from")
    warranty_days: int = Field(default=0, alias="warrantyDays", ge=0)
    eta: str = ""
    notes: str = ""

    @model_validator(mode="after")
    def check_variant(self):
        if self.type == "fixed" and self.price is None:
            raise ValueError("Price is required for fixed type")
        if self.type == "range":
            if self.min is None or self.max is None:
                raise ValueError("Min and max are required for range type")
            if self.min > self.max:
                raise ValueError("Min must not exceed max")
        if self.type == "from" and self.from_ is None:
            raise ValueError("From value is required for from type")
        # amounts belonging to other variants are dropped, never coerced
        if self.type != "fixed":
            self.price = None
        if self.type != "range":
            self.min = self.max = None
        if self.type != "from":
            self.from_ = None
        return self

    def pricing(self) -> dict:
        out = {
            "type": self.type,
            "warrantyDays": self.warranty_days,
            "eta": self.eta,
            "notes": self.notes,
        }
        if self.type == "fixed":
            out["price"] = self.price
        elif self.type == "range":
            out["min"] = self.min
            out["max"] = self.max
        elif self.type == "from":
            out["from"] = self.from_
        return out

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class PriceData(BaseModel):
    brand: str
    currency: str
    whatsappNumber: str
    disclaimer: str = ""
    brands: List[Brand] = []
    models: List[DeviceModel] = []
    issues: List[Issue] = []
    prices: List[PriceEntry] = []

    def dump(self) -> dict:
        data = self.model_dump(exclude={"prices"})
        data["prices"] = [p.dump() for p in self.prices]
        return data


class ModelUpdate(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1, max_length=64, pattern=_ID_PATTERN)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    brand: Optional[str] = Field(default=None, min_length=1, max_length=64)


class IssueUpdate(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1, max_length=64, pattern=_ID_PATTERN)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class PriceKey(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: str = Field(alias="modelId", min_length=1)
    issue_id: str = Field(alias="issueId", min_length=1)


class QuoteOut(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    ok: bool = True
    brand: str
    currency: str
    disclaimer: str
    model: DeviceModel
    issue: Issue
    pricing: dict
    displayPrice: str
    validUntil: int
    whatsappUrl: str
    phone: str

    @field_validator("pricing")
    @classmethod
    def pricing_has_type(cls, v: dict):
        if "type" not in v:
            raise ValueError("pricing must carry its type tag")
        return v
