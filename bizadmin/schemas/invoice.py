from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(_Body):
    description: str = ""
    # kept loose: non-numeric quantities and prices count as 0 in totals
    qty: Any = 0
    unit_price: Any = 0


class TotalsRequest(_Body):
    line_items: List[LineItem] = []


class TotalsResponse(_Body):
    line_totals: List[float]
    sub_total: float
    tax_total: float
    grand_total: float


class TemplateCreate(_Body):
    name: str
    currency: Optional[str] = None
    header: Dict[str, Any] = {}
    footer: Dict[str, Any] = {}
    fields: List[Dict[str, Any]] = []
    line_item_columns: List[Dict[str, Any]] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Template name is required")
        return v.strip()


class InvoiceCreate(_Body):
    template_id: str
    invoice_number: str = ""
    issue_date: Optional[str] = None
    due_date: Optional[str] = None
    customer: Dict[str, Any] = {}
    fields: Dict[str, Any] = {}
    line_items: List[LineItem] = []


class CreatedResponse(BaseModel):
    id: str
    message: str
