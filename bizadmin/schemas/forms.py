from datetime import date
from pydantic import BaseModel, Field
from typing import Annotated, Any, List, Literal, Optional, Union

from bizadmin.schemas.entity import SelectOption


class _WidgetBase(BaseModel):
    key: str
    label: str
    required: bool = False
    disabled: bool = False
    placeholder: Optional[str] = None


class InputWidget(_WidgetBase):
    widget: Literal["input"] = "input"
    input_type: str = "text"
    value: Any = ""


class SelectWidget(_WidgetBase):
    widget: Literal["select"] = "select"
    value: str = ""
    options: List[SelectOption] = []
    allow_blank: bool = True


class CheckboxWidget(_WidgetBase):
    widget: Literal["checkbox"] = "checkbox"
    value: bool = False


class DateWidget(_WidgetBase):
    widget: Literal["date"] = "date"
    value: Optional[date] = None
    display: str = ""


class TextAreaWidget(_WidgetBase):
    widget: Literal["textarea"] = "textarea"
    value: str = ""


Widget = Annotated[
    Union[InputWidget, SelectWidget, CheckboxWidget, DateWidget, TextAreaWidget],
    Field(discriminator="widget"),
]


class FormView(BaseModel):
    mode: Literal["add", "change"]
    entity: str
    record_id: Optional[str] = None
    widgets: List[Widget] = []
    values: dict = {}
    message: Optional[str] = None
