from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, List, Literal, Optional, Union


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SelectOption(CamelModel):
    value: str
    label: str


class _FieldBase(CamelModel):
    path: str
    label: str = ""
    required: bool = False
    immutable: bool = False
    sensitive: bool = False
    edit: bool = True
    hide_on_change: bool = False
    hide_on_add: bool = False
    editable_on_create: bool = False
    placeholder: Optional[str] = None
    default: Any = None

    @property
    def key(self) -> str:
        return self.path

    @property
    def display_label(self) -> str:
        return self.label or self.path


class TextField(_FieldBase):
    type: Literal["text", "email", "tel"] = "text"


class NumberField(_FieldBase):
    type: Literal["number"] = "number"


class DateField(_FieldBase):
    type: Literal["date"] = "date"


class CheckboxField(_FieldBase):
    type: Literal["checkbox"] = "checkbox"


class SelectField(_FieldBase):
    type: Literal["select"] = "select"
    enum: List[str] = []
    options: List[Union[SelectOption, str]] = []
    allow_blank: bool = False


class TextAreaField(_FieldBase):
    type: Literal["textarea"] = "textarea"


class ObjectField(_FieldBase):
    """Structured payload slot (line items, template fields) edited by a dedicated editor."""
    type: Literal["object"] = "object"


FieldDef = Annotated[
    Union[TextField, NumberField, DateField, CheckboxField, SelectField, TextAreaField, ObjectField],
    Field(discriminator="type"),
]


class SortSpec(CamelModel):
    key: str
    dir: Literal["asc", "desc"] = "asc"


class SearchConfig(CamelModel):
    keys: List[str]


class ListColumn(CamelModel):
    path: str
    label: str = ""


class ListConfig(CamelModel):
    default_sort: Optional[SortSpec] = None
    exclude: List[str] = []
    columns: List[ListColumn] = []
    sortable: bool = True


class CsvConfig(CamelModel):
    exclude: List[str] = []
    columns: List[str] = []


class MetaConfig(CamelModel):
    immutable: List[str] = []


class EditConfig(CamelModel):
    id_fields: List[str] = []
    name_field: Optional[str] = None


class EntitySchema(CamelModel):
    entity_label: Optional[str] = None
    collection_name: Optional[str] = None
    fields: List[FieldDef] = []
    search: SearchConfig
    list: ListConfig = ListConfig()
    csv: CsvConfig = CsvConfig()
    meta: MetaConfig = MetaConfig()
    edit: EditConfig = EditConfig()

    def field(self, path: str):
        return next((f for f in self.fields if f.path == path), None)
