import json
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

PLACEHOLDER_PATTERN = re.compile(r"^order-(\d+)$")


class FormStatus(str, Enum):
    DRAFT = 'draft'
    PUBLISHED = 'published'


class QuestionType(str, Enum):
    SHORT_TEXT = 'short_text'
    LONG_TEXT = 'long_text'
    SINGLE_CHOICE = 'single_choice'
    MULTIPLE_CHOICE = 'multiple_choice'
    RATING = 'rating'


CHOICE_TYPES = {QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE}
TEXT_TYPES = {QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT}


class FormSource(str, Enum):
    QR = 'qr'
    WEB = 'web'


class FormTheme(str, Enum):
    LIGHT = 'light'
    DARK = 'dark'
    AUTO = 'auto'


class FormLayout(str, Enum):
    CENTERED = 'centered'
    WIDE = 'wide'
    FULL = 'full'


class FormFontFamily(str, Enum):
    INTER = 'inter'
    ROBOTO = 'roboto'
    OPEN_SANS = 'open-sans'
    LATO = 'lato'
    MONTSERRAT = 'montserrat'
    POPPINS = 'poppins'


class ButtonStyle(str, Enum):
    DEFAULT = 'default'
    ROUNDED = 'rounded'
    PILL = 'pill'
    OUTLINE = 'outline'


def decode_options(value: Any) -> Optional[List[str]]:
    """Options are stored as a JSON string; older rows may hold a list."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return [str(v) for v in value]


def encode_options(options: Optional[List[str]]) -> Optional[str]:
    if options is None:
        return None
    return json.dumps(list(options))


class FormSettings(BaseModel):
    color: Optional[str] = None
    theme: Optional[FormTheme] = None
    layout: Optional[FormLayout] = None
    font_family: Optional[FormFontFamily] = None
    background_color: Optional[str] = None
    button_style: Optional[ButtonStyle] = None
    button_color: Optional[str] = None
    show_progress: Optional[bool] = None
    show_branding: Optional[bool] = None
    company_name: Optional[str] = None
    company_logo_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website_url: Optional[str] = None


class Form(FormSettings):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    slug: str
    status: FormStatus = FormStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FormSettingsUpdate(FormSettings):
    """PATCH body for the settings screen; only fields sent are written."""
    title: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None


class FormStatusUpdate(BaseModel):
    status: FormStatus


class Section(BaseModel):
    id: str
    form_id: str
    title: str
    description: Optional[str] = None
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Question(BaseModel):
    id: str
    form_id: str
    section_id: Optional[str] = None
    type: QuestionType
    text: str
    required: bool = False
    options: Optional[List[str]] = None
    order: int
    created_at: Optional[datetime] = None

    @field_validator("options", mode="before")
    @classmethod
    def parse_options(cls, value):
        return decode_options(value)

    @field_validator("required", mode="before")
    @classmethod
    def null_required(cls, value):
        return bool(value)


class FormWithQuestions(Form):
    sections: List[Section] = []
    questions: List[Question] = []


# Draft content sent by the editor. New sections have no id yet, so
# questions point at them by order.

class PlaceholderRef(BaseModel):
    kind: Literal["placeholder"] = "placeholder"
    order: int

    @property
    def key(self) -> str:
        return f"order-{self.order}"


class PersistedRef(BaseModel):
    kind: Literal["persisted"] = "persisted"
    id: str


SectionRef = Annotated[Union[PlaceholderRef, PersistedRef], Field(discriminator="kind")]


def parse_section_ref(value: Any) -> Any:
    if isinstance(value, str):
        if not value:
            return None
        match = PLACEHOLDER_PATTERN.match(value)
        if match:
            return {"kind": "placeholder", "order": int(match.group(1))}
        return {"kind": "persisted", "id": value}
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


class DraftSection(BaseModel):
    title: str
    description: Optional[str] = None
    order: int


class DraftQuestion(BaseModel):
    order: int
    type: QuestionType
    text: str
    required: bool = False
    options: Optional[List[str]] = None
    section_ref: Optional[SectionRef] = Field(default=None, alias="sectionRef")

    class Config:
        populate_by_name = True

    @field_validator("section_ref", mode="before")
    @classmethod
    def legacy_section_ref(cls, value):
        return parse_section_ref(value)

    @model_validator(mode="after")
    def drop_options_for_non_choice(self):
        if self.type not in CHOICE_TYPES:
            self.options = None
        return self


class FormDraft(BaseModel):
    title: str
    description: Optional[str] = None
    sections: List[DraftSection] = []
    questions: List[DraftQuestion] = []

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Form title is required")
        return value

    @field_validator("description")
    @classmethod
    def blank_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None
