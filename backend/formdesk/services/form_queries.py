import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from formdesk.db.base import Store, StoreError, eq
from formdesk.schemas.form import (
    Form,
    FormSettings,
    FormStatus,
    FormWithQuestions,
    Question,
    Section,
    encode_options,
)

logger = logging.getLogger(__name__)

FORMS_TABLE = "forms"
SECTIONS_TABLE = "form_sections"
QUESTIONS_TABLE = "form_questions"
RESPONSES_TABLE = "form_responses"
ANSWERS_TABLE = "form_answers"

SLUG_PATTERN = re.compile(r"^[a-z0-9-]{3,50}$")
DEFAULT_SLUG = "form"


def generate_slug(title: str) -> str:
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def validate_slug(slug: str) -> bool:
    return bool(SLUG_PATTERN.match(slug))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return rows[0] if rows else None


def _single(rows: List[Dict[str, Any]], what: str) -> Dict[str, Any]:
    if not rows:
        raise StoreError(f"Failed to save {what}: no row returned")
    return rows[0]


class FormQueries:
    """Thin translation of form operations into store calls."""

    def __init__(self, store: Store):
        self.store = store

    # Forms

    def get_forms(self, user_id: str) -> List[Form]:
        rows = self.store.select(
            FORMS_TABLE, filters=[eq("user_id", user_id)], order="created_at", desc=True
        )
        return [Form(**row) for row in rows]

    def get_form(self, form_id: str) -> Optional[Form]:
        row = _first(self.store.select(FORMS_TABLE, filters=[eq("id", form_id)]))
        return Form(**row) if row else None

    def get_form_by_slug(self, slug: str) -> Optional[Form]:
        row = _first(
            self.store.select(
                FORMS_TABLE,
                filters=[eq("slug", slug), eq("status", FormStatus.PUBLISHED.value)],
            )
        )
        return Form(**row) if row else None

    def get_form_with_questions(self, form_id: str) -> Optional[FormWithQuestions]:
        form = self.get_form(form_id)
        if form is None:
            return None
        return self._with_content(form)

    def get_form_with_questions_by_slug(self, slug: str) -> Optional[FormWithQuestions]:
        form = self.get_form_by_slug(slug)
        if form is None:
            return None
        return self._with_content(form)

    def _with_content(self, form: Form) -> FormWithQuestions:
        return FormWithQuestions(
            **form.model_dump(),
            sections=self.get_sections(form.id),
            questions=self.get_questions(form.id),
        )

    def create_form(
        self,
        user_id: str,
        title: str,
        slug: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Form:
        row = {
            "user_id": user_id,
            "title": title,
            "description": description,
            "slug": slug,
            "status": FormStatus.DRAFT.value,
        }
        if color:
            row["color"] = color
        created = _single(self.store.insert(FORMS_TABLE, row), "form")
        logger.info("Created form %s (%s)", created["id"], slug)
        return Form(**created)

    def update_form(self, form_id: str, **fields: Any) -> Form:
        values = {k: (v.value if hasattr(v, "value") else v) for k, v in fields.items()}
        values["updated_at"] = _now()
        updated = _single(
            self.store.update(FORMS_TABLE, values, filters=[eq("id", form_id)]), "form"
        )
        return Form(**updated)

    def update_settings(self, form_id: str, settings: FormSettings) -> Form:
        values = settings.model_dump(exclude_unset=True, mode="json")
        return self.update_form(form_id, **values)

    def set_status(self, form_id: str, status: FormStatus) -> Form:
        form = self.update_form(form_id, status=status)
        logger.info("Form %s is now %s", form_id, status.value)
        return form

    def delete_form(self, form_id: str) -> None:
        # Sections, questions, responses and answers cascade in the database
        self.store.delete(FORMS_TABLE, filters=[eq("id", form_id)])
        logger.info("Deleted form %s", form_id)

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        rows = self.store.select(FORMS_TABLE, columns="id", filters=[eq("slug", slug)])
        return any(row["id"] != exclude_id for row in rows)

    def ensure_unique_slug(self, base: str, exclude_id: Optional[str] = None) -> str:
        base = base or DEFAULT_SLUG
        slug = base
        suffix = 2
        while self.slug_exists(slug, exclude_id):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    # Sections

    def get_sections(self, form_id: str) -> List[Section]:
        rows = self.store.select(
            SECTIONS_TABLE, filters=[eq("form_id", form_id)], order="order"
        )
        return [Section(**row) for row in rows]

    def create_section(
        self, form_id: str, title: str, order: int, description: Optional[str] = None
    ) -> Section:
        row = {
            "form_id": form_id,
            "title": title,
            "description": description,
            "order": order,
        }
        return Section(**_single(self.store.insert(SECTIONS_TABLE, row), "section"))

    def update_section(
        self, section_id: str, title: str, order: int, description: Optional[str] = None
    ) -> Section:
        values = {
            "title": title,
            "description": description,
            "order": order,
            "updated_at": _now(),
        }
        updated = self.store.update(SECTIONS_TABLE, values, filters=[eq("id", section_id)])
        return Section(**_single(updated, "section"))

    def delete_section(self, section_id: str) -> None:
        self.store.delete(SECTIONS_TABLE, filters=[eq("id", section_id)])

    # Questions

    def get_questions(self, form_id: str) -> List[Question]:
        rows = self.store.select(
            QUESTIONS_TABLE, filters=[eq("form_id", form_id)], order="order"
        )
        return [Question(**row) for row in rows]

    def create_question(
        self,
        form_id: str,
        order: int,
        type: str,
        text: str,
        required: bool,
        options: Optional[List[str]] = None,
        section_id: Optional[str] = None,
    ) -> Question:
        row = {
            "form_id": form_id,
            "order": order,
            "type": type,
            "text": text,
            "required": required,
            "options": encode_options(options),
            "section_id": section_id,
        }
        return Question(**_single(self.store.insert(QUESTIONS_TABLE, row), "question"))

    def update_question(
        self,
        question_id: str,
        order: int,
        type: str,
        text: str,
        required: bool,
        options: Optional[List[str]] = None,
        section_id: Optional[str] = None,
    ) -> Question:
        values = {
            "order": order,
            "type": type,
            "text": text,
            "required": required,
            "options": encode_options(options),
            "section_id": section_id,
        }
        updated = self.store.update(QUESTIONS_TABLE, values, filters=[eq("id", question_id)])
        return Question(**_single(updated, "question"))

    def delete_question(self, question_id: str) -> None:
        self.store.delete(QUESTIONS_TABLE, filters=[eq("id", question_id)])
