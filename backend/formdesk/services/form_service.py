import logging
import mimetypes
from typing import Optional, Tuple
from uuid import uuid4

from formdesk.db.base import BlobStorage
from formdesk.schemas.form import Form, FormDraft, FormSettingsUpdate, FormStatus
from formdesk.services.form_queries import FormQueries, generate_slug, validate_slug
from formdesk.services.reconciliation import FormReconciler, ReconciliationResult

logger = logging.getLogger(__name__)

ALLOWED_LOGO_TYPES = {"image/png", "image/jpeg", "image/svg+xml", "image/webp", "image/gif"}
MAX_LOGO_BYTES = 2 * 1024 * 1024


class InvalidSlugError(ValueError):
    pass


class SlugTakenError(ValueError):
    pass


class InvalidUploadError(ValueError):
    pass


class FormService:
    """Owner-side form operations built on top of the query helpers."""

    def __init__(self, queries: FormQueries):
        self.queries = queries
        self.reconciler = FormReconciler(queries)

    def create_with_content(self, user_id: str, draft: FormDraft) -> Tuple[Form, ReconciliationResult]:
        slug = self.queries.ensure_unique_slug(generate_slug(draft.title))
        form = self.queries.create_form(
            user_id, title=draft.title, slug=slug, description=draft.description
        )
        result = self.reconciler.reconcile(form.id, draft.sections, draft.questions)
        return form, result

    def save_content(self, form: Form, draft: FormDraft) -> Tuple[Form, ReconciliationResult]:
        fields = {"title": draft.title, "description": draft.description}
        # Published links keep their slug; drafts follow the title
        if form.status == FormStatus.DRAFT:
            fields["slug"] = self.queries.ensure_unique_slug(
                generate_slug(draft.title), exclude_id=form.id
            )
        updated = self.queries.update_form(form.id, **fields)
        result = self.reconciler.reconcile(form.id, draft.sections, draft.questions)
        return updated, result

    def update_settings(self, form: Form, changes: FormSettingsUpdate) -> Form:
        sent = changes.model_fields_set
        if "title" in sent:
            changes.title = (changes.title or "").strip()
            if not changes.title:
                raise ValueError("Form title is required")
        if changes.description is not None:
            changes.description = changes.description.strip() or None
        if "slug" in sent:
            slug = (changes.slug or "").strip()
            if not validate_slug(slug):
                raise InvalidSlugError(
                    "Slug must be 3-50 lowercase letters, digits or hyphens"
                )
            if self.queries.slug_exists(slug, exclude_id=form.id):
                raise SlugTakenError(f"Slug '{slug}' is already in use")
            changes.slug = slug
        return self.queries.update_settings(form.id, changes)

    def set_status(self, form: Form, status: FormStatus) -> Form:
        return self.queries.set_status(form.id, status)

    def delete(self, form: Form, storage: Optional[BlobStorage] = None) -> None:
        if storage is not None and form.company_logo_url:
            storage.delete([logo_path(form.id, form.company_logo_url)])
        self.queries.delete_form(form.id)

    def upload_logo(
        self,
        form: Form,
        storage: BlobStorage,
        filename: str,
        content_type: Optional[str],
        data: bytes,
    ) -> Form:
        content_type = content_type or mimetypes.guess_type(filename)[0] or ""
        if content_type not in ALLOWED_LOGO_TYPES:
            raise InvalidUploadError(f"Unsupported logo type: {content_type or 'unknown'}")
        if len(data) > MAX_LOGO_BYTES:
            raise InvalidUploadError("Logo must be 2 MB or smaller")

        extension = mimetypes.guess_extension(content_type) or ""
        path = f"{form.id}/logo-{uuid4().hex}{extension}"
        url = storage.upload(path, data, content_type)
        if form.company_logo_url:
            storage.delete([logo_path(form.id, form.company_logo_url)])
        logger.info("Uploaded logo for form %s to %s", form.id, path)
        return self.queries.update_form(form.id, company_logo_url=url)

    def remove_logo(self, form: Form, storage: BlobStorage) -> Form:
        if form.company_logo_url:
            storage.delete([logo_path(form.id, form.company_logo_url)])
        return self.queries.update_form(form.id, company_logo_url=None)


def logo_path(form_id: str, url: str) -> str:
    """Recover the object path from a public URL issued for ``form_id``."""
    marker = f"/{form_id}/"
    index = url.find(marker)
    if index == -1:
        return url
    return url[index + 1:].split("?", 1)[0]
