from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from typing import Optional
import logging

from formdesk.api.deps import get_auth, get_public_store, set_session_cookies
from formdesk.core.config import Settings, get_settings
from formdesk.core.templates import templates
from formdesk.db.base import AuthProvider, AuthProviderError, Store
from formdesk.schemas.form import FormSource, FormWithQuestions
from formdesk.services.form_queries import FormQueries

router = APIRouter()
logger = logging.getLogger(__name__)

FONT_STACKS = {
    "inter": "Inter",
    "roboto": "Roboto",
    "open-sans": "'Open Sans'",
    "lato": "Lato",
    "montserrat": "Montserrat",
    "poppins": "Poppins",
}


def group_questions(form: FormWithQuestions) -> list:
    """Unsectioned questions first, then each section with its questions."""
    groups = [{"section": None, "questions": [q for q in form.questions if not q.section_id]}]
    for section in form.sections:
        groups.append({
            "section": section,
            "questions": [q for q in form.questions if q.section_id == section.id],
        })
    return [g for g in groups if g["section"] is not None or g["questions"]]


def safe_next(value: Optional[str]) -> str:
    if not value or not value.startswith("/") or value[1:2] in ("/", "\\"):
        return "/dashboard"
    return value


@router.get("/f/{slug}", response_class=HTMLResponse)
def public_form(
    request: Request,
    slug: str,
    source: Optional[str] = None,
    store: Store = Depends(get_public_store),
):
    form = FormQueries(store).get_form_with_questions_by_slug(slug)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")

    submission_source = FormSource.QR if source == FormSource.QR.value else FormSource.WEB
    return templates.TemplateResponse(
        request,
        "public_form.html",
        {
            "form": form,
            "groups": group_questions(form),
            "source": submission_source.value,
            "font": FONT_STACKS.get(form.font_family.value if form.font_family else "", "Inter"),
            "layout": form.layout.value if form.layout else "centered",
        },
    )


@router.get("/auth/callback")
def auth_callback(
    request: Request,
    token_hash: Optional[str] = None,
    type: Optional[str] = None,
    next: Optional[str] = None,
    auth: AuthProvider = Depends(get_auth),
    settings: Settings = Depends(get_settings),
):
    if token_hash and type:
        try:
            session = auth.verify_otp(token_hash, type)
        except AuthProviderError as e:
            logger.warning("Email verification failed: %s", e.message)
        else:
            response = RedirectResponse(safe_next(next), status_code=303)
            set_session_cookies(response, session, settings)
            return response

    return RedirectResponse("/auth/login?error=verification_failed", status_code=303)
