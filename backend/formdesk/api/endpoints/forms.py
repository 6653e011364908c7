from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import HTMLResponse
from typing import List
import logging

from formdesk.api.deps import (
    get_blob_storage,
    get_current_user,
    get_owned_form,
    get_store,
    public_base_url,
)
from formdesk.core.config import Settings, get_settings
from formdesk.db.base import AuthUser, BlobStorage, Store, StoreError
from formdesk.schemas.form import (
    Form,
    FormDraft,
    FormSettingsUpdate,
    FormStatusUpdate,
    FormWithQuestions,
)
from formdesk.services.form_queries import FormQueries
from formdesk.services.form_service import (
    FormService,
    InvalidSlugError,
    InvalidUploadError,
    SlugTakenError,
)
from formdesk.services.qr_service import QRCodeService

router = APIRouter()
logger = logging.getLogger(__name__)


def _saved(form: Form, result) -> dict:
    return {
        "form": form.model_dump(mode="json"),
        "sectionIds": result.section_ids,
        "created": {"sections": result.created_sections, "questions": result.created_questions},
        "updated": {"sections": result.updated_sections, "questions": result.updated_questions},
        "deleted": {"sections": result.deleted_sections, "questions": result.deleted_questions},
    }


@router.get("", response_model=List[Form])
def get_forms(
    user: AuthUser = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    try:
        return FormQueries(store).get_forms(user.id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch forms: {e.message}")


@router.post("", status_code=201)
def create_form(
    draft: FormDraft,
    response: Response,
    user: AuthUser = Depends(get_current_user),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        form, result = FormService(FormQueries(store)).create_with_content(user.id, draft)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to create form: {e.message}")

    # Lets the editor recover the new id if the page reloads mid-flow
    response.set_cookie(
        settings.PENDING_FORM_COOKIE,
        form.id,
        max_age=settings.PENDING_FORM_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return _saved(form, result)


@router.get("/pending")
def get_pending_form(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    form_id = request.cookies.get(settings.PENDING_FORM_COOKIE)
    if not form_id:
        raise HTTPException(status_code=404, detail="No pending form")
    form = FormQueries(store).get_form(form_id)
    if form is None or form.user_id != user.id:
        raise HTTPException(status_code=404, detail="No pending form")
    return {"id": form.id}


@router.get("/{form_id}", response_model=FormWithQuestions)
def get_form(
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
):
    try:
        return FormQueries(store).get_form_with_questions(form.id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch form: {e.message}")


@router.put("/{form_id}/content")
def save_form_content(
    draft: FormDraft,
    request: Request,
    response: Response,
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        updated, result = FormService(FormQueries(store)).save_content(form, draft)
    except StoreError as e:
        # Earlier writes of this save are not rolled back
        logger.error("Saving form %s stopped: %s", form.id, e.message)
        raise HTTPException(status_code=500, detail=f"Failed to save form: {e.message}")

    if request.cookies.get(settings.PENDING_FORM_COOKIE) == form.id:
        response.delete_cookie(settings.PENDING_FORM_COOKIE, path="/")
    return _saved(updated, result)


@router.patch("/{form_id}/settings", response_model=Form)
def update_form_settings(
    changes: FormSettingsUpdate,
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
):
    try:
        return FormService(FormQueries(store)).update_settings(form, changes)
    except SlugTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (InvalidSlugError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save settings: {e.message}")


@router.put("/{form_id}/status", response_model=Form)
def update_form_status(
    body: FormStatusUpdate,
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
):
    try:
        return FormService(FormQueries(store)).set_status(form, body.status)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to update status: {e.message}")


@router.delete("/{form_id}")
def delete_form(
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
    storage: BlobStorage = Depends(get_blob_storage),
):
    try:
        FormService(FormQueries(store)).delete(form, storage)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete form: {e.message}")
    return {"message": "Form deleted successfully", "id": form.id}


@router.post("/{form_id}/logo", response_model=Form)
def upload_logo(
    file: UploadFile = File(...),
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
    storage: BlobStorage = Depends(get_blob_storage),
):
    data = file.file.read()
    try:
        return FormService(FormQueries(store)).upload_logo(
            form, storage, file.filename or "logo", file.content_type, data
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to upload logo: {e.message}")


@router.delete("/{form_id}/logo", response_model=Form)
def remove_logo(
    form: Form = Depends(get_owned_form),
    store: Store = Depends(get_store),
    storage: BlobStorage = Depends(get_blob_storage),
):
    try:
        return FormService(FormQueries(store)).remove_logo(form, storage)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to remove logo: {e.message}")


@router.get("/{form_id}/title")
def get_form_title(form: Form = Depends(get_owned_form)):
    return {"title": form.title}


@router.get("/{form_id}/qr-pdf", response_class=HTMLResponse)
def get_form_qr_sheet(
    request: Request,
    form: Form = Depends(get_owned_form),
    settings: Settings = Depends(get_settings),
):
    qr = QRCodeService()
    form_url = qr.build_form_url(public_base_url(request, settings), form.slug)
    html = qr.render_print_page(form, form_url)
    return HTMLResponse(
        html,
        headers={"Content-Disposition": f'inline; filename="{form.slug}-qr-code.html"'},
    )
