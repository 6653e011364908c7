from fastapi import APIRouter, Depends, HTTPException
import logging

from formdesk.api.deps import get_public_store
from formdesk.db.base import Store, StoreError
from formdesk.schemas.submission import FormSubmission, SubmissionResult
from formdesk.services.submission_service import FormNotFoundError, SubmissionService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{slug}", response_model=SubmissionResult)
def submit_form(
    slug: str,
    submission: FormSubmission,
    store: Store = Depends(get_public_store),
):
    try:
        response_id = SubmissionService(store).submit(slug, submission)
    except FormNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError as e:
        logger.error("Failed to store submission for %s: %s", slug, e.message)
        raise HTTPException(status_code=500, detail=f"Failed to save response: {e.message}")
    return SubmissionResult(success=True, responseId=response_id)
