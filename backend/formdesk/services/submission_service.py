import json
import logging
from typing import Any

from formdesk.db.base import Store, StoreError
from formdesk.schemas.submission import FormResponseRow, FormSubmission
from formdesk.services.form_queries import ANSWERS_TABLE, RESPONSES_TABLE, FormQueries

logger = logging.getLogger(__name__)


class FormNotFoundError(LookupError):
    pass


def encode_answer(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return str(value)


class SubmissionService:
    """Stores public submissions against published forms.

    Required questions are not re-checked here; the public page validates
    them before posting.
    """

    def __init__(self, store: Store):
        self.store = store
        self.queries = FormQueries(store)

    def submit(self, slug: str, submission: FormSubmission) -> str:
        form = self.queries.get_form_by_slug(slug)
        if form is None:
            logger.warning("Rejected submission to unknown or unpublished form %s", slug)
            raise FormNotFoundError(f"Form '{slug}' not found or not published")

        rows = self.store.insert(
            RESPONSES_TABLE, {"form_id": form.id, "source": submission.source.value}
        )
        if not rows:
            raise StoreError("Failed to create response")
        response_id = FormResponseRow(**rows[0]).id

        answers = [
            {
                "response_id": response_id,
                "question_id": item.questionId,
                "answer": encode_answer(item.answer),
            }
            for item in submission.answers
        ]
        if answers:
            self.store.insert(ANSWERS_TABLE, answers)

        logger.info(
            "Stored response %s for form %s (%s, %d answers)",
            response_id, form.id, submission.source.value, len(answers),
        )
        return response_id
