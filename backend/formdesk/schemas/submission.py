from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from formdesk.schemas.form import FormSource

AnswerValue = Union[List[str], str, int, float, None]


class SubmittedAnswer(BaseModel):
    questionId: str
    answer: AnswerValue = None


class FormSubmission(BaseModel):
    source: FormSource = FormSource.WEB
    answers: List[SubmittedAnswer] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    success: bool = True
    responseId: Optional[str] = None


class FormResponseRow(BaseModel):
    id: str
    form_id: str
    source: FormSource
    created_at: Optional[datetime] = None


class Answer(BaseModel):
    id: Optional[str] = None
    response_id: str
    question_id: str
    answer: str = ""

    @field_validator("answer", mode="before")
    @classmethod
    def null_answer(cls, value):
        return "" if value is None else value
