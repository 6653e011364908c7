from datetime import date, datetime, time, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from formdesk.schemas.form import FormSource


def parse_filter_date(value: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    A bare date used as an upper bound covers the whole day.
    """
    value = value.strip()
    if len(value) == 10:
        day = date.fromisoformat(value)
        moment = datetime.combine(day, time.max if end_of_day else time.min)
        return moment.replace(tzinfo=timezone.utc)
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class ResponseFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    source: Optional[FormSource] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start(cls, value):
        if isinstance(value, str):
            return parse_filter_date(value) if value.strip() else None
        return value

    @field_validator("end_date", mode="before")
    @classmethod
    def parse_end(cls, value):
        if isinstance(value, str):
            return parse_filter_date(value, end_of_day=True) if value.strip() else None
        return value

    def matches(self, created_at: datetime, source: str) -> bool:
        if self.start_date and created_at < self.start_date:
            return False
        if self.end_date and created_at > self.end_date:
            return False
        if self.source and source != self.source.value:
            return False
        return True


class ResponseStats(BaseModel):
    total: int = 0
    qr: int = 0
    web: int = 0


class QuestionAnalytics(BaseModel):
    questionId: str
    questionText: str
    questionType: str
    totalResponses: int = 0
    answerDistribution: Dict[str, int] = Field(default_factory=dict)
    textResponses: List[str] = Field(default_factory=list)


class ResponseTrend(BaseModel):
    date: str
    qr: int = 0
    web: int = 0
    total: int = 0


class ResponseAnswer(BaseModel):
    questionId: str
    questionText: str
    answer: str


class FormResponse(BaseModel):
    id: str
    created_at: datetime
    source: FormSource
    answers: List[ResponseAnswer] = Field(default_factory=list)


class FormResponsePage(BaseModel):
    data: List[FormResponse] = Field(default_factory=list)
    total: int = 0
