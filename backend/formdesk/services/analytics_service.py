import json
import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List

from formdesk.db.base import Store, eq, gte, in_, lte
from formdesk.schemas.analytics import (
    FormResponse,
    FormResponsePage,
    QuestionAnalytics,
    ResponseAnswer,
    ResponseFilters,
    ResponseStats,
    ResponseTrend,
)
from formdesk.schemas.form import CHOICE_TYPES, FormSource, QuestionType
from formdesk.schemas.submission import Answer
from formdesk.services.form_queries import (
    ANSWERS_TABLE,
    QUESTIONS_TABLE,
    RESPONSES_TABLE,
    FormQueries,
)

logger = logging.getLogger(__name__)

DISTRIBUTION_TYPES = CHOICE_TYPES | {QuestionType.RATING}
MAX_TREND_DAYS = 731


class TrendRangeError(ValueError):
    pass


def decode_answer(raw: str) -> Any:
    """Answers are stored as strings; arrays arrive JSON-encoded."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def answer_values(raw: str) -> List[str]:
    value = decode_answer(raw)
    if isinstance(value, list):
        return [str(v) for v in value]
    return [raw]


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class AnalyticsService:
    def __init__(self, store: Store):
        self.store = store
        self.queries = FormQueries(store)

    def _response_filters(self, form_id: str, filters: ResponseFilters) -> list:
        conditions = [eq("form_id", form_id)]
        if filters.start_date:
            conditions.append(gte("created_at", filters.start_date.isoformat()))
        if filters.end_date:
            conditions.append(lte("created_at", filters.end_date.isoformat()))
        if filters.source:
            conditions.append(eq("source", filters.source.value))
        return conditions

    def _responses(self, form_id: str, filters: ResponseFilters) -> List[Dict[str, Any]]:
        rows = self.store.select(
            RESPONSES_TABLE,
            columns="id, created_at, source",
            filters=self._response_filters(form_id, filters),
            order="created_at",
            desc=True,
        )
        # Bounds are re-applied to parsed timestamps so every view agrees
        return [
            row for row in rows
            if filters.matches(parse_timestamp(row["created_at"]), row["source"])
        ]

    def _answers(self, response_ids: List[str]) -> List[Answer]:
        if not response_ids:
            return []
        rows = self.store.select(ANSWERS_TABLE, filters=[in_("response_id", response_ids)])
        return [Answer(**row) for row in rows]

    def get_response_stats(self, form_id: str, filters: ResponseFilters) -> ResponseStats:
        counts = Counter(row["source"] for row in self._responses(form_id, filters))
        return ResponseStats(
            total=sum(counts.values()),
            qr=counts.get(FormSource.QR.value, 0),
            web=counts.get(FormSource.WEB.value, 0),
        )

    def get_question_analytics(
        self, form_id: str, filters: ResponseFilters
    ) -> List[QuestionAnalytics]:
        questions = self.queries.get_questions(form_id)
        responses = self._responses(form_id, filters)
        answers = self._answers([r["id"] for r in responses])

        by_question: Dict[str, List[str]] = {}
        for answer in answers:
            by_question.setdefault(answer.question_id, []).append(answer.answer)

        analytics = []
        for question in questions:
            raw_answers = by_question.get(question.id, [])
            entry = QuestionAnalytics(
                questionId=question.id,
                questionText=question.text,
                questionType=question.type.value,
                totalResponses=len(raw_answers),
            )
            if question.type in DISTRIBUTION_TYPES:
                distribution: Counter = Counter()
                for raw in raw_answers:
                    # Each selected option of a multi-select counts once
                    distribution.update(answer_values(raw))
                entry.answerDistribution = dict(distribution)
            else:
                entry.textResponses = list(raw_answers)
            analytics.append(entry)
        return analytics

    def get_response_trends(self, form_id: str, filters: ResponseFilters) -> List[ResponseTrend]:
        buckets: Dict[date, Counter] = {}
        for row in self._responses(form_id, filters):
            day = parse_timestamp(row["created_at"]).astimezone(timezone.utc).date()
            buckets.setdefault(day, Counter())[row["source"]] += 1

        if not buckets and not (filters.start_date and filters.end_date):
            return []

        first = (
            filters.start_date.astimezone(timezone.utc).date() if filters.start_date else min(buckets)
        )
        last = filters.end_date.astimezone(timezone.utc).date() if filters.end_date else max(buckets)
        if (last - first).days >= MAX_TREND_DAYS:
            if filters.start_date and filters.end_date:
                raise TrendRangeError(f"Trends cover at most {MAX_TREND_DAYS} days")
            # Open-ended ranges show the most recent days
            first = last - timedelta(days=MAX_TREND_DAYS - 1)

        trends = []
        day = first
        while day <= last:
            counts = buckets.get(day, Counter())
            qr = counts.get(FormSource.QR.value, 0)
            web = counts.get(FormSource.WEB.value, 0)
            trends.append(ResponseTrend(date=day.isoformat(), qr=qr, web=web, total=qr + web))
            day += timedelta(days=1)
        return trends

    def get_form_responses(
        self, form_id: str, filters: ResponseFilters, limit: int = 50, offset: int = 0
    ) -> FormResponsePage:
        responses = self._responses(form_id, filters)
        page = responses[offset:offset + limit]
        if not page:
            return FormResponsePage(data=[], total=len(responses))

        question_text = {
            row["id"]: row["text"]
            for row in self.store.select(
                QUESTIONS_TABLE, columns="id, text", filters=[eq("form_id", form_id)]
            )
        }

        items: Dict[str, FormResponse] = {}
        for row in page:
            items[row["id"]] = FormResponse(
                id=row["id"], created_at=row["created_at"], source=row["source"]
            )

        for answer in self._answers(list(items)):
            item = items.get(answer.response_id)
            if item is None:
                continue
            value = decode_answer(answer.answer)
            text = ", ".join(str(v) for v in value) if isinstance(value, list) else answer.answer
            item.answers.append(
                ResponseAnswer(
                    questionId=answer.question_id,
                    questionText=question_text.get(answer.question_id, "Unknown"),
                    answer=text,
                )
            )

        return FormResponsePage(data=list(items.values()), total=len(responses))
