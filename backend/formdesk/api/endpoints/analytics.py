from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from typing import List, Optional

from formdesk.api.deps import get_owned_form, get_store
from formdesk.db.base import Store, StoreError
from formdesk.schemas.analytics import (
    FormResponsePage,
    QuestionAnalytics,
    ResponseFilters,
    ResponseStats,
    ResponseTrend,
)
from formdesk.schemas.form import Form
from formdesk.services.analytics_service import AnalyticsService, TrendRangeError

router = APIRouter()


def get_response_filters(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
) -> ResponseFilters:
    if source in ("", "all"):
        source = None
    try:
        return ResponseFilters(start_date=startDate, end_date=endDate, source=source)
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise HTTPException(status_code=400, detail=f"Invalid filters: {errors}")


@router.get("/{form_id}/analytics/stats", response_model=ResponseStats)
def get_response_stats(
    form: Form = Depends(get_owned_form),
    filters: ResponseFilters = Depends(get_response_filters),
    store: Store = Depends(get_store),
):
    try:
        return AnalyticsService(store).get_response_stats(form.id, filters)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch stats: {e.message}")


@router.get("/{form_id}/analytics/questions", response_model=List[QuestionAnalytics])
def get_question_analytics(
    form: Form = Depends(get_owned_form),
    filters: ResponseFilters = Depends(get_response_filters),
    store: Store = Depends(get_store),
):
    try:
        return AnalyticsService(store).get_question_analytics(form.id, filters)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch analytics: {e.message}")


@router.get("/{form_id}/analytics/trends", response_model=List[ResponseTrend])
def get_response_trends(
    form: Form = Depends(get_owned_form),
    filters: ResponseFilters = Depends(get_response_filters),
    store: Store = Depends(get_store),
):
    try:
        return AnalyticsService(store).get_response_trends(form.id, filters)
    except TrendRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch trends: {e.message}")


@router.get("/{form_id}/analytics/responses", response_model=FormResponsePage)
def get_form_responses(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    form: Form = Depends(get_owned_form),
    filters: ResponseFilters = Depends(get_response_filters),
    store: Store = Depends(get_store),
):
    try:
        return AnalyticsService(store).get_form_responses(form.id, filters, limit, offset)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch responses: {e.message}")
