from fastapi import APIRouter
from formdesk.api.endpoints import analytics, auth, forms, submit

api_router = APIRouter()
api_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_router.include_router(analytics.router, prefix="/forms", tags=["analytics"])
api_router.include_router(submit.router, prefix="/submit", tags=["submissions"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
