from fastapi import APIRouter

from georise.api.v1.account import router as account_router
from georise.api.v1.admin import router as admin_router
from georise.api.v1.analysis import router as analysis_router
from georise.api.v1.auth import router as auth_router
from georise.api.v1.brands import router as brands_router
from georise.api.v1.coach import router as coach_router
from georise.api.v1.competitors import router as competitors_router
from georise.api.v1.credits import router as credits_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(auth_router)
api_v1_router.include_router(account_router)
api_v1_router.include_router(brands_router)
api_v1_router.include_router(analysis_router)
api_v1_router.include_router(competitors_router)
api_v1_router.include_router(credits_router)
api_v1_router.include_router(coach_router)
api_v1_router.include_router(admin_router)
