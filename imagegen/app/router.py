from fastapi import APIRouter

from imagegen.core.conf import settings
from imagegen.src.billing.endpoints import billing_router

router = APIRouter()

router.include_router(billing_router, prefix=f'{settings.FASTAPI_API_V1_PATH}/billing', tags=['Billing'])
