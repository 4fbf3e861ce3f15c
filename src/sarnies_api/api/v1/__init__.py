from fastapi import APIRouter, Depends

from sarnies_api.api.dependencies.security import require_staff_api_key

from .endpoints import pos, qr

router = APIRouter(dependencies=[Depends(require_staff_api_key)])
router.include_router(qr.router)
router.include_router(pos.router)
