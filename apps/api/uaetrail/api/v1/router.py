from fastapi import APIRouter

from uaetrail.api.v1.admin_events import router as admin_events_router
from uaetrail.api.v1.admin_users import router as admin_users_router
from uaetrail.api.v1.auth import router as auth_router
from uaetrail.api.v1.events import router as events_router
from uaetrail.api.v1.me import router as me_router
from uaetrail.api.v1.organizer import router as organizer_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(me_router)
router.include_router(events_router)
router.include_router(organizer_router)
router.include_router(admin_users_router)
router.include_router(admin_events_router)
