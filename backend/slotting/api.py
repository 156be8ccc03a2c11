import logging

from ninja import NinjaAPI
from ninja.responses import Response

from slotting.auth import JWTAuth
from slotting.errors import SlottingError
from slotting.routers.announcement import router as announcement_router
from slotting.routers.auth import router as auth_router
from slotting.routers.community import router as community_router
from slotting.routers.mission import router as mission_router
from slotting.routers.notification import router as notification_router
from slotting.routers.slot_template import router as slot_template_router
from slotting.routers.user import router as user_router

logger = logging.getLogger(__name__)

api = NinjaAPI(
    title='slotlist backend',
    description='Mission planning and slotting for Arma 3 communities',
    version='1.0.0',
    auth=JWTAuth(),
    urls_namespace='api',
)


@api.exception_handler(SlottingError)
def slotting_error_handler(request, exc: SlottingError):
    """Translate expected slotting failures into their HTTP status"""
    logger.warning('%s %s rejected (%s): %s', request.method, request.path, exc.reason, exc.message)
    return Response({'detail': exc.message, 'reason': exc.reason}, status=exc.status_code)


@api.exception_handler(Exception)
def default_error_handler(request, exc: Exception):
    """Handle any other exception raised in the apis"""
    logger.exception('unhandled error in %s %s', request.method, request.path)
    return Response({'detail': 'Internal server error', 'reason': 'internal_error'}, status=500)


announcement_router.tags = ['Announcements']
auth_router.tags = ['Auth']
community_router.tags = ['Communities']
mission_router.tags = ['Missions']
notification_router.tags = ['Notifications']
slot_template_router.tags = ['Slot templates']
user_router.tags = ['Users']

api.add_router('/announcements/', announcement_router)
api.add_router('/auth/', auth_router)
api.add_router('/communities/', community_router)
api.add_router('/missions/', mission_router)
api.add_router('/missionSlotTemplates/', slot_template_router)
api.add_router('/notifications/', notification_router)
api.add_router('/users/', user_router)
