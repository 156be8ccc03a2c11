from uuid import UUID

from django.shortcuts import get_object_or_404
from ninja import Router

from slotting.announcements import ADMIN_PERMISSION, AnnouncementService, visible_announcements
from slotting.auth import get_optional_principal
from slotting.errors import ForbiddenError
from slotting.models import Announcement
from slotting.permissions import PermissionService
from slotting.schemas import AnnouncementCreateSchema, AnnouncementUpdateSchema
from slotting.serializers import public_announcement

router = Router()


def _require_admin(request):
    if not PermissionService.for_request(request).has_permission(ADMIN_PERMISSION):
        raise ForbiddenError('Only announcement admins may do this', reason='not_announcement_admin')


@router.get('/', auth=None)
def list_announcements(request, limit: int = 10, offset: int = 0):
    """List published announcements. Announcement admins also see scheduled ones."""
    get_optional_principal(request)
    is_admin = PermissionService.for_request(request).has_permission(ADMIN_PERMISSION)

    announcements = visible_announcements(Announcement.objects.select_related('user'), include_scheduled=is_admin)
    return {
        'announcements': [public_announcement(announcement) for announcement in announcements[offset:offset + limit]],
        'limit': limit,
        'offset': offset,
        'total': announcements.count(),
    }


@router.post('/')
def create_announcement(request, payload: AnnouncementCreateSchema, sendNotifications: bool = True):
    """Publish an announcement, notifying every active user unless told otherwise"""
    _require_admin(request)
    announcement = AnnouncementService().create_announcement(
        request.principal,
        payload.title,
        payload.content,
        announcement_type=payload.announcement_type,
        visible_from=payload.visible_from,
        send_notifications=sendNotifications,
    )
    return {'announcement': public_announcement(announcement)}


@router.patch('/{announcement_uid}')
def update_announcement(request, announcement_uid: UUID, payload: AnnouncementUpdateSchema):
    _require_admin(request)
    announcement = get_object_or_404(Announcement.objects.select_related('user'), uid=announcement_uid)
    fields = payload.model_dump(exclude_unset=True)
    announcement = AnnouncementService().update_announcement(announcement, **fields)
    return {'announcement': public_announcement(announcement)}


@router.delete('/{announcement_uid}')
def delete_announcement(request, announcement_uid: UUID):
    """Delete an announcement and the notifications it created"""
    _require_admin(request)
    AnnouncementService().delete_announcement(get_object_or_404(Announcement, uid=announcement_uid))
    return {'success': True}
