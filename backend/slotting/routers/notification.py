from uuid import UUID

from django.shortcuts import get_object_or_404
from ninja import Router

from slotting.models import Notification
from slotting.schemas import NotificationDetailResponseSchema, NotificationListResponseSchema

router = Router()


def _own_notifications(request):
    """Notifications are only ever visible to the user they were created for."""
    return Notification.objects.filter(user=request.principal)


@router.get('/', response=NotificationListResponseSchema, by_alias=True)
def list_notifications(request, limit: int = 25, offset: int = 0, includeSeen: bool = True):
    """List the caller's notifications, newest first"""
    queryset = _own_notifications(request)
    if not includeSeen:
        queryset = queryset.filter(read=False)

    return {
        'notifications': queryset.order_by('-created_at')[offset:offset + limit],
        'limit': limit,
        'offset': offset,
        'total': queryset.count(),
    }


@router.get('/unseen')
def get_unseen_count(request):
    return {'unseen': _own_notifications(request).filter(read=False).count()}


@router.patch('/read-all')
def mark_all_notifications_read(request):
    count = _own_notifications(request).filter(read=False).update(read=True)
    return {'success': True, 'count': count}


@router.get('/{notification_uid}', response=NotificationDetailResponseSchema, by_alias=True)
def get_notification(request, notification_uid: UUID):
    return {'notification': get_object_or_404(_own_notifications(request), uid=notification_uid)}


@router.patch('/{notification_uid}/read')
def mark_notification_read(request, notification_uid: UUID):
    notification = get_object_or_404(_own_notifications(request), uid=notification_uid)
    if not notification.read:
        notification.read = True
        notification.save(update_fields=['read', 'updated_at'])
    return {'success': True}


@router.delete('/{notification_uid}')
def delete_notification(request, notification_uid: UUID):
    get_object_or_404(_own_notifications(request), uid=notification_uid).delete()
    return {'success': True}
