from uuid import UUID

from django.shortcuts import get_object_or_404
from django.utils import timezone
from ninja import Router

from slotting.auth import RequiresCommunityMembership
from slotting.communities import grant_permission
from slotting.errors import ForbiddenError
from slotting.models import Mission, Permission, User
from slotting.permissions import PermissionService, filter_missions_by_visibility
from slotting.schemas import UserPermissionCreateSchema, UserUpdateSchema
from slotting.serializers import public_mission, public_permission, public_user, user_details

router = Router()


def _require_permission_admin(request):
    if not PermissionService.for_request(request).has_permission('admin.permission'):
        raise ForbiddenError('Insufficient permissions to manage user permissions', reason='not_permission_admin')


@router.get('/', auth=RequiresCommunityMembership())
def list_users(request, limit: int = 25, offset: int = 0, search: str = None):
    """List all users with pagination"""
    queryset = User.objects.select_related('community').order_by('nickname')

    if search:
        queryset = queryset.filter(nickname__icontains=search)

    total = queryset.count()
    users = list(queryset[offset:offset + limit])

    return {
        'users': [public_user(user, include_community=True) for user in users],
        'limit': limit,
        'offset': offset,
        'count': len(users),
        'total': total,
        'moreAvailable': (offset + limit) < total,
    }


@router.get('/{user_uid}')
def get_user(request, user_uid: UUID):
    """Get a single user by UID"""
    user = get_object_or_404(User.objects.select_related('community'), uid=user_uid)
    service = PermissionService.for_request(request)
    include_private = user.uid == request.principal.uid or service.has_permission('admin.user')

    missions = filter_missions_by_visibility(
        Mission.objects.filter(creator=user).select_related('creator', 'community'),
        service,
    ).order_by('-start_time')[:10]

    data = user_details(user, include_private=include_private)
    data['missions'] = [public_mission(mission) for mission in missions]
    return {'user': data}


@router.patch('/{user_uid}')
def update_user(request, user_uid: UUID, payload: UserUpdateSchema):
    """Update a user (self or admin)"""
    user = get_object_or_404(User.objects.select_related('community'), uid=user_uid)

    if user.uid != request.principal.uid and not PermissionService.for_request(request).has_permission('admin.user'):
        raise ForbiddenError('You may only update your own account', reason='forbidden')

    if payload.nickname is not None:
        user.nickname = payload.nickname
        user.save(update_fields=['nickname', 'updated_at'])

    return {'user': user_details(user)}


@router.get('/{user_uid}/missions')
def list_user_missions(request, user_uid: UUID, limit: int = 10, offset: int = 0, includeEnded: bool = True):
    """List missions created by a user that the caller may see"""
    user = get_object_or_404(User, uid=user_uid)

    queryset = filter_missions_by_visibility(
        Mission.objects.filter(creator=user).select_related('creator', 'community'),
        PermissionService.for_request(request),
    )
    if not includeEnded:
        queryset = queryset.filter(end_time__gte=timezone.now())

    total = queryset.count()
    missions = list(queryset.order_by('-start_time')[offset:offset + limit])

    return {
        'missions': [public_mission(mission) for mission in missions],
        'limit': limit,
        'offset': offset,
        'count': len(missions),
        'total': total,
        'moreAvailable': (offset + limit) < total,
    }


@router.get('/{user_uid}/permissions')
def list_user_permissions(request, user_uid: UUID):
    """List stored permissions of a user"""
    _require_permission_admin(request)
    permissions = Permission.objects.filter(user__uid=user_uid).select_related('user').order_by('permission')
    return {'permissions': [public_permission(perm) for perm in permissions]}


@router.post('/{user_uid}/permissions')
def create_user_permission(request, user_uid: UUID, payload: UserPermissionCreateSchema):
    """Add a permission to a user"""
    _require_permission_admin(request)
    user = get_object_or_404(User, uid=user_uid)
    permission = grant_permission(user, payload.permission.strip())
    return {'permission': public_permission(permission)}


@router.delete('/{user_uid}/permissions/{permission_uid}')
def delete_user_permission(request, user_uid: UUID, permission_uid: UUID):
    """Remove a permission from a user"""
    _require_permission_admin(request)
    permission = get_object_or_404(Permission, uid=permission_uid, user__uid=user_uid)
    permission.delete()
    return {'success': True}
