from uuid import UUID

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from ninja import Router

from slotting.auth import RequiresCommunityMembership, generate_jwt, get_optional_principal, has_approved_community
from slotting.communities import CommunityService
from slotting.errors import ForbiddenError, NotFoundError
from slotting.models import Community, CommunityApplication, Mission, Notification, Permission, User
from slotting.notifications import NotificationService
from slotting.permissions import PermissionService, filter_missions_by_visibility
from slotting.schemas import (
    CommunityApplicationStatusSchema, CommunityCreateSchema, CommunityPermissionCreateSchema, CommunityUpdateSchema,
)
from slotting.serializers import community_details, public_application, public_community, public_mission, public_permission

router = Router()


def _require_leader(request, slug: str, include_recruitment: bool = False):
    service = PermissionService.for_request(request)
    if not service.is_community_leader(slug, include_recruitment=include_recruitment) and not service.has_permission('admin.community'):
        raise ForbiddenError('Insufficient community permissions', reason='not_community_leader')


def _details(community: Community) -> dict:
    leader_uids = CommunityService().leader_uids(community)
    members, leaders = [], []
    for user in User.objects.filter(community=community).order_by('nickname'):
        (leaders if user.uid in leader_uids else members).append(user)
    return community_details(community, members=members, leaders=leaders)


@router.get('/slugAvailable', auth=None)
def check_slug_availability(request, slug: str):
    """Check if a community slug is available"""
    return {
        'available': not Community.objects.filter(slug=slug).exists()
    }


@router.get('/', auth=None)
def list_communities(request, limit: int = 25, offset: int = 0):
    """List all communities with pagination"""
    total = Community.objects.count()
    communities = Community.objects.all()[offset:offset + limit]
    return {
        'communities': [public_community(community) for community in communities],
        'limit': limit,
        'offset': offset,
        'total': total,
    }


@router.get('/{slug}', auth=None)
def get_community(request, slug: str):
    """Get a single community. Members and resources are only shown to users with a community."""
    community = get_object_or_404(Community, slug=slug)

    user = get_optional_principal(request)
    if user is None or not has_approved_community(user)[0]:
        data = public_community(community)
        data.update({'members': [], 'leaders': []})
        return {'community': data}

    return {'community': _details(community)}


@router.post('/')
def create_community(request, payload: CommunityCreateSchema):
    """Create a new community founded by the caller"""
    user = request.principal

    community = CommunityService().create_community(
        user,
        payload.name,
        payload.tag,
        slug=payload.slug,
        website=payload.website,
        game_servers=payload.game_servers,
        voice_comms=payload.voice_comms,
        repositories=payload.repositories,
    )

    # The founder's token carries the new community
    user.refresh_from_db()
    return {
        'token': generate_jwt(user),
        'community': _details(community),
    }


@router.patch('/{slug}')
def update_community(request, slug: str, payload: CommunityUpdateSchema):
    """Update a community"""
    community = get_object_or_404(Community, slug=slug)
    _require_leader(request, slug)

    for name, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(community, name, value)
    community.save()

    return {'community': _details(community)}


@router.delete('/{slug}')
def delete_community(request, slug: str):
    """Delete a community and all permissions scoped to it"""
    community = get_object_or_404(Community, slug=slug)
    service = PermissionService.for_request(request)
    if not service.has_permission([f'community.{slug}.founder', 'admin.community']):
        raise ForbiddenError('Only the founder or an admin may delete a community', reason='not_community_founder')

    CommunityService().delete_community(community)
    return {'success': True}


@router.get('/{slug}/missions', auth=RequiresCommunityMembership())
def get_community_missions(request, slug: str, limit: int = 10, offset: int = 0, includeEnded: bool = False):
    """Get missions of a community the caller may see"""
    community = get_object_or_404(Community, slug=slug)

    missions_query = filter_missions_by_visibility(
        Mission.objects.filter(community=community).select_related('creator', 'community'),
        PermissionService.for_request(request),
    )
    if not includeEnded:
        missions_query = missions_query.filter(end_time__gt=timezone.now())

    total = missions_query.count()
    missions = missions_query.order_by('start_time')[offset:offset + limit]

    return {
        'missions': [public_mission(mission) for mission in missions],
        'total': total,
    }


@router.get('/{slug}/repositories', auth=RequiresCommunityMembership())
def get_community_repositories(request, slug: str):
    """Get repositories for a community"""
    community = get_object_or_404(Community, slug=slug)
    return {
        'repositories': community.repositories or []
    }


@router.get('/{slug}/servers', auth=RequiresCommunityMembership())
def get_community_servers(request, slug: str):
    """Get servers for a community"""
    community = get_object_or_404(Community, slug=slug)
    return {
        'gameServers': community.game_servers or [],
        'voiceComms': community.voice_comms or [],
    }


################
# Applications
################

@router.get('/{slug}/applications/status')
def get_community_application_status(request, slug: str):
    """Get the authenticated user's application status for a community"""
    community = get_object_or_404(Community, slug=slug)

    application = CommunityApplication.objects.filter(user=request.principal, community=community).first()
    if application is None:
        raise NotFoundError('Community application not found', reason='application_not_found')

    return {'application': public_application(application)}


@router.get('/{slug}/applications')
def get_community_applications(request, slug: str, limit: int = 10, offset: int = 0, includeProcessed: bool = False):
    """Get applications for a community (requires leader or recruitment permission)"""
    community = get_object_or_404(Community, slug=slug)
    _require_leader(request, slug, include_recruitment=True)

    applications_query = CommunityApplication.objects.filter(community=community)
    if not includeProcessed:
        applications_query = applications_query.filter(status=CommunityApplication.STATUS_SUBMITTED)

    total = applications_query.count()
    applications = applications_query.select_related('user').order_by('-created_at')[offset:offset + limit]

    return {
        'applications': [public_application(app) for app in applications],
        'total': total,
    }


@router.post('/{slug}/applications')
def create_community_application(request, slug: str):
    """Submit an application to join a community"""
    community = get_object_or_404(Community, slug=slug)
    service = CommunityService()

    with transaction.atomic():
        application = service.apply(community, request.principal)
        notifications = NotificationService()
        for leader in User.objects.filter(uid__in=service.leader_uids(community)):
            notifications.community_application(community, leader, Notification.TYPE_COMMUNITY_APPLICATION_NEW)

    return {
        'status': application.status,
        'uid': str(application.uid),
    }


@router.patch('/{slug}/applications/{application_uid}')
def process_community_application(request, slug: str, application_uid: UUID, payload: CommunityApplicationStatusSchema):
    """Accept or deny a community application"""
    community = get_object_or_404(Community, slug=slug)
    _require_leader(request, slug, include_recruitment=True)

    application = get_object_or_404(
        CommunityApplication.objects.select_related('user', 'community'),
        uid=application_uid,
        community=community,
    )
    application = CommunityService().process_application(application, payload.status)

    return {'application': public_application(application)}


################
# Members
################

@router.delete('/{slug}/members/{member_uid}')
def remove_community_member(request, slug: str, member_uid: UUID):
    """Remove a member from a community. Members may also leave on their own."""
    community = get_object_or_404(Community, slug=slug)
    user = get_object_or_404(User, uid=member_uid)

    if user.uid != request.principal.uid:
        _require_leader(request, slug, include_recruitment=True)

    CommunityService().remove_member(community, user)
    return {'success': True}


################
# Permissions
################

@router.get('/{slug}/permissions', auth=RequiresCommunityMembership())
def get_community_permissions(request, slug: str, limit: int = 10, offset: int = 0):
    """Get permissions scoped to a community"""
    get_object_or_404(Community, slug=slug)

    permissions_query = Permission.objects.filter(
        permission__istartswith=f'community.{slug}.'
    ).select_related('user').order_by('created_at')

    total = permissions_query.count()
    return {
        'permissions': [public_permission(perm) for perm in permissions_query[offset:offset + limit]],
        'total': total,
    }


@router.post('/{slug}/permissions')
def create_community_permission(request, slug: str, payload: CommunityPermissionCreateSchema):
    """Grant a community permission to a member"""
    community = get_object_or_404(Community, slug=slug)
    _require_leader(request, slug)

    user = get_object_or_404(User, uid=payload.userUid)
    permission = CommunityService().grant(community, user, payload.permission)

    return {'permission': public_permission(permission)}


@router.delete('/{slug}/permissions/{permission_uid}')
def delete_community_permission(request, slug: str, permission_uid: UUID):
    """Revoke a community permission"""
    community = get_object_or_404(Community, slug=slug)
    _require_leader(request, slug)

    permission = get_object_or_404(Permission.objects.select_related('user'), uid=permission_uid)
    CommunityService().revoke(community, permission)

    return {'success': True}
