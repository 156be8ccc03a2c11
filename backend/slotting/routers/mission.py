from datetime import datetime, timezone
from typing import List
from uuid import UUID

from django.db import transaction
from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone as django_timezone
from ninja import Router

from slotting.auth import generate_jwt, get_optional_principal
from slotting.errors import ForbiddenError
from slotting.missions import MissionService, tech_support_string
from slotting.models import (
    Community, Mission, MissionAccess, MissionSlot, MissionSlotGroup, MissionSlotRegistration, MissionSlotTemplate,
    Permission, User,
)
from slotting.notifications import NotificationService
from slotting.permissions import PermissionService, can_view_mission, filter_missions_by_visibility
from slotting.registrations import RegistrationService
from slotting.schemas import (
    MissionCreateSchema, MissionUpdateSchema, MissionDuplicateSchema,
    MissionSlotGroupCreateSchema, MissionSlotGroupUpdateSchema,
    MissionSlotCreateSchema, MissionSlotUpdateSchema,
    MissionSlotAssignSchema, MissionPermissionCreateSchema, MissionAccessCreateSchema,
    SlotRegistrationCreateSchema, SlotRegistrationUpdateSchema,
)
from slotting.serializers import (
    mission_details, public_assignment_change, public_mission, public_mission_access, public_permission,
    public_registration, public_slot, public_slot_group,
)
from slotting.slots import SlotService
from slotting.templates import SlotTemplateService, can_view_template

router = Router()


def _permission_service(request) -> PermissionService:
    get_optional_principal(request)
    return PermissionService.for_request(request)


def _get_visible_mission(request, slug: str) -> Mission:
    mission = get_object_or_404(Mission.objects.select_related('creator', 'community'), slug=slug)
    if not can_view_mission(mission, _permission_service(request)):
        raise ForbiddenError('You are not allowed to view this mission', reason='mission_not_visible')
    return mission


def _get_editable_mission(request, slug: str) -> Mission:
    mission = get_object_or_404(Mission.objects.select_related('creator', 'community'), slug=slug)
    if not PermissionService.for_request(request).is_mission_editor(mission):
        raise ForbiddenError('Insufficient permissions to edit this mission', reason='not_mission_editor')
    return mission


def _get_owned_mission(request, slug: str) -> Mission:
    mission = get_object_or_404(Mission.objects.select_related('creator', 'community'), slug=slug)
    if not PermissionService.for_request(request).is_mission_owner(mission):
        raise ForbiddenError('Only the mission creator or an admin may do this', reason='not_mission_owner')
    return mission


def _get_slot(mission: Mission, slot_uid: UUID) -> MissionSlot:
    return get_object_or_404(
        MissionSlot.objects.select_related('slot_group', 'assignee__community', 'restricted_community'),
        uid=slot_uid,
        slot_group__mission=mission,
    )


def _get_managed_slot(request, slug: str, slot_uid: UUID):
    """Editors and community slot list managers may assign and confirm restricted slots."""
    mission = get_object_or_404(Mission.objects.select_related('creator', 'community'), slug=slug)
    slot = _get_slot(mission, slot_uid)
    if not PermissionService.for_request(request).can_manage_slot(mission, slot):
        raise ForbiddenError('Insufficient permissions to manage this slot', reason='not_mission_editor')
    return mission, slot


@router.get('/', auth=None)
def list_missions(request, limit: int = 25, offset: int = 0, includeEnded: bool = False, startDate: int = None, endDate: int = None):
    """List missions visible to the caller with pagination"""
    service = _permission_service(request)
    query = filter_missions_by_visibility(Mission.objects.select_related('creator', 'community'), service)

    # When startDate and endDate are provided (calendar view), return just an array
    is_calendar_query = startDate is not None and endDate is not None

    if is_calendar_query:
        start_dt = datetime.fromtimestamp(startDate / 1000, tz=timezone.utc)
        end_dt = datetime.fromtimestamp(endDate / 1000, tz=timezone.utc)
        query = query.filter(start_time__gte=start_dt, start_time__lte=end_dt)
    elif not includeEnded:
        query = query.filter(end_time__gte=django_timezone.now())

    total = query.count()
    missions = query.order_by('start_time')[offset:offset + limit]

    slots = SlotService()
    user = service.user
    result_missions = []
    for mission in missions:
        flags = None
        if user is not None:
            flags = {
                'isAssignedToAnySlot': slots.is_user_assigned_to_any_slot(mission, user),
                'isRegisteredForAnySlot': slots.is_user_registered_for_any_slot(mission, user),
            }
        result_missions.append(public_mission(mission, slot_counts=slots.slot_counts(mission), current_user_flags=flags))

    if is_calendar_query:
        return result_missions

    return {
        'missions': result_missions,
        'limit': limit,
        'offset': offset,
        'total': total,
    }


@router.get('/slugAvailable', auth=None)
def check_slug_availability(request, slug: str):
    """Check if a mission slug is available"""
    return {
        'available': not Mission.objects.filter(slug=slug).exists()
    }


@router.get('/{slug}', auth=None)
def get_mission(request, slug: str):
    """Get a single mission by slug"""
    mission = _get_visible_mission(request, slug)
    return {'mission': mission_details(mission)}


@router.post('/')
def create_mission(request, payload: MissionCreateSchema):
    """Create a new mission owned by the caller"""
    user = request.principal

    mission = MissionService().create_mission(
        user,
        payload.title,
        slug=payload.slug,
        community=user.community if payload.add_to_community else None,
        visibility=payload.visibility,
        description=payload.description or '',
        detailed_description=payload.detailed_description or '',
        collapsed_description=payload.collapsed_description,
        briefing_time=payload.briefing_time,
        slotting_time=payload.slotting_time,
        start_time=payload.start_time,
        end_time=payload.end_time,
        tech_support=tech_support_string(payload.tech_teleport, payload.tech_respawn),
        details_map=payload.details_map,
        details_game_mode=payload.details_game_mode,
        required_dlcs=payload.required_dlcs,
        game_server=payload.game_server,
        voice_comms=payload.voice_comms,
        repositories=payload.repositories,
        rules=payload.rules_of_engagement,
    )

    return {
        'token': generate_jwt(user),
        'mission': mission_details(mission),
    }


@router.patch('/{slug}')
def update_mission(request, slug: str, payload: MissionUpdateSchema):
    """Update a mission. Visibility changes are reserved to the creator and admins."""
    mission = _get_editable_mission(request, slug)

    fields = payload.model_dump(exclude_unset=True, exclude={'tech_teleport', 'tech_respawn', 'rules_of_engagement'})
    fields = {name: value for name, value in fields.items() if value is not None}
    if 'visibility' in fields and fields['visibility'] != mission.visibility:
        if not PermissionService.for_request(request).is_mission_owner(mission):
            raise ForbiddenError('Only the mission creator or an admin may change visibility', reason='not_mission_owner')

    if payload.rules_of_engagement is not None:
        fields['rules'] = payload.rules_of_engagement

    # tech_support can be set directly or via techTeleport/techRespawn
    if payload.tech_support is None and (payload.tech_teleport is not None or payload.tech_respawn is not None):
        current = (mission.tech_support or '').lower()
        fields['tech_support'] = tech_support_string(
            payload.tech_teleport if payload.tech_teleport is not None else 'teleport' in current,
            payload.tech_respawn if payload.tech_respawn is not None else 'respawn' in current,
        )

    mission = MissionService().update_mission(mission, **fields)

    return {'mission': mission_details(mission)}


@router.delete('/{slug}')
def delete_mission(request, slug: str):
    """Delete a mission together with its slot list and mission permissions"""
    mission = _get_owned_mission(request, slug)
    MissionService().delete_mission(mission)
    return {'success': True}


@router.post('/{slug}/duplicate')
def duplicate_mission(request, slug: str, payload: MissionDuplicateSchema):
    """Duplicate an existing mission with all its slot groups and slots"""
    original_mission = _get_editable_mission(request, slug)
    user = request.principal

    if payload.add_to_community:
        community = user.community
    else:
        community = original_mission.community

    new_mission = MissionService().duplicate_mission(
        original_mission,
        user,
        payload.slug,
        title=payload.title,
        community=community,
        visibility=payload.visibility,
        briefing_time=payload.briefing_time,
        slotting_time=payload.slotting_time,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )

    return {
        'token': generate_jwt(user),
        'mission': mission_details(new_mission),
    }


################
# Slot list
################

@router.get('/{slug}/slots', auth=None)
def get_mission_slots(request, slug: str):
    """Get all slots for a mission organized by slot groups"""
    mission = _get_visible_mission(request, slug)
    user = PermissionService.for_request(request).user

    own_registrations = {}
    if user is not None:
        own_registrations = dict(
            MissionSlotRegistration.objects.filter(user=user, slot__slot_group__mission=mission)
            .values_list('slot_id', 'uid')
        )

    slot_groups = MissionSlotGroup.objects.filter(mission=mission).order_by('order_number')
    slots = (
        MissionSlot.objects.filter(slot_group__mission=mission)
        .select_related('assignee__community', 'restricted_community')
        .annotate(registration_count=Count('registrations'))
        .order_by('order_number')
    )
    slots_by_group = {}
    for slot in slots:
        slots_by_group.setdefault(slot.slot_group_id, []).append(
            public_slot(slot, registration_count=slot.registration_count, registration_uid=own_registrations.get(slot.uid))
        )

    return {
        'slotGroups': [
            public_slot_group(slot_group, slots=slots_by_group.get(slot_group.uid, []))
            for slot_group in slot_groups
        ]
    }


@router.post('/{slug}/slotGroups')
def create_mission_slot_group(request, slug: str, data: MissionSlotGroupCreateSchema):
    """Create a new slot group after position `insertAfter`"""
    mission = _get_editable_mission(request, slug)
    slot_group = SlotService().create_slot_group(mission, data.title, description=data.description, insert_after=data.insertAfter)
    return {'slotGroup': public_slot_group(slot_group, slots=[])}


@router.patch('/{slug}/slotGroups/{slot_group_uid}')
def update_mission_slot_group(request, slug: str, slot_group_uid: UUID, data: MissionSlotGroupUpdateSchema):
    """Update a slot group"""
    mission = _get_editable_mission(request, slug)
    slot_group = get_object_or_404(MissionSlotGroup, uid=slot_group_uid, mission=mission)

    slot_group = SlotService().update_slot_group(
        slot_group,
        title=data.title,
        description=data.description,
        order_number=data.orderNumber,
    )
    return {'slotGroup': public_slot_group(slot_group)}


@router.delete('/{slug}/slotGroups/{slot_group_uid}')
def delete_mission_slot_group(request, slug: str, slot_group_uid: UUID):
    """Delete a slot group and all its slots"""
    mission = _get_editable_mission(request, slug)
    slot_group = get_object_or_404(MissionSlotGroup, uid=slot_group_uid, mission=mission)
    SlotService().delete_slot_group(slot_group)
    return {'success': True}


@router.post('/{slug}/slots')
def create_mission_slots(request, slug: str, data: List[MissionSlotCreateSchema]):
    """Create one or more slots for a mission"""
    mission = _get_editable_mission(request, slug)

    slots_data = []
    for slot_data in data:
        restricted_community = None
        if slot_data.restrictedCommunityUid:
            restricted_community = get_object_or_404(Community, uid=slot_data.restrictedCommunityUid)

        slots_data.append({
            'slot_group': get_object_or_404(MissionSlotGroup, uid=slot_data.slotGroupUid, mission=mission),
            'title': slot_data.title,
            'insert_after': slot_data.insertAfter,
            'difficulty': slot_data.difficulty,
            'description': slot_data.description,
            'detailed_description': slot_data.detailedDescription,
            'required_dlcs': slot_data.requiredDLCs,
            'restricted_community': restricted_community,
            'blocked': slot_data.blocked,
            'reserve': slot_data.reserve,
            'auto_assignable': slot_data.autoAssignable,
        })

    created_slots = SlotService().create_slots(mission, slots_data)
    return {'slots': [public_slot(slot) for slot in created_slots]}


@router.patch('/{slug}/slots/{slot_uid}')
def update_mission_slot(request, slug: str, slot_uid: UUID, data: MissionSlotUpdateSchema):
    """Update a mission slot, optionally moving it to another group or position"""
    mission = _get_editable_mission(request, slug)
    slot = _get_slot(mission, slot_uid)

    fields = {}
    if data.title is not None:
        fields['title'] = data.title
    if data.difficulty is not None:
        fields['difficulty'] = data.difficulty
    if data.description is not None:
        fields['description'] = data.description
    if data.detailedDescription is not None:
        fields['detailed_description'] = data.detailedDescription
    if data.requiredDLCs is not None:
        fields['required_dlcs'] = data.requiredDLCs
    if data.restrictedCommunityUid is not None:
        fields['restricted_community'] = get_object_or_404(Community, uid=data.restrictedCommunityUid)
    if data.blocked is not None:
        fields['blocked'] = data.blocked
    if data.reserve is not None:
        fields['reserve'] = data.reserve
    if data.autoAssignable is not None:
        fields['auto_assignable'] = data.autoAssignable

    slot_group = None
    if data.slotGroupUid is not None:
        slot_group = get_object_or_404(MissionSlotGroup, uid=data.slotGroupUid, mission=mission)

    slot = SlotService().update_slot(slot, slot_group=slot_group, order_number=data.orderNumber, **fields)
    return {'slot': public_slot(slot)}


@router.delete('/{slug}/slots/{slot_uid}')
def delete_mission_slot(request, slug: str, slot_uid: UUID):
    """Delete a mission slot"""
    mission = _get_editable_mission(request, slug)
    slot = _get_slot(mission, slot_uid)

    with transaction.atomic():
        change = SlotService().delete_slot(slot)
        NotificationService().assignment_changed(mission, change)

    return {'success': True}


################
# Assignment
################

@router.post('/{slug}/slots/{slot_uid}/assign')
def assign_slot(request, slug: str, slot_uid: UUID, payload: MissionSlotAssignSchema):
    """Assign a user or an external name to a slot"""
    mission, slot = _get_managed_slot(request, slug, slot_uid)

    target_user = None
    if payload.userUid is not None:
        target_user = get_object_or_404(User, uid=payload.userUid)

    with transaction.atomic():
        change = RegistrationService().assign_slot(
            slot,
            user=target_user,
            external_assignee=payload.externalAssignee,
            force=bool(payload.force),
        )
        NotificationService().assignment_changed(mission, change, suppress=bool(payload.suppressNotifications))

    return public_assignment_change(change)


@router.post('/{slug}/slots/{slot_uid}/unassign')
def unassign_slot(request, slug: str, slot_uid: UUID, suppressNotifications: bool = False):
    """Clear the assignment of a slot. The assignee may release their own slot."""
    mission = get_object_or_404(Mission.objects.select_related('creator'), slug=slug)
    slot = _get_slot(mission, slot_uid)

    service = PermissionService.for_request(request)
    is_assignee = slot.assignee_id is not None and slot.assignee_id == request.principal.uid
    if not is_assignee and not service.can_manage_slot(mission, slot):
        raise ForbiddenError('Insufficient permissions to unassign this slot', reason='not_mission_editor')

    with transaction.atomic():
        change = RegistrationService().unassign_slot(slot)
        NotificationService().assignment_changed(mission, change, suppress=suppressNotifications or is_assignee)

    return public_assignment_change(change)


################
# Registrations
################

@router.get('/{slug}/slots/{slot_uid}/registrations', auth=None)
def get_slot_registrations(request, slug: str, slot_uid: UUID, limit: int = 10, offset: int = 0):
    """Get all registrations for a specific mission slot"""
    mission = _get_visible_mission(request, slug)
    slot = _get_slot(mission, slot_uid)
    include_comments = PermissionService.for_request(request).can_manage_slot(mission, slot)

    registrations = MissionSlotRegistration.objects.filter(slot=slot).select_related('user__community')
    total = registrations.count()

    return {
        'registrations': [
            public_registration(registration, include_comment=include_comments)
            for registration in registrations[offset:offset + limit]
        ],
        'limit': limit,
        'offset': offset,
        'total': total,
    }


@router.post('/{slug}/slots/{slot_uid}/registrations')
def register_for_slot(request, slug: str, slot_uid: UUID, data: SlotRegistrationCreateSchema):
    """Register the authenticated user for a mission slot"""
    mission = _get_visible_mission(request, slug)
    slot = _get_slot(mission, slot_uid)
    user = request.principal

    with transaction.atomic():
        result = RegistrationService().register(slot, user, comment=data.comment)
        notifications = NotificationService()
        if result.auto_assigned:
            notifications.assignment_changed(mission, result.change)
        else:
            notifications.registration_created(mission, slot, user)

    return {
        'registration': public_registration(result.registration),
        'autoAssigned': result.auto_assigned,
    }


@router.patch('/{slug}/slots/{slot_uid}/registrations/{registration_uid}')
def update_slot_registration(request, slug: str, slot_uid: UUID, registration_uid: UUID, data: SlotRegistrationUpdateSchema):
    """Confirm or revoke a slot registration"""
    mission, slot = _get_managed_slot(request, slug, slot_uid)
    registration = get_object_or_404(MissionSlotRegistration.objects.select_related('user__community'), uid=registration_uid, slot=slot)

    with transaction.atomic():
        change = RegistrationService().set_confirmed(registration, data.confirmed)
        NotificationService().assignment_changed(mission, change, suppress=bool(data.suppressNotifications))

    return {'registration': public_registration(registration)}


@router.delete('/{slug}/slots/{slot_uid}/registrations/{registration_uid}')
def delete_slot_registration(request, slug: str, slot_uid: UUID, registration_uid: UUID, suppressNotifications: bool = False):
    """Withdraw a registration. A confirmed registrant also loses the slot."""
    mission = get_object_or_404(Mission.objects.select_related('creator'), slug=slug)
    slot = _get_slot(mission, slot_uid)
    registration = get_object_or_404(MissionSlotRegistration.objects.select_related('user'), uid=registration_uid, slot=slot)

    is_own_registration = registration.user_id == request.principal.uid
    if not is_own_registration and not PermissionService.for_request(request).can_manage_slot(mission, slot):
        raise ForbiddenError('Insufficient permissions to delete this registration', reason='not_mission_editor')

    with transaction.atomic():
        RegistrationService().withdraw_and_unassign(registration)
        if not is_own_registration:
            NotificationService().registration_removed(mission, slot, registration.user, suppress=suppressNotifications)

    return {'success': True}


################
# Mission permissions
################

@router.get('/{slug}/permissions')
def get_mission_permissions(request, slug: str, limit: int = 10, offset: int = 0):
    """Get all permissions for a mission"""
    mission = _get_editable_mission(request, slug)

    mission_permissions = Permission.objects.filter(
        permission__istartswith=f'mission.{mission.slug}.'
    ).select_related('user').order_by('created_at')

    return {
        'permissions': [public_permission(perm) for perm in mission_permissions[offset:offset + limit]],
        'total': mission_permissions.count(),
    }


@router.post('/{slug}/permissions')
def create_mission_permission(request, slug: str, payload: MissionPermissionCreateSchema):
    """Grant a mission permission. Accepts the permission type or the full grant string."""
    mission = _get_owned_mission(request, slug)
    target_user = get_object_or_404(User, uid=payload.userUid)

    permission_str = payload.permission
    if not permission_str.startswith('mission.'):
        permission_str = f'mission.{mission.slug}.{permission_str}'

    permission = MissionService().grant(
        mission,
        target_user,
        permission_str,
        suppress_notifications=bool(payload.suppressNotifications),
    )
    return {'permission': public_permission(permission)}


@router.delete('/{slug}/permissions/{permission_uid}')
def delete_mission_permission(request, slug: str, permission_uid: UUID):
    """Revoke a mission permission"""
    mission = _get_owned_mission(request, slug)
    permission = get_object_or_404(Permission.objects.select_related('user'), uid=permission_uid)
    MissionService().revoke(mission, permission)
    return {'success': True}


################
# Mission accesses
################

@router.get('/{slug}/accesses')
def get_mission_accesses(request, slug: str, limit: int = 10, offset: int = 0):
    """List the users and communities granted access to a private mission"""
    mission = _get_editable_mission(request, slug)
    accesses = MissionAccess.objects.filter(mission=mission).select_related('user', 'community').order_by('created_at')

    return {
        'accesses': [public_mission_access(access) for access in accesses[offset:offset + limit]],
        'limit': limit,
        'offset': offset,
        'total': accesses.count(),
    }


@router.post('/{slug}/accesses')
def create_mission_access(request, slug: str, payload: MissionAccessCreateSchema):
    """Grant a user or a whole community access to a mission"""
    mission = _get_editable_mission(request, slug)

    user = get_object_or_404(User, uid=payload.userUid) if payload.userUid is not None else None
    community = get_object_or_404(Community, uid=payload.communityUid) if payload.communityUid is not None else None

    access = MissionService().grant_access(mission, user=user, community=community)
    return {'access': public_mission_access(access)}


@router.delete('/{slug}/accesses/{access_uid}')
def delete_mission_access(request, slug: str, access_uid: UUID):
    """Revoke a mission access"""
    mission = _get_editable_mission(request, slug)
    access = get_object_or_404(MissionAccess, uid=access_uid, mission=mission)
    MissionService().revoke_access(access)
    return {'success': True}


################
# Slot templates
################

@router.post('/{slug}/slotTemplates/{template_uid}')
def apply_slot_template(request, slug: str, template_uid: UUID, insertAfter: int = None):
    """Append the slot groups and slots of a template to the mission's slot list"""
    mission = _get_editable_mission(request, slug)
    template = get_object_or_404(MissionSlotTemplate.objects.select_related('creator'), uid=template_uid)
    if not can_view_template(template, PermissionService.for_request(request)):
        raise ForbiddenError('You are not allowed to use this slot template', reason='slot_template_not_visible')

    slot_groups = SlotTemplateService().apply_template(template, mission, insert_after=insertAfter)
    return {'slotGroups': [public_slot_group(slot_group) for slot_group in slot_groups]}
