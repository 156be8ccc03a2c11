"""
Free functions turning model instances into the camelCase payloads the API
returns.
"""
from typing import Optional

from slotting.models import (
    Announcement,
    Community,
    CommunityApplication,
    Mission,
    MissionAccess,
    MissionSlot,
    MissionSlotGroup,
    MissionSlotRegistration,
    MissionSlotTemplate,
    Permission,
    User,
)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def public_community(community: Optional[Community]) -> Optional[dict]:
    if community is None:
        return None
    return {
        'uid': str(community.uid),
        'name': community.name,
        'tag': community.tag,
        'slug': community.slug,
        'website': community.website,
        'logoUrl': community.logo_url,
    }


def community_details(community: Community, members=(), leaders=()) -> dict:
    data = public_community(community)
    data.update({
        'gameServers': community.game_servers,
        'voiceComms': community.voice_comms,
        'repositories': community.repositories,
        'members': [public_user(user) for user in members],
        'leaders': [public_user(user) for user in leaders],
    })
    return data


def public_user(user: Optional[User], include_community: bool = False) -> Optional[dict]:
    if user is None:
        return None
    data = {
        'uid': str(user.uid),
        'nickname': user.nickname,
    }
    if include_community:
        data['community'] = public_community(user.community)
    return data


def user_details(user: User, include_private: bool = False) -> dict:
    data = public_user(user, include_community=True)
    if include_private:
        data['steamId'] = user.steam_id
        data['active'] = user.active
    return data


def public_permission(permission: Permission) -> dict:
    return {
        'uid': str(permission.uid),
        'permission': permission.permission,
        'user': public_user(permission.user),
    }


def public_application(application: CommunityApplication) -> dict:
    return {
        'uid': str(application.uid),
        'status': application.status,
        'createdAt': _isoformat(application.created_at),
        'updatedAt': _isoformat(application.updated_at),
        'user': public_user(application.user),
    }


def public_mission(mission: Mission, slot_counts: dict = None, current_user_flags: dict = None) -> dict:
    """List representation of a mission."""
    data = {
        'uid': str(mission.uid),
        'slug': mission.slug,
        'title': mission.title,
        'description': mission.description,
        'briefingTime': _isoformat(mission.briefing_time),
        'slottingTime': _isoformat(mission.slotting_time),
        'startTime': _isoformat(mission.start_time),
        'endTime': _isoformat(mission.end_time),
        'visibility': mission.visibility,
        'detailsMap': mission.details_map,
        'detailsGameMode': mission.details_game_mode,
        'requiredDLCs': mission.required_dlcs,
        'bannerImageUrl': mission.banner_image_url,
        'creator': public_user(mission.creator),
        'community': public_community(mission.community),
    }
    if slot_counts is not None:
        data['slotCounts'] = slot_counts
    if current_user_flags is not None:
        data.update(current_user_flags)
    return data


def mission_details(mission: Mission) -> dict:
    tech_support = (mission.tech_support or '').lower()
    data = public_mission(mission)
    data.update({
        'detailedDescription': mission.detailed_description,
        'collapsedDescription': mission.collapsed_description,
        'techTeleport': 'teleport' in tech_support,
        'techRespawn': 'respawn' in tech_support,
        'techSupport': mission.tech_support,
        'gameServer': mission.game_server,
        'voiceComms': mission.voice_comms,
        'repositories': mission.repositories,
        'rulesOfEngagement': mission.rules or '',
    })
    return data


def public_slot(slot: MissionSlot, registration_count: int = None, registration_uid=None) -> dict:
    data = {
        'uid': str(slot.uid),
        'slotGroupUid': str(slot.slot_group_id),
        'title': slot.title,
        'orderNumber': slot.order_number,
        'difficulty': slot.difficulty,
        'description': slot.description,
        'detailedDescription': slot.detailed_description,
        'requiredDLCs': slot.required_dlcs,
        'blocked': slot.blocked,
        'reserve': slot.reserve,
        'autoAssignable': slot.auto_assignable,
        'assignee': public_user(slot.assignee, include_community=True),
        'externalAssignee': slot.external_assignee,
        'restrictedCommunity': public_community(slot.restricted_community),
    }
    if registration_count is not None:
        data['registrationCount'] = registration_count
    if registration_uid is not None:
        data['registrationUid'] = str(registration_uid)
    return data


def public_slot_group(slot_group: MissionSlotGroup, slots=None) -> dict:
    data = {
        'uid': str(slot_group.uid),
        'missionUid': str(slot_group.mission_id),
        'title': slot_group.title,
        'description': slot_group.description,
        'orderNumber': slot_group.order_number,
    }
    if slots is not None:
        data['slots'] = slots
    return data


def public_registration(registration: MissionSlotRegistration, include_comment: bool = True) -> dict:
    return {
        'uid': str(registration.uid),
        'slotUid': str(registration.slot_id),
        'user': public_user(registration.user, include_community=True),
        'comment': registration.comment if include_comment else None,
        'confirmed': registration.confirmed,
        'createdAt': _isoformat(registration.created_at),
    }


def public_assignment_change(change) -> dict:
    return {
        'slot': public_slot(change.slot),
        'previousAssignee': public_user(change.previous_assignee),
        'previousExternalAssignee': change.previous_external_assignee,
    }



def public_mission_access(access: MissionAccess) -> dict:
    return {
        'uid': str(access.uid),
        'missionUid': str(access.mission_id),
        'community': public_community(access.community),
        'user': public_user(access.user),
    }


def public_slot_template(template: MissionSlotTemplate) -> dict:
    """List representation of a slot template, without the slot groups themselves."""
    return {
        'uid': str(template.uid),
        'title': template.title,
        'visibility': template.visibility,
        'slotGroupCount': len(template.slot_groups),
        'slotCount': template.slot_count,
        'creator': public_user(template.creator),
        'createdAt': _isoformat(template.created_at),
        'updatedAt': _isoformat(template.updated_at),
    }


def slot_template_details(template: MissionSlotTemplate) -> dict:
    data = public_slot_template(template)
    data['slotGroups'] = [dict(group, slots=group.get('slots', [])) for group in template.slot_groups]
    return data


def public_announcement(announcement: Announcement) -> dict:
    return {
        'uid': str(announcement.uid),
        'title': announcement.title,
        'content': announcement.content,
        'announcementType': announcement.announcement_type,
        'visibleFrom': _isoformat(announcement.visible_from),
        'createdAt': _isoformat(announcement.created_at),
        'updatedAt': _isoformat(announcement.updated_at),
        'user': public_user(announcement.user),
    }
