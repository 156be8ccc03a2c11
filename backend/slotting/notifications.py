"""
Notification rows created as a side effect of slotting and permission changes.
"""
import logging
from typing import List, Optional

from django.db import DEFAULT_DB_ALIAS

from slotting.models import Announcement, Community, Mission, MissionSlot, Notification, User
from slotting.slots import AssignmentChange


def _slot_data(mission: Mission, slot: MissionSlot, user: User) -> dict:
    return {
        'missionSlug': mission.slug,
        'missionTitle': mission.title,
        'slotTitle': slot.title,
        'userUid': str(user.uid),
        'userNickname': user.nickname,
        'userCommunityTag': user.community.tag if user.community_id else None,
    }


class NotificationService:
    def __init__(self, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def notify(self, user: User, notification_type: str, additional_data: dict = None, message: str = '') -> Notification:
        notification = Notification.objects.using(self.using).create(
            user=user,
            notification_type=notification_type,
            additional_data=additional_data,
            message=message,
        )
        self.logger.debug('created %s notification for user %s', notification_type, user.uid)
        return notification

    def assignment_changed(self, mission: Mission, change: AssignmentChange, suppress: bool = False) -> List[Notification]:
        """Notify the attached and the detached user of an assignment change."""
        if suppress or not change.changed:
            return []

        created = []
        if change.attached_user is not None:
            created.append(self.notify(
                change.attached_user,
                Notification.TYPE_MISSION_SLOT_ASSIGNED,
                _slot_data(mission, change.slot, change.attached_user),
            ))
        if change.detached_user is not None:
            created.append(self.notify(
                change.detached_user,
                Notification.TYPE_MISSION_SLOT_UNASSIGNED,
                _slot_data(mission, change.slot, change.detached_user),
            ))
        return created

    def registration_created(self, mission: Mission, slot: MissionSlot, user: User) -> Optional[Notification]:
        """Tell the mission creator about a new registration on one of their slots."""
        if mission.creator_id == user.uid:
            return None
        return self.notify(mission.creator, Notification.TYPE_MISSION_SLOT_REGISTRATION_NEW, _slot_data(mission, slot, user))

    def registration_removed(self, mission: Mission, slot: MissionSlot, user: User, suppress: bool = False) -> Optional[Notification]:
        if suppress:
            return None
        return self.notify(user, Notification.TYPE_MISSION_SLOT_UNREGISTERED, _slot_data(mission, slot, user))

    def mission_permission_changed(self, mission: Mission, user: User, permission: str, granted: bool, suppress: bool = False):
        if suppress:
            return None
        notification_type = (
            Notification.TYPE_MISSION_PERMISSION_GRANTED if granted else Notification.TYPE_MISSION_PERMISSION_REVOKED
        )
        return self.notify(user, notification_type, {
            'permission': permission,
            'missionSlug': mission.slug,
            'missionTitle': mission.title,
        })

    def community_permission_changed(self, community: Community, user: User, permission: str, granted: bool):
        notification_type = (
            Notification.TYPE_COMMUNITY_PERMISSION_GRANTED if granted else Notification.TYPE_COMMUNITY_PERMISSION_REVOKED
        )
        return self.notify(user, notification_type, {
            'permission': permission,
            'communitySlug': community.slug,
            'communityName': community.name,
        })

    def community_application(self, community: Community, user: User, notification_type: str):
        return self.notify(user, notification_type, {
            'communitySlug': community.slug,
            'communityName': community.name,
        })

    def mission_deleted(self, mission: Mission, users) -> List[Notification]:
        data = {'missionSlug': mission.slug, 'missionTitle': mission.title}
        return [self.notify(user, Notification.TYPE_MISSION_DELETED, data) for user in users]

    def announcement_published(self, announcement: Announcement, users) -> int:
        """Fan an announcement out to `users` in one bulk insert."""
        notification_type = (
            Notification.TYPE_ANNOUNCEMENT_UPDATE
            if announcement.announcement_type == Announcement.TYPE_UPDATE
            else Notification.TYPE_ANNOUNCEMENT_GENERIC
        )
        data = {'announcementUid': str(announcement.uid), 'title': announcement.title}
        created = Notification.objects.using(self.using).bulk_create([
            Notification(user=user, notification_type=notification_type, title=announcement.title, additional_data=data)
            for user in users
        ])
        self.logger.info('sent announcement %s to %d users', announcement.uid, len(created))
        return len(created)

    def announcement_withdrawn(self, announcement: Announcement) -> int:
        deleted, _ = Notification.objects.using(self.using).filter(
            notification_type__in=[Notification.TYPE_ANNOUNCEMENT_GENERIC, Notification.TYPE_ANNOUNCEMENT_UPDATE],
            additional_data__announcementUid=str(announcement.uid),
        ).delete()
        return deleted
