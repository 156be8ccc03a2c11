"""
Mission lifecycle: creation, updates, duplication, deletion and the
per-mission permission grants and accesses.
"""
import logging
from datetime import datetime
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone
from django.utils.text import slugify

from slotting.communities import delete_scoped_permissions, grant_permission
from slotting.errors import ForbiddenError, ValidationError, conflict_on_integrity_error
from slotting.models import Community, Mission, MissionAccess, MissionSlot, Permission, User
from slotting.notifications import NotificationService
from slotting.permissions import validate_mission_permission
from slotting.slots import SlotService, validate_required_dlcs

VISIBILITIES = [choice for choice, _ in Mission.VISIBILITY_CHOICES]

UPDATABLE_MISSION_FIELDS = {
    'title',
    'description',
    'detailed_description',
    'collapsed_description',
    'briefing_time',
    'slotting_time',
    'start_time',
    'end_time',
    'visibility',
    'tech_support',
    'details_map',
    'details_game_mode',
    'rules',
    'required_dlcs',
    'game_server',
    'voice_comms',
    'repositories',
    'banner_image_url',
}


def tech_support_string(teleport: bool, respawn: bool) -> Optional[str]:
    parts = []
    if teleport:
        parts.append('teleport')
    if respawn:
        parts.append('respawn')
    return ', '.join(parts) if parts else None


def _validate_times(mission: Mission) -> None:
    try:
        mission.clean()
    except DjangoValidationError as err:
        raise ValidationError('; '.join(err.messages), reason='invalid_mission_times') from err


def _validate_visibility(visibility: str) -> str:
    if visibility not in VISIBILITIES:
        raise ValidationError(
            f'Invalid visibility "{visibility}". Valid: {", ".join(VISIBILITIES)}',
            reason='invalid_visibility',
        )
    return visibility


class MissionService:
    def __init__(
        self,
        slot_service: SlotService = None,
        notifications: NotificationService = None,
        using: str = DEFAULT_DB_ALIAS,
        logger: logging.Logger = None,
    ):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.slots = slot_service or SlotService(using=using, logger=self.logger)
        self.notifications = notifications or NotificationService(using=using, logger=self.logger)

    def create_mission(
        self,
        creator: User,
        title: str,
        slug: str = None,
        community: Community = None,
        visibility: str = Mission.VISIBILITY_HIDDEN,
        **fields,
    ) -> Mission:
        """
        Create a mission owned by `creator`.

        Missing times default to now. The creator's implicit
        `mission.<slug>.creator` grant needs no stored permission row.
        """
        unknown = set(fields) - UPDATABLE_MISSION_FIELDS
        if unknown:
            raise ValidationError(f'Unknown mission fields: {", ".join(sorted(unknown))}', reason='invalid_field')

        slug = slug or slugify(title)
        if not slug:
            raise ValidationError('Mission slug must not be empty', reason='invalid_slug')

        now = timezone.now()
        for name in ('briefing_time', 'slotting_time', 'start_time', 'end_time'):
            if fields.get(name) is None:
                fields[name] = now
        fields['required_dlcs'] = validate_required_dlcs(fields.get('required_dlcs'))
        if fields.get('repositories') is None:
            fields['repositories'] = []

        mission = Mission(
            creator=creator,
            title=title,
            slug=slug,
            community=community,
            visibility=_validate_visibility(visibility),
            **fields,
        )
        _validate_times(mission)

        with conflict_on_integrity_error('Mission slug is already taken', reason='slug_taken', using=self.using):
            mission.save(using=self.using, force_insert=True)

        self.logger.info('user %s created mission %s', creator.uid, slug)
        return mission

    def update_mission(self, mission: Mission, **fields) -> Mission:
        unknown = set(fields) - UPDATABLE_MISSION_FIELDS
        if unknown:
            raise ValidationError(f'Unknown mission fields: {", ".join(sorted(unknown))}', reason='invalid_field')
        if 'required_dlcs' in fields:
            fields['required_dlcs'] = validate_required_dlcs(fields['required_dlcs'])
        if 'visibility' in fields:
            _validate_visibility(fields['visibility'])

        for name, value in fields.items():
            setattr(mission, name, value)
        _validate_times(mission)

        mission.save(using=self.using)
        return mission

    def delete_mission(self, mission: Mission) -> None:
        """
        Delete a mission with its slot list and every `mission.<slug>.*` grant.

        Users assigned to one of its slots are notified.
        """
        slug = mission.slug
        with transaction.atomic(using=self.using):
            assignees = User.objects.using(self.using).filter(
                uid__in=MissionSlot.objects.using(self.using).filter(
                    slot_group__mission=mission,
                    assignee__isnull=False,
                ).values('assignee')
            ).exclude(uid=mission.creator_id)
            self.notifications.mission_deleted(mission, list(assignees))

            deleted = delete_scoped_permissions(f'mission.{slug}', using=self.using)
            mission.delete(using=self.using)

        self.logger.info('deleted mission %s and %d scoped permissions', slug, deleted)

    def duplicate_mission(
        self,
        source: Mission,
        creator: User,
        slug: str,
        title: str = None,
        community: Community = None,
        visibility: str = Mission.VISIBILITY_HIDDEN,
        briefing_time: datetime = None,
        slotting_time: datetime = None,
        start_time: datetime = None,
        end_time: datetime = None,
    ) -> Mission:
        """Copy a mission and its slot list (without assignments) under a new slug."""
        with transaction.atomic(using=self.using):
            mission = self.create_mission(
                creator,
                title or source.title,
                slug=slug,
                community=community,
                visibility=visibility or Mission.VISIBILITY_HIDDEN,
                description=source.description,
                detailed_description=source.detailed_description,
                collapsed_description=source.collapsed_description,
                briefing_time=briefing_time or source.briefing_time,
                slotting_time=slotting_time or source.slotting_time,
                start_time=start_time or source.start_time,
                end_time=end_time or source.end_time,
                tech_support=source.tech_support,
                details_map=source.details_map,
                details_game_mode=source.details_game_mode,
                rules=source.rules,
                required_dlcs=source.required_dlcs,
                game_server=source.game_server,
                voice_comms=source.voice_comms,
                repositories=source.repositories,
                banner_image_url=source.banner_image_url,
            )
            created = self.slots.duplicate_mission_slots(source, mission)

        self.logger.info('duplicated mission %s as %s with %d slots', source.slug, mission.slug, created)
        return mission

    ################
    # Permissions
    ################

    def grant(self, mission: Mission, user: User, permission: str, suppress_notifications: bool = False) -> Permission:
        validate_mission_permission(permission, mission.slug)

        with transaction.atomic(using=self.using):
            granted = grant_permission(user, permission, using=self.using)
            self.notifications.mission_permission_changed(mission, user, permission, granted=True, suppress=suppress_notifications)

        self.logger.info('granted %s to user %s', permission, user.uid)
        return granted

    def revoke(self, mission: Mission, permission: Permission) -> None:
        if not permission.permission.lower().startswith(f'mission.{mission.slug}.'):
            raise ForbiddenError('Permission does not belong to this mission', reason='foreign_permission')

        with transaction.atomic(using=self.using):
            permission.delete(using=self.using)
            self.notifications.mission_permission_changed(mission, permission.user, permission.permission, granted=False)

        self.logger.info('revoked %s from user %s', permission.permission, permission.user_id)

    ################
    # Accesses
    ################

    def grant_access(self, mission: Mission, user: User = None, community: Community = None) -> MissionAccess:
        """Let exactly one user or one community see a private mission."""
        if (user is None) == (community is None):
            raise ValidationError('A mission access targets either a user or a community', reason='invalid_mission_access')

        access = MissionAccess(mission=mission, user=user, community=community)
        with conflict_on_integrity_error('Mission access already exists', reason='duplicate_mission_access', using=self.using):
            access.save(using=self.using, force_insert=True)

        self.logger.info(
            'granted access to mission %s for %s',
            mission.slug, f'user {user.uid}' if user is not None else f'community {community.slug}',
        )
        return access

    def revoke_access(self, access: MissionAccess) -> None:
        access.delete(using=self.using)
        self.logger.info('revoked access %s from mission %s', access.uid, access.mission_id)
