"""
Permission checks, grant validation and mission visibility.

Grants are loaded from the database for every request and parsed into a fresh
permission tree, so revoked permissions take effect on the next request.
"""
import logging
from typing import Callable, List, Optional, Sequence, Union

from django.db import DEFAULT_DB_ALIAS
from django.db.models import Q

from slotting.acl import find_permission, parse_permissions
from slotting.errors import ValidationError
from slotting.models import Mission, MissionAccess, MissionSlot, Permission, User

logger = logging.getLogger(__name__)

SUPERADMIN_PERMISSION = 'admin.superadmin'

COMMUNITY_PERMISSION_TYPES = ('leader', 'recruitment')
MISSION_PERMISSION_TYPES = ('editor', 'slotlist.community')

RequiredPermission = Union[str, Sequence[str]]


def load_user_grants(user: User, using: str = DEFAULT_DB_ALIAS) -> List[str]:
    """
    Load the flat list of grants held by a user.

    Besides the stored permissions, the creator of a mission implicitly holds
    `mission.<slug>.creator`.
    """
    grants = list(
        Permission.objects.using(using).filter(user=user).values_list('permission', flat=True)
    )
    created_slugs = Mission.objects.using(using).filter(creator=user).values_list('slug', flat=True)
    grants.extend(f'mission.{slug}.creator' for slug in created_slugs)
    return grants


def has_permission(permissions: Sequence[str], target_permissions: RequiredPermission, strict: bool = False) -> bool:
    """
    Check if a permission list contains the required permission(s).

    Args:
        permissions: List of permission strings the user has
        target_permissions: Permission(s) to check for (string or list of strings)
        strict: Require all target permissions instead of at least one

    Returns:
        bool: Whether the user has the target permission(s)
    """
    if not permissions:
        return False

    parsed_permissions = parse_permissions(permissions)

    if parsed_permissions.has_global_wildcard or find_permission(parsed_permissions, SUPERADMIN_PERMISSION):
        return True

    if isinstance(target_permissions, str):
        target_permissions = [target_permissions]

    found = [perm for perm in target_permissions if find_permission(parsed_permissions, perm)]

    if strict:
        return len(found) == len(target_permissions)
    return len(found) > 0


class PermissionService:
    """
    Answers "may this principal do X" for one request.

    The grant loader is called at most once, on the first check. Errors raised
    by the loader propagate to the caller.
    """

    def __init__(
        self,
        user: Optional[User],
        grant_loader: Callable[[User], List[str]] = None,
        using: str = DEFAULT_DB_ALIAS,
        logger: logging.Logger = None,
    ):
        self.user = user
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._grant_loader = grant_loader or (lambda u: load_user_grants(u, using=self.using))
        self._grants = None

    @classmethod
    def for_request(cls, request) -> 'PermissionService':
        service = getattr(request, '_permission_service', None)
        if service is None:
            service = cls(getattr(request, 'principal', None))
            request._permission_service = service
        return service

    @property
    def grants(self) -> List[str]:
        if self._grants is None:
            self._grants = [] if self.user is None else list(self._grant_loader(self.user))
        return self._grants

    def has_permission(self, required: RequiredPermission, strict: bool = False) -> bool:
        result = has_permission(self.grants, required, strict=strict)
        self.logger.debug(
            'permission check user=%s required=%s strict=%s result=%s',
            getattr(self.user, 'uid', None), required, strict, result,
        )
        return result

    def is_mission_editor(self, mission: Mission) -> bool:
        """Creator, editors and mission admins may change a mission."""
        if self.user is not None and mission.creator_id == self.user.uid:
            return True
        return self.has_permission([
            f'mission.{mission.slug}.creator',
            f'mission.{mission.slug}.editor',
            'admin.mission',
        ])

    def is_mission_owner(self, mission: Mission) -> bool:
        """Only the creator and mission admins may delete a mission or change its visibility."""
        if self.user is not None and mission.creator_id == self.user.uid:
            return True
        return self.has_permission('admin.mission')

    def can_manage_slot(self, mission: Mission, slot: MissionSlot) -> bool:
        """
        Editors manage every slot. Holders of `mission.<slug>.slotlist.community`
        manage the slots restricted to their own community.
        """
        if self.is_mission_editor(mission):
            return True
        if self.user is None or self.user.community_id is None:
            return False
        if slot.restricted_community_id != self.user.community_id:
            return False
        return self.has_permission(f'mission.{mission.slug}.slotlist.community')

    def is_community_leader(self, community_slug: str, include_recruitment: bool = False) -> bool:
        required = [f'community.{community_slug}.founder', f'community.{community_slug}.leader']
        if include_recruitment:
            required.append(f'community.{community_slug}.recruitment')
        return self.has_permission(required)

    def editor_mission_slugs(self) -> List[str]:
        slugs = []
        for perm in self.grants:
            parts = perm.lower().split('.')
            if len(parts) == 3 and parts[0] == 'mission' and parts[2] in ('editor', 'creator'):
                slugs.append(parts[1])
        return slugs


def validate_community_permission(permission: str, community_slug: str) -> str:
    """Only leader and recruitment grants may be handed out for a community."""
    valid = [f'community.{community_slug}.{kind}' for kind in COMMUNITY_PERMISSION_TYPES]
    if permission not in valid:
        raise ValidationError(
            f'Invalid community permission "{permission}". Valid: {", ".join(valid)}',
            reason='invalid_permission',
        )
    return permission


def validate_mission_permission(permission: str, mission_slug: str) -> str:
    """Only editor and community slotlist grants may be handed out for a mission."""
    valid = [f'mission.{mission_slug}.{kind}' for kind in MISSION_PERMISSION_TYPES]
    if permission not in valid:
        raise ValidationError(
            f'Invalid mission permission "{permission}". Valid: {", ".join(valid)}',
            reason='invalid_permission',
        )
    return permission


def can_view_mission(mission: Mission, service: PermissionService) -> bool:
    """
    Check if the principal behind `service` can view a mission.

    Visibility rules:
    - public: everyone can see
    - community: only community members can see
    - private: assigned users, users holding a mission access (directly or
      through their community), editors, creator and admins can see
    - hidden: only creator, editors and admins can see
    """
    if mission.visibility == Mission.VISIBILITY_PUBLIC:
        return True

    user = service.user
    if user is None:
        return False

    if service.is_mission_editor(mission):
        return True

    if mission.visibility == Mission.VISIBILITY_COMMUNITY:
        return mission.community_id is not None and mission.community_id == user.community_id

    if mission.visibility == Mission.VISIBILITY_PRIVATE:
        if MissionSlot.objects.using(service.using).filter(slot_group__mission=mission, assignee=user).exists():
            return True
        access = Q(user=user)
        if user.community_id is not None:
            access |= Q(community_id=user.community_id)
        return MissionAccess.objects.using(service.using).filter(access, mission=mission).exists()

    return False


def filter_missions_by_visibility(queryset, service: PermissionService):
    """Apply the visibility rules to a mission queryset at database level."""
    user = service.user
    if user is None:
        return queryset.visible_to_user()

    return queryset.visible_to_user(
        user_uid=user.uid,
        community_uid=user.community_id,
        is_admin=service.has_permission('admin.mission'),
        editor_slugs=service.editor_mission_slugs(),
    )
