"""
Community membership, applications and permission grants.
"""
import logging
from typing import Iterable, Optional

from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils.text import slugify

from slotting.errors import ConflictError, ForbiddenError, ValidationError, conflict_on_integrity_error
from slotting.models import Community, CommunityApplication, Notification, Permission, User
from slotting.notifications import NotificationService
from slotting.permissions import validate_community_permission


def founder_permission(community_slug: str) -> str:
    return f'community.{community_slug}.founder'


def grant_permission(user: User, permission: str, using: str = DEFAULT_DB_ALIAS) -> Permission:
    """Store a grant, raising `ConflictError` if the user already holds it."""
    if not permission:
        raise ValidationError('Permission must not be empty', reason='invalid_permission')

    with conflict_on_integrity_error('Permission already exists', reason='duplicate_permission', using=using):
        return Permission.objects.using(using).create(user=user, permission=permission)


def delete_scoped_permissions(prefix: str, user: Optional[User] = None, using: str = DEFAULT_DB_ALIAS) -> int:
    """Delete every grant below `prefix` (e.g. `mission.op-anvil`), optionally for one user."""
    queryset = Permission.objects.using(using).filter(permission__istartswith=f'{prefix}.')
    if user is not None:
        queryset = queryset.filter(user=user)
    deleted, _ = queryset.delete()
    return deleted


class CommunityService:
    def __init__(self, notifications: NotificationService = None, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.notifications = notifications or NotificationService(using=using, logger=self.logger)

    def create_community(
        self,
        founder: User,
        name: str,
        tag: str,
        slug: str = None,
        website: str = None,
        game_servers: Iterable = None,
        voice_comms: Iterable = None,
        repositories: Iterable = None,
    ) -> Community:
        """
        Create a community with `founder` as its first member.

        The founder receives `community.<slug>.founder`; a user who already
        belongs to a community cannot found another one.
        """
        slug = slug or slugify(name)
        if not slug:
            raise ValidationError('Community slug must not be empty', reason='invalid_slug')
        if founder.community_id is not None:
            raise ConflictError('User is already a member of a community', reason='already_member')

        with transaction.atomic(using=self.using):
            with conflict_on_integrity_error('Community slug is already taken', reason='slug_taken', using=self.using):
                community = Community.objects.using(self.using).create(
                    name=name,
                    tag=tag,
                    slug=slug,
                    website=website,
                    game_servers=list(game_servers or []),
                    voice_comms=list(voice_comms or []),
                    repositories=list(repositories or []),
                )

            founder.community = community
            founder.save(using=self.using, update_fields=['community', 'updated_at'])
            grant_permission(founder, founder_permission(slug), using=self.using)

        self.logger.info('user %s founded community %s', founder.uid, slug)
        return community

    def delete_community(self, community: Community) -> None:
        """Delete a community and every grant scoped to it. Members are detached."""
        slug = community.slug
        with transaction.atomic(using=self.using):
            deleted = delete_scoped_permissions(f'community.{slug}', using=self.using)
            community.delete(using=self.using)

        self.logger.info('deleted community %s and %d scoped permissions', slug, deleted)

    ################
    # Applications
    ################

    def apply(self, community: Community, user: User) -> CommunityApplication:
        if user.community_id == community.uid:
            raise ConflictError('User is already a member of this community', reason='already_member')

        with conflict_on_integrity_error(
            'You have already submitted an application to this community',
            reason='duplicate_application',
            using=self.using,
        ):
            application = CommunityApplication.objects.using(self.using).create(user=user, community=community)

        self.logger.info('user %s applied to community %s', user.uid, community.slug)
        return application

    def process_application(self, application: CommunityApplication, status: str) -> CommunityApplication:
        """
        Accept or deny a submitted application.

        Accepting makes the applicant a member of the community in the same
        transaction.
        """
        if status not in (CommunityApplication.STATUS_ACCEPTED, CommunityApplication.STATUS_DENIED):
            raise ValidationError('status must be "accepted" or "denied"', reason='invalid_status')
        if application.status != CommunityApplication.STATUS_SUBMITTED:
            raise ConflictError('Application has already been processed', reason='application_processed')

        user = application.user
        community = application.community

        with transaction.atomic(using=self.using):
            if status == CommunityApplication.STATUS_ACCEPTED:
                if user.community_id is not None and user.community_id != community.uid:
                    raise ConflictError('User is already a member of another community', reason='already_member')
                user.community = community
                user.save(using=self.using, update_fields=['community', 'updated_at'])
                notification_type = Notification.TYPE_COMMUNITY_APPLICATION_ACCEPTED
            else:
                notification_type = Notification.TYPE_COMMUNITY_APPLICATION_DENIED

            application.status = status
            application.save(using=self.using, update_fields=['status', 'updated_at'])
            self.notifications.community_application(community, user, notification_type)

        self.logger.info('application %s to community %s %s', application.uid, community.slug, status)
        return application

    ################
    # Members
    ################

    def remove_member(self, community: Community, user: User) -> None:
        """
        Remove a member together with all of their grants for the community.

        The founder cannot be removed.
        """
        if user.community_id != community.uid:
            raise ValidationError('User is not a member of this community', reason='not_a_member')

        if Permission.objects.using(self.using).filter(user=user, permission=founder_permission(community.slug)).exists():
            raise ForbiddenError('The community founder cannot be removed', reason='founder_removal')

        with transaction.atomic(using=self.using):
            delete_scoped_permissions(f'community.{community.slug}', user=user, using=self.using)
            CommunityApplication.objects.using(self.using).filter(user=user, community=community).delete()
            user.community = None
            user.save(using=self.using, update_fields=['community', 'updated_at'])
            self.notifications.community_application(community, user, Notification.TYPE_COMMUNITY_APPLICATION_REMOVED)

        self.logger.info('removed user %s from community %s', user.uid, community.slug)

    def leader_uids(self, community: Community):
        leader_grants = [founder_permission(community.slug), f'community.{community.slug}.leader']
        return set(
            Permission.objects.using(self.using)
            .filter(permission__in=leader_grants, user__community=community)
            .values_list('user_id', flat=True)
        )

    ################
    # Permissions
    ################

    def grant(self, community: Community, user: User, permission: str) -> Permission:
        validate_community_permission(permission, community.slug)
        if user.community_id != community.uid:
            raise ValidationError('Permissions can only be granted to community members', reason='not_a_member')

        with transaction.atomic(using=self.using):
            granted = grant_permission(user, permission, using=self.using)
            self.notifications.community_permission_changed(community, user, permission, granted=True)

        self.logger.info('granted %s to user %s', permission, user.uid)
        return granted

    def revoke(self, community: Community, permission: Permission) -> None:
        if not permission.permission.lower().startswith(f'community.{community.slug}.'):
            raise ForbiddenError('Permission does not belong to this community', reason='foreign_permission')
        if permission.permission.lower() == founder_permission(community.slug):
            raise ForbiddenError('The founder permission cannot be revoked', reason='founder_removal')

        with transaction.atomic(using=self.using):
            permission.delete(using=self.using)
            self.notifications.community_permission_changed(community, permission.user, permission.permission, granted=False)

        self.logger.info('revoked %s from user %s', permission.permission, permission.user_id)
