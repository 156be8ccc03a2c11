"""
Site-wide announcements, published by announcement admins and delivered to
every active user as a notification.
"""
import logging
from datetime import datetime
from typing import Optional

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Q
from django.db.models.functions import Upper
from django.utils import timezone

from slotting.errors import ValidationError
from slotting.models import Announcement, User
from slotting.notifications import NotificationService

ADMIN_PERMISSION = 'admin.announcement'

ANNOUNCEMENT_TYPES = [choice for choice, _ in Announcement.TYPE_CHOICES]


def _validate_type(announcement_type: str) -> str:
    if announcement_type not in ANNOUNCEMENT_TYPES:
        raise ValidationError(
            f'Invalid announcement type "{announcement_type}". Valid: {", ".join(ANNOUNCEMENT_TYPES)}',
            reason='invalid_announcement_type',
        )
    return announcement_type


def visible_announcements(queryset, include_scheduled: bool = False, now: datetime = None):
    """Announcements without a `visible_from` or with one in the past, newest first."""
    if not include_scheduled:
        queryset = queryset.filter(Q(visible_from__isnull=True) | Q(visible_from__lte=now or timezone.now()))
    return queryset.order_by('-created_at', Upper('title'))


class AnnouncementService:
    def __init__(self, notifications: NotificationService = None, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.notifications = notifications or NotificationService(using=using, logger=self.logger)

    def create_announcement(
        self,
        author: User,
        title: str,
        content: str,
        announcement_type: str = Announcement.TYPE_GENERIC,
        visible_from: Optional[datetime] = None,
        send_notifications: bool = True,
    ) -> Announcement:
        with transaction.atomic(using=self.using):
            announcement = Announcement.objects.using(self.using).create(
                user=author,
                title=title,
                content=content,
                announcement_type=_validate_type(announcement_type),
                visible_from=visible_from,
            )
            if send_notifications:
                recipients = User.objects.using(self.using).filter(active=True)
                self.notifications.announcement_published(announcement, recipients)

        self.logger.info('user %s published announcement %s', author.uid, announcement.uid)
        return announcement

    def update_announcement(self, announcement: Announcement, **fields) -> Announcement:
        if 'announcement_type' in fields:
            _validate_type(fields['announcement_type'])
        for name in ('title', 'content'):
            if name in fields and not fields[name]:
                raise ValidationError(f'Announcement {name} must not be empty', reason='invalid_announcement')

        for name, value in fields.items():
            setattr(announcement, name, value)
        announcement.save(using=self.using)
        return announcement

    def delete_announcement(self, announcement: Announcement) -> None:
        """Delete an announcement together with the notifications it produced."""
        with transaction.atomic(using=self.using):
            withdrawn = self.notifications.announcement_withdrawn(announcement)
            announcement.delete(using=self.using)

        self.logger.info('deleted announcement and %d notifications', withdrawn)
