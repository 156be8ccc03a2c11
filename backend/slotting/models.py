import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import Exists, OuterRef, Q


class TimestampedModel(models.Model):
    uid = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_column='createdAt')
    updated_at = models.DateTimeField(auto_now=True, db_column='updatedAt')

    class Meta:
        abstract = True


class ArmaThreeDLC(models.TextChoices):
    """Fixed enumeration of DLCs a mission or slot can require."""
    APEX = 'apex', 'Apex'
    CONTACT = 'contact', 'Contact'
    CSLA_IRON_CURTAIN = 'csla-iron-curtain', 'CSLA Iron Curtain'
    EXPEDITIONARY_FORCES = 'expeditionary-forces', 'Expeditionary Forces'
    GLOBAL_MOBILIZATION = 'global-mobilization', 'Global Mobilization'
    HELICOPTERS = 'helicopters', 'Helicopters'
    JETS = 'jets', 'Jets'
    KARTS = 'karts', 'Karts'
    LAWS_OF_WAR = 'laws-of-war', 'Laws of War'
    MARKSMEN = 'marksmen', 'Marksmen'
    REACTION_FORCES = 'reaction-forces', 'Reaction Forces'
    SOG_PRAIRIE_FIRE = 'sog-prairie-fire', 'S.O.G. Prairie Fire'
    SPEARHEAD_1944 = 'spearhead-1944', 'Spearhead 1944'
    TAC_OPS = 'tac-ops', 'Tac-Ops'
    TANKS = 'tanks', 'Tanks'
    WESTERN_SAHARA = 'western-sahara', 'Western Sahara'

    @classmethod
    def get_valid_dlcs(cls):
        return list(cls.values)

    @classmethod
    def validate_dlc_list(cls, dlc_list) -> bool:
        valid = set(cls.values)
        return all(dlc in valid for dlc in dlc_list)


class Community(TimestampedModel):
    name = models.CharField(max_length=255)
    tag = models.CharField(max_length=32)
    slug = models.SlugField(max_length=255, unique=True)
    website = models.CharField(max_length=255, null=True, blank=True)
    logo_url = models.CharField(max_length=1024, null=True, blank=True, db_column='logoUrl')
    game_servers = models.JSONField(default=list, blank=True, db_column='gameServers')
    voice_comms = models.JSONField(default=list, blank=True, db_column='voiceComms')
    repositories = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = 'communities'
        ordering = ['name']

    def __str__(self):
        return f'[{self.tag}] {self.name}'


class User(TimestampedModel):
    nickname = models.CharField(max_length=255)
    steam_id = models.CharField(max_length=64, unique=True, db_column='steamId')
    community = models.ForeignKey(
        Community,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='members',
        db_column='communityUid',
    )
    active = models.BooleanField(default=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.nickname


class Permission(TimestampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='permissions', db_column='userUid')
    permission = models.CharField(max_length=255)

    class Meta:
        db_table = 'permissions'
        constraints = [
            models.UniqueConstraint(fields=['user', 'permission'], name='permissions_unique_userUid_permission'),
            models.CheckConstraint(condition=~Q(permission=''), name='permissions_permission_not_empty'),
        ]

    def __str__(self):
        return f'{self.user_id}: {self.permission}'


class CommunityApplication(TimestampedModel):
    STATUS_SUBMITTED = 'submitted'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DENIED = 'denied'
    STATUS_CHOICES = [
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_DENIED, 'Denied'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='community_applications', db_column='userUid')
    community = models.ForeignKey(Community, on_delete=models.CASCADE, related_name='applications', db_column='communityUid')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SUBMITTED)

    class Meta:
        db_table = 'communityApplications'
        constraints = [
            models.UniqueConstraint(fields=['user', 'community'], name='communityApplications_unique_userUid_communityUid'),
        ]


class MissionQuerySet(models.QuerySet):
    """Database-level filtering of missions by visibility."""

    def visible_to_user(self, user_uid=None, community_uid=None, is_admin=False, editor_slugs=()):
        """
        Filter missions a user may see.

        Args:
            user_uid: UUID of the current user (None for unauthenticated)
            community_uid: UUID of the user's community (None if no community)
            is_admin: Whether the user holds `admin.mission`
            editor_slugs: Slugs of missions the user holds editor grants for

        Returns:
            QuerySet of missions the user can view
        """
        q = Q(visibility=Mission.VISIBILITY_PUBLIC)
        if not user_uid:
            return self.filter(q)

        if is_admin:
            return self.all()

        q |= Q(creator__uid=user_uid)

        if community_uid:
            q |= Q(visibility=Mission.VISIBILITY_COMMUNITY, community__uid=community_uid)

        assigned = MissionSlot.objects.filter(slot_group__mission=OuterRef('pk'), assignee__uid=user_uid)
        access = Q(user__uid=user_uid)
        if community_uid:
            access |= Q(community__uid=community_uid)
        granted = MissionAccess.objects.filter(access, mission=OuterRef('pk'))
        q |= Q(visibility=Mission.VISIBILITY_PRIVATE) & (Exists(assigned) | Exists(granted))

        if editor_slugs:
            q |= Q(slug__in=list(editor_slugs))

        return self.filter(q)


class Mission(TimestampedModel):
    VISIBILITY_PUBLIC = 'public'
    VISIBILITY_HIDDEN = 'hidden'
    VISIBILITY_COMMUNITY = 'community'
    VISIBILITY_PRIVATE = 'private'
    VISIBILITY_CHOICES = [
        (VISIBILITY_PUBLIC, 'Public'),
        (VISIBILITY_HIDDEN, 'Hidden'),
        (VISIBILITY_COMMUNITY, 'Community'),
        (VISIBILITY_PRIVATE, 'Private'),
    ]

    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    description = models.TextField(blank=True, default='')
    detailed_description = models.TextField(blank=True, default='', db_column='detailedDescription')
    collapsed_description = models.TextField(null=True, blank=True, db_column='collapsedDescription')
    banner_image_url = models.CharField(max_length=1024, null=True, blank=True, db_column='bannerImageUrl')
    briefing_time = models.DateTimeField(db_column='briefingTime')
    slotting_time = models.DateTimeField(db_column='slottingTime')
    start_time = models.DateTimeField(db_column='startTime')
    end_time = models.DateTimeField(db_column='endTime')
    tech_support = models.TextField(null=True, blank=True, db_column='techSupport')
    details_map = models.CharField(max_length=255, null=True, blank=True, db_column='detailsMap')
    details_game_mode = models.CharField(max_length=255, null=True, blank=True, db_column='detailsGameMode')
    rules = models.TextField(null=True, blank=True)
    required_dlcs = models.JSONField(default=list, blank=True, db_column='requiredDLCs')
    game_server = models.JSONField(null=True, blank=True, db_column='gameServer')
    voice_comms = models.JSONField(null=True, blank=True, db_column='voiceComms')
    repositories = models.JSONField(default=list, blank=True)
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default=VISIBILITY_HIDDEN)
    community = models.ForeignKey(
        Community,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='missions',
        db_column='communityUid',
    )
    creator = models.ForeignKey(User, on_delete=models.CASCADE, related_name='missions', db_column='creatorUid')

    objects = MissionQuerySet.as_manager()

    class Meta:
        db_table = 'missions'

    def __str__(self):
        return self.slug

    def clean(self):
        if self.slotting_time and self.start_time and self.slotting_time > self.start_time:
            raise DjangoValidationError({'slotting_time': 'Slotting time must not be after start time'})
        if self.start_time and self.end_time and self.start_time > self.end_time:
            raise DjangoValidationError({'end_time': 'End time must not be before start time'})


class MissionSlotGroup(TimestampedModel):
    mission = models.ForeignKey(Mission, on_delete=models.CASCADE, related_name='slot_groups', db_column='missionUid')
    title = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    order_number = models.PositiveIntegerField(default=0, db_column='orderNumber')

    class Meta:
        db_table = 'missionSlotGroups'
        ordering = ['order_number']

    def __str__(self):
        return f'{self.mission_id}: {self.title}'


class MissionSlot(TimestampedModel):
    slot_group = models.ForeignKey(MissionSlotGroup, on_delete=models.CASCADE, related_name='slots', db_column='slotGroupUid')
    title = models.CharField(max_length=255)
    order_number = models.PositiveIntegerField(default=0, db_column='orderNumber')
    difficulty = models.PositiveSmallIntegerField(default=0)
    description = models.CharField(max_length=255, null=True, blank=True)
    detailed_description = models.TextField(null=True, blank=True, db_column='detailedDescription')
    reserve = models.BooleanField(default=False)
    blocked = models.BooleanField(default=False)
    auto_assignable = models.BooleanField(default=False, db_column='autoAssignable')
    required_dlcs = models.JSONField(default=list, blank=True, db_column='requiredDLCs')
    restricted_community = models.ForeignKey(
        Community,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='restricted_slots',
        db_column='restrictedCommunityUid',
    )
    assignee = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='assigned_slots',
        db_column='assigneeUid',
    )
    external_assignee = models.CharField(max_length=255, null=True, blank=True, db_column='externalAssignee')

    class Meta:
        db_table = 'missionSlots'
        ordering = ['order_number']
        constraints = [
            models.UniqueConstraint(
                fields=['slot_group', 'assignee'],
                name='missionSlots_unique_slotGroupUid_assigneeUid',
            ),
            models.CheckConstraint(
                condition=Q(assignee__isnull=True) | Q(external_assignee__isnull=True),
                name='missionSlots_assignee_xor_externalAssignee',
            ),
            models.CheckConstraint(
                condition=Q(difficulty__gte=0, difficulty__lte=4),
                name='missionSlots_difficulty_range',
            ),
        ]

    def __str__(self):
        return f'{self.slot_group_id}: {self.title}'

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None or bool(self.external_assignee)


class MissionSlotRegistration(TimestampedModel):
    slot = models.ForeignKey(MissionSlot, on_delete=models.CASCADE, related_name='registrations', db_column='slotUid')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='slot_registrations', db_column='userUid')
    confirmed = models.BooleanField(default=False)
    comment = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'missionSlotRegistrations'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['slot', 'user'], name='missionSlotRegistrations_unique_slotUid_userUid'),
        ]


class Notification(TimestampedModel):
    TYPE_ANNOUNCEMENT_GENERIC = 'announcement.generic'
    TYPE_ANNOUNCEMENT_UPDATE = 'announcement.update'
    TYPE_COMMUNITY_APPLICATION_ACCEPTED = 'community.application.accepted'
    TYPE_COMMUNITY_APPLICATION_DENIED = 'community.application.denied'
    TYPE_COMMUNITY_APPLICATION_NEW = 'community.application.new'
    TYPE_COMMUNITY_APPLICATION_REMOVED = 'community.application.removed'
    TYPE_COMMUNITY_PERMISSION_GRANTED = 'community.permission.granted'
    TYPE_COMMUNITY_PERMISSION_REVOKED = 'community.permission.revoked'
    TYPE_GENERIC = 'generic'
    TYPE_MISSION_DELETED = 'mission.deleted'
    TYPE_MISSION_PERMISSION_GRANTED = 'mission.permission.granted'
    TYPE_MISSION_PERMISSION_REVOKED = 'mission.permission.revoked'
    TYPE_MISSION_SLOT_ASSIGNED = 'mission.slot.assigned'
    TYPE_MISSION_SLOT_REGISTRATION_NEW = 'mission.slot.registration.new'
    TYPE_MISSION_SLOT_UNASSIGNED = 'mission.slot.unassigned'
    TYPE_MISSION_SLOT_UNREGISTERED = 'mission.slot.unregistered'
    TYPE_CHOICES = [
        (TYPE_ANNOUNCEMENT_GENERIC, 'Announcement'),
        (TYPE_ANNOUNCEMENT_UPDATE, 'Update announcement'),
        (TYPE_COMMUNITY_APPLICATION_ACCEPTED, 'Community application accepted'),
        (TYPE_COMMUNITY_APPLICATION_DENIED, 'Community application denied'),
        (TYPE_COMMUNITY_APPLICATION_NEW, 'New community application'),
        (TYPE_COMMUNITY_APPLICATION_REMOVED, 'Removed from community'),
        (TYPE_COMMUNITY_PERMISSION_GRANTED, 'Community permission granted'),
        (TYPE_COMMUNITY_PERMISSION_REVOKED, 'Community permission revoked'),
        (TYPE_GENERIC, 'Generic'),
        (TYPE_MISSION_DELETED, 'Mission deleted'),
        (TYPE_MISSION_PERMISSION_GRANTED, 'Mission permission granted'),
        (TYPE_MISSION_PERMISSION_REVOKED, 'Mission permission revoked'),
        (TYPE_MISSION_SLOT_ASSIGNED, 'Mission slot assigned'),
        (TYPE_MISSION_SLOT_REGISTRATION_NEW, 'New mission slot registration'),
        (TYPE_MISSION_SLOT_UNASSIGNED, 'Mission slot unassigned'),
        (TYPE_MISSION_SLOT_UNREGISTERED, 'Mission slot registration removed'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications', db_column='userUid')
    notification_type = models.CharField(max_length=64, choices=TYPE_CHOICES, default=TYPE_GENERIC, db_column='notificationType')
    title = models.CharField(max_length=255, null=True, blank=True)
    message = models.TextField(blank=True, default='')
    additional_data = models.JSONField(null=True, blank=True, db_column='additionalData')
    read = models.BooleanField(default=False)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']


class MissionAccess(TimestampedModel):
    """Grants a single user or a whole community access to a private mission."""
    mission = models.ForeignKey(Mission, on_delete=models.CASCADE, related_name='accesses', db_column='missionUid')
    community = models.ForeignKey(
        Community,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name='mission_accesses',
        db_column='communityUid',
    )
    user = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name='mission_accesses',
        db_column='userUid',
    )

    class Meta:
        db_table = 'missionAccesses'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['mission', 'community'], name='missionAccesses_unique_missionUid_communityUid'),
            models.UniqueConstraint(fields=['mission', 'user'], name='missionAccesses_unique_missionUid_userUid'),
            models.CheckConstraint(
                condition=(
                    Q(community__isnull=False, user__isnull=True)
                    | Q(community__isnull=True, user__isnull=False)
                ),
                name='missionAccesses_community_xor_user',
            ),
        ]


class MissionSlotTemplate(TimestampedModel):
    """
    Reusable slot list layout.

    `slot_groups` holds a list of groups, each with `title`, `description`,
    `orderNumber` and a `slots` list of `title`, `description`,
    `detailedDescription`, `difficulty`, `orderNumber`, `reserve` and
    `blocked`.
    """
    title = models.CharField(max_length=255)
    slot_groups = models.JSONField(default=list, blank=True, db_column='slotGroups')
    visibility = models.CharField(max_length=20, choices=Mission.VISIBILITY_CHOICES, default=Mission.VISIBILITY_HIDDEN)
    creator = models.ForeignKey(User, on_delete=models.CASCADE, related_name='slot_templates', db_column='creatorUid')

    class Meta:
        db_table = 'missionSlotTemplates'

    def __str__(self):
        return self.title

    @property
    def slot_count(self) -> int:
        return sum(len(group.get('slots', [])) for group in self.slot_groups)


class Announcement(TimestampedModel):
    TYPE_GENERIC = 'generic'
    TYPE_UPDATE = 'update'
    TYPE_CHOICES = [
        (TYPE_GENERIC, 'Generic'),
        (TYPE_UPDATE, 'Update'),
    ]

    title = models.CharField(max_length=255)
    content = models.TextField()
    announcement_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_GENERIC, db_column='announcementType')
    visible_from = models.DateTimeField(null=True, blank=True, db_column='visibleFrom')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='announcements', db_column='userUid')

    class Meta:
        db_table = 'announcements'

    def __str__(self):
        return self.title
