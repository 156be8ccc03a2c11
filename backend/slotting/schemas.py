from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from ninja import Field, Schema


class NotificationSchema(Schema):
    uid: UUID
    notification_type: str = Field(..., alias='notificationType', serialization_alias='notificationType')
    title: Optional[str] = None
    message: str
    additional_data: Optional[Any] = Field(None, alias='additionalData', serialization_alias='additionalData')
    read: bool
    created_at: datetime = Field(..., alias='createdAt', serialization_alias='createdAt')

    class Config:
        populate_by_name = True
        from_attributes = True


class NotificationListResponseSchema(Schema):
    notifications: List['NotificationSchema']
    limit: int
    offset: int
    total: int


class NotificationDetailResponseSchema(Schema):
    notification: NotificationSchema


class CamelCaseSchema(Schema):
    """Request body accepting both the camelCase wire names and the field names."""

    class Config:
        populate_by_name = True


class MissionScheduleSchema(CamelCaseSchema):
    briefing_time: Optional[datetime] = Field(None, alias='briefingTime')
    slotting_time: Optional[datetime] = Field(None, alias='slottingTime')
    start_time: Optional[datetime] = Field(None, alias='startTime')
    end_time: Optional[datetime] = Field(None, alias='endTime')


class MissionDetailsSchema(MissionScheduleSchema):
    collapsed_description: Optional[str] = Field(None, alias='collapsedDescription')
    details_map: Optional[str] = Field(None, alias='detailsMap')
    details_game_mode: Optional[str] = Field(None, alias='detailsGameMode')
    required_dlcs: Optional[List[str]] = Field(None, alias='requiredDLCs')
    game_server: Optional[Any] = Field(None, alias='gameServer')
    voice_comms: Optional[Any] = Field(None, alias='voiceComms')
    repositories: Optional[List[Any]] = None


class MissionCreateSchema(MissionDetailsSchema):
    title: str
    slug: Optional[str] = None
    description: Optional[str] = ''
    detailed_description: Optional[str] = Field('', alias='detailedDescription')
    visibility: str = 'hidden'
    tech_teleport: bool = Field(False, alias='techTeleport')
    tech_respawn: bool = Field(False, alias='techRespawn')
    rules_of_engagement: Optional[str] = Field('', alias='rulesOfEngagement')
    add_to_community: bool = Field(True, alias='addToCommunity')


class MissionUpdateSchema(MissionDetailsSchema):
    """Every field is optional; only fields present in the body are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    detailed_description: Optional[str] = Field(None, alias='detailedDescription')
    visibility: Optional[str] = None
    tech_support: Optional[str] = Field(None, alias='techSupport')
    tech_teleport: Optional[bool] = Field(None, alias='techTeleport')
    tech_respawn: Optional[bool] = Field(None, alias='techRespawn')
    rules_of_engagement: Optional[str] = Field(None, alias='rulesOfEngagement')


class MissionDuplicateSchema(MissionScheduleSchema):
    slug: str
    title: Optional[str] = None
    visibility: Optional[str] = 'hidden'
    add_to_community: Optional[bool] = Field(False, alias='addToCommunity')


class UserUpdateSchema(Schema):
    nickname: Optional[str] = None


class CommunityContactSchema(CamelCaseSchema):
    website: Optional[str] = None
    game_servers: Optional[List[Any]] = Field(None, alias='gameServers')
    voice_comms: Optional[List[Any]] = Field(None, alias='voiceComms')
    repositories: Optional[List[Any]] = None


class CommunityCreateSchema(CommunityContactSchema):
    name: str
    tag: str
    slug: Optional[str] = None


class CommunityUpdateSchema(CommunityContactSchema):
    name: Optional[str] = None
    tag: Optional[str] = None


class MissionSlotGroupCreateSchema(Schema):
    title: str
    description: Optional[str] = None
    insertAfter: int = 0


class MissionSlotGroupUpdateSchema(Schema):
    title: Optional[str] = None
    description: Optional[str] = None
    orderNumber: Optional[int] = None


class MissionSlotCreateSchema(Schema):
    title: str
    slotGroupUid: UUID
    difficulty: int = 0
    description: Optional[str] = None
    detailedDescription: Optional[str] = None
    requiredDLCs: Optional[List[str]] = []
    restrictedCommunityUid: Optional[UUID] = None
    blocked: bool = False
    reserve: bool = False
    autoAssignable: bool = False
    insertAfter: int = 0


class MissionSlotUpdateSchema(Schema):
    title: Optional[str] = None
    slotGroupUid: Optional[UUID] = None
    difficulty: Optional[int] = None
    description: Optional[str] = None
    detailedDescription: Optional[str] = None
    orderNumber: Optional[int] = None
    requiredDLCs: Optional[List[str]] = None
    restrictedCommunityUid: Optional[UUID] = None
    blocked: Optional[bool] = None
    reserve: Optional[bool] = None
    autoAssignable: Optional[bool] = None


class SlotRegistrationCreateSchema(Schema):
    comment: Optional[str] = None


class SlotRegistrationUpdateSchema(Schema):
    confirmed: bool
    suppressNotifications: Optional[bool] = False


class MissionSlotAssignSchema(Schema):
    userUid: Optional[UUID] = None
    externalAssignee: Optional[str] = None
    force: Optional[bool] = False
    suppressNotifications: Optional[bool] = False


class CommunityApplicationStatusSchema(Schema):
    status: str  # 'accepted' or 'denied'


class CommunityPermissionCreateSchema(Schema):
    userUid: UUID
    permission: str


class MissionPermissionCreateSchema(Schema):
    userUid: UUID
    permission: str  # 'editor', 'slotlist.community' or the full grant string
    suppressNotifications: Optional[bool] = False


class UserPermissionCreateSchema(Schema):
    permission: str


class MissionAccessCreateSchema(Schema):
    userUid: Optional[UUID] = None
    communityUid: Optional[UUID] = None


class SlotTemplateSlotSchema(Schema):
    title: str = Field(..., min_length=1)
    orderNumber: int = Field(..., ge=0)
    difficulty: int = Field(0, ge=0, le=4)
    description: Optional[str] = None
    detailedDescription: Optional[str] = None
    reserve: bool = False
    blocked: bool = False


class SlotTemplateGroupSchema(Schema):
    title: str = Field(..., min_length=1)
    orderNumber: int = Field(..., ge=0)
    description: Optional[str] = None
    slots: List[SlotTemplateSlotSchema] = []


class MissionSlotTemplateCreateSchema(Schema):
    title: str = Field(..., min_length=1)
    slotGroups: List[SlotTemplateGroupSchema] = []
    visibility: Optional[str] = None


class MissionSlotTemplateUpdateSchema(Schema):
    title: Optional[str] = None
    slotGroups: Optional[List[SlotTemplateGroupSchema]] = None
    visibility: Optional[str] = None


class AnnouncementCreateSchema(CamelCaseSchema):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    announcement_type: str = Field('generic', alias='announcementType')
    visible_from: Optional[datetime] = Field(None, alias='visibleFrom')


class AnnouncementUpdateSchema(CamelCaseSchema):
    title: Optional[str] = None
    content: Optional[str] = None
    announcement_type: Optional[str] = Field(None, alias='announcementType')
    visible_from: Optional[datetime] = Field(None, alias='visibleFrom')
