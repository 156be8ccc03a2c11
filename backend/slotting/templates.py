"""
Slot templates: reusable slot list layouts that can be stamped onto a mission.
"""
import logging
from typing import List, Optional

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import F, Max, Q
from django.db.models.functions import Upper

from slotting.errors import ValidationError
from slotting.models import Mission, MissionSlot, MissionSlotGroup, MissionSlotTemplate, User
from slotting.ordering import recalculate_slot_order_numbers
from slotting.permissions import PermissionService
from slotting.slots import validate_difficulty

VISIBILITIES = [choice for choice, _ in Mission.VISIBILITY_CHOICES]

ADMIN_PERMISSION = 'admin.slotTemplate'


def _validate_visibility(visibility: str) -> str:
    if visibility not in VISIBILITIES:
        raise ValidationError(
            f'Invalid visibility "{visibility}". Valid: {", ".join(VISIBILITIES)}',
            reason='invalid_visibility',
        )
    return visibility


def normalize_slot_groups(slot_groups) -> List[dict]:
    """
    Validate a template's groups and return them sorted by order number, each
    with its slots sorted as well.
    """
    groups = []
    for group in slot_groups or []:
        if not isinstance(group, dict) or not group.get('title'):
            raise ValidationError('Every template slot group needs a title', reason='invalid_slot_template')
        slots = []
        for slot in group.get('slots') or []:
            if not isinstance(slot, dict) or not slot.get('title'):
                raise ValidationError('Every template slot needs a title', reason='invalid_slot_template')
            difficulty = slot.get('difficulty', 0)
            if not isinstance(difficulty, int):
                raise ValidationError('Slot difficulty must be a number', reason='invalid_difficulty')
            validate_difficulty(difficulty)
            slots.append({
                'title': slot['title'],
                'orderNumber': int(slot.get('orderNumber', 0)),
                'difficulty': difficulty,
                'description': slot.get('description'),
                'detailedDescription': slot.get('detailedDescription'),
                'reserve': bool(slot.get('reserve', False)),
                'blocked': bool(slot.get('blocked', False)),
            })
        groups.append({
            'title': group['title'],
            'orderNumber': int(group.get('orderNumber', 0)),
            'description': group.get('description'),
            'slots': sorted(slots, key=lambda s: s['orderNumber']),
        })
    return sorted(groups, key=lambda g: g['orderNumber'])


def visible_templates(queryset, service: PermissionService):
    """Restrict a template queryset to what the principal behind `service` may see."""
    user = service.user
    if user is None:
        return queryset.filter(visibility=Mission.VISIBILITY_PUBLIC)
    if service.has_permission([ADMIN_PERMISSION, 'admin.mission']):
        return queryset

    q = Q(visibility=Mission.VISIBILITY_PUBLIC) | Q(creator=user)
    if user.community_id is not None:
        q |= Q(visibility=Mission.VISIBILITY_COMMUNITY, creator__community_id=user.community_id)
    return queryset.filter(q)


def ordered_templates(queryset):
    return queryset.order_by(Upper('title'), 'created_at')


def can_view_template(template: MissionSlotTemplate, service: PermissionService) -> bool:
    if template.visibility == Mission.VISIBILITY_PUBLIC:
        return True
    user = service.user
    if user is None:
        return False
    if can_edit_template(template, service):
        return True
    if service.has_permission('admin.mission'):
        return True
    return (
        template.visibility == Mission.VISIBILITY_COMMUNITY
        and user.community_id is not None
        and template.creator.community_id == user.community_id
    )


def can_edit_template(template: MissionSlotTemplate, service: PermissionService) -> bool:
    if service.user is not None and template.creator_id == service.user.uid:
        return True
    return service.has_permission(ADMIN_PERMISSION)


class SlotTemplateService:
    def __init__(self, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def create_template(
        self,
        creator: User,
        title: str,
        slot_groups=None,
        visibility: Optional[str] = None,
    ) -> MissionSlotTemplate:
        template = MissionSlotTemplate(
            creator=creator,
            title=title,
            slot_groups=normalize_slot_groups(slot_groups),
            visibility=_validate_visibility(visibility or Mission.VISIBILITY_HIDDEN),
        )
        template.save(using=self.using, force_insert=True)
        self.logger.info('user %s created slot template %s', creator.uid, template.uid)
        return template

    def update_template(self, template: MissionSlotTemplate, title: str = None, slot_groups=None, visibility: str = None) -> MissionSlotTemplate:
        if title is not None:
            if not title:
                raise ValidationError('Template title must not be empty', reason='invalid_slot_template')
            template.title = title
        if slot_groups is not None:
            template.slot_groups = normalize_slot_groups(slot_groups)
        if visibility is not None:
            template.visibility = _validate_visibility(visibility)
        template.save(using=self.using)
        return template

    def delete_template(self, template: MissionSlotTemplate) -> None:
        uid = template.uid
        template.delete(using=self.using)
        self.logger.info('deleted slot template %s', uid)

    def apply_template(self, template: MissionSlotTemplate, mission: Mission, insert_after: int = None) -> List[MissionSlotGroup]:
        """
        Create the template's slot groups and slots in `mission`.

        The groups are placed after group position `insert_after`, or after
        all existing groups when it is not given. Slot order numbers of the
        whole mission are recalculated once at the end.
        """
        groups = normalize_slot_groups(template.slot_groups)

        with transaction.atomic(using=self.using):
            existing = MissionSlotGroup.objects.using(self.using).filter(mission=mission)
            if insert_after is None:
                insert_after = existing.aggregate(highest=Max('order_number'))['highest'] or 0
            insert_after = max(insert_after, 0)

            existing.filter(order_number__gt=insert_after).update(order_number=F('order_number') + len(groups))

            created_groups = []
            new_slots = []
            for position, group in enumerate(groups, start=insert_after + 1):
                slot_group = MissionSlotGroup.objects.using(self.using).create(
                    mission=mission,
                    title=group['title'],
                    description=group['description'],
                    order_number=position,
                )
                created_groups.append(slot_group)
                for slot_position, slot in enumerate(group['slots'], start=1):
                    new_slots.append(MissionSlot(
                        slot_group=slot_group,
                        title=slot['title'],
                        order_number=slot_position,
                        difficulty=slot['difficulty'],
                        description=slot['description'],
                        detailed_description=slot['detailedDescription'],
                        reserve=slot['reserve'],
                        blocked=slot['blocked'],
                        required_dlcs=[],
                    ))

            MissionSlot.objects.using(self.using).bulk_create(new_slots)
            recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)

        self.logger.info(
            'applied slot template %s to mission %s: %d groups, %d slots',
            template.uid, mission.slug, len(created_groups), len(new_slots),
        )
        return created_groups
