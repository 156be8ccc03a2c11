"""
Slot groups and slots of a mission.

Owns the assignment mutation (registered user XOR external name), required
DLC validation, capacity queries and the structural edits that change the
composition or order of a mission's slot list.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Exists, F, OuterRef, Q

from slotting.errors import ConflictError, NotFoundError, ValidationError, conflict_on_integrity_error
from slotting.models import ArmaThreeDLC, Mission, MissionSlot, MissionSlotGroup, MissionSlotRegistration, User
from slotting.ordering import recalculate_slot_order_numbers

MIN_DIFFICULTY = 0
MAX_DIFFICULTY = 4

UPDATABLE_SLOT_FIELDS = {
    'title',
    'difficulty',
    'description',
    'detailed_description',
    'required_dlcs',
    'restricted_community',
    'blocked',
    'reserve',
    'auto_assignable',
}


@dataclass
class AssignmentChange:
    """Assignment state of a slot before and after a mutation."""
    slot: MissionSlot
    previous_assignee: Optional[User]
    previous_external_assignee: Optional[str]
    assignee: Optional[User]
    external_assignee: Optional[str]

    @property
    def changed(self) -> bool:
        return (
            _uid(self.previous_assignee) != _uid(self.assignee)
            or (self.previous_external_assignee or None) != (self.external_assignee or None)
        )

    @property
    def detached_user(self) -> Optional[User]:
        """User who held the slot before and no longer does."""
        if self.previous_assignee is not None and _uid(self.previous_assignee) != _uid(self.assignee):
            return self.previous_assignee
        return None

    @property
    def attached_user(self) -> Optional[User]:
        """User who holds the slot now and did not before."""
        if self.assignee is not None and _uid(self.previous_assignee) != _uid(self.assignee):
            return self.assignee
        return None


def _uid(user: Optional[User]):
    return user.uid if user is not None else None


def validate_required_dlcs(value, field_name: str = 'requiredDLCs') -> List[str]:
    """
    Validate a required DLC list.

    A single string is treated as a one-element list and `None` as an empty
    one. Raises `ValidationError` if any entry is not a known DLC.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]

    dlcs = list(value)
    if not ArmaThreeDLC.validate_dlc_list(dlcs):
        invalid = [str(dlc) for dlc in dlcs if dlc not in ArmaThreeDLC.get_valid_dlcs()]
        raise ValidationError(
            f'Invalid {field_name}: {", ".join(invalid)}. Valid options: {", ".join(ArmaThreeDLC.get_valid_dlcs())}',
            reason='invalid_dlc',
        )
    return dlcs


def validate_difficulty(difficulty: int) -> int:
    if difficulty is None or not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        raise ValidationError(
            f'Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}',
            reason='invalid_difficulty',
        )
    return difficulty


class SlotService:
    def __init__(self, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    ################
    # Assignment
    ################

    def assign(
        self,
        slot: MissionSlot,
        user: Optional[User] = None,
        external_assignee: Optional[str] = None,
        force: bool = False,
    ) -> AssignmentChange:
        """
        Assign a slot to a registered user or to a free-text external name.

        A slot holding a different assignment is only taken over with
        `force=True`; the prior assignee is detached and reported in the
        returned change. Registrations are left untouched.
        """
        if user is not None and external_assignee:
            raise ConflictError(
                'A slot can be assigned to either a user or an external assignee, not both',
                reason='assignee_conflict',
            )
        if user is None and not external_assignee:
            return self.unassign(slot)

        previous_assignee = slot.assignee
        previous_external = slot.external_assignee or None

        if user is not None and slot.assignee_id == user.uid:
            return AssignmentChange(slot, previous_assignee, previous_external, previous_assignee, previous_external)
        if external_assignee and previous_external == external_assignee:
            return AssignmentChange(slot, previous_assignee, previous_external, previous_assignee, previous_external)

        if slot.is_assigned and not force:
            raise ConflictError(
                'Slot is already assigned. Unassign it first or force the assignment',
                reason='slot_already_assigned',
            )

        slot.assignee = user
        slot.external_assignee = None if user is not None else external_assignee
        try:
            with conflict_on_integrity_error(
                'User is already assigned to another slot in this slot group',
                reason='duplicate_group_assignment',
                using=self.using,
            ):
                slot.save(using=self.using, update_fields=['assignee', 'external_assignee', 'updated_at'])
        except ConflictError:
            slot.assignee = previous_assignee
            slot.external_assignee = previous_external
            raise

        self.logger.info(
            'assigned slot %s to %s (previous: %s)',
            slot.uid,
            user.uid if user is not None else f'external "{external_assignee}"',
            _uid(previous_assignee) or previous_external,
        )
        return AssignmentChange(slot, previous_assignee, previous_external, slot.assignee, slot.external_assignee)

    def unassign(self, slot: MissionSlot) -> AssignmentChange:
        """Clear the assignee and external assignee. Registrations are kept."""
        previous_assignee = slot.assignee
        previous_external = slot.external_assignee or None

        if previous_assignee is not None or previous_external is not None:
            slot.assignee = None
            slot.external_assignee = None
            slot.save(using=self.using, update_fields=['assignee', 'external_assignee', 'updated_at'])
            self.logger.info('unassigned slot %s (previous: %s)', slot.uid, _uid(previous_assignee) or previous_external)

        return AssignmentChange(slot, previous_assignee, previous_external, None, None)

    ################
    # Capacity
    ################

    def _mission_slots(self, mission: Mission):
        return MissionSlot.objects.using(self.using).filter(slot_group__mission=mission)

    def _unassigned_slots(self, mission: Mission):
        return self._mission_slots(mission).filter(assignee__isnull=True).filter(
            Q(external_assignee__isnull=True) | Q(external_assignee='')
        )

    def total_slot_count(self, mission: Mission) -> int:
        return self._mission_slots(mission).count()

    def unassigned_slot_count(self, mission: Mission, exclude_registrations: bool = True) -> int:
        """
        Count slots without an assignee.

        With `exclude_registrations`, slots that already have registrations
        under review are not counted as open.
        """
        queryset = self._unassigned_slots(mission)
        if exclude_registrations:
            queryset = queryset.exclude(
                Exists(MissionSlotRegistration.objects.using(self.using).filter(slot=OuterRef('pk')))
            )
        return queryset.count()

    def is_user_assigned_to_any_slot(self, mission: Mission, user: User) -> bool:
        return self._mission_slots(mission).filter(assignee=user).exists()

    def is_user_registered_for_any_slot(self, mission: Mission, user: User) -> bool:
        return MissionSlotRegistration.objects.using(self.using).filter(
            slot__slot_group__mission=mission,
            user=user,
        ).exists()

    def slot_counts(self, mission: Mission) -> dict:
        slots = self._mission_slots(mission)
        open_slots = self._unassigned_slots(mission).filter(blocked=False, restricted_community__isnull=True).exclude(
            Exists(MissionSlotRegistration.objects.using(self.using).filter(slot=OuterRef('pk')))
        )
        return {
            'total': slots.count(),
            'assigned': slots.filter(assignee__isnull=False).count(),
            'external': slots.filter(external_assignee__isnull=False).exclude(external_assignee='').count(),
            'unassigned': self.unassigned_slot_count(mission, exclude_registrations=False),
            'open': open_slots.count(),
        }

    ################
    # Slot groups
    ################

    def create_slot_group(self, mission: Mission, title: str, description: str = None, insert_after: int = 0) -> MissionSlotGroup:
        """Create a slot group placed directly after group position `insert_after`."""
        new_order_number = max(insert_after, 0) + 1

        with transaction.atomic(using=self.using):
            MissionSlotGroup.objects.using(self.using).filter(
                mission=mission,
                order_number__gte=new_order_number,
            ).update(order_number=F('order_number') + 1)

            slot_group = MissionSlotGroup.objects.using(self.using).create(
                mission=mission,
                title=title,
                description=description or None,
                order_number=new_order_number,
            )
            recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)

        self.logger.info('created slot group %s in mission %s at position %d', slot_group.uid, mission.slug, new_order_number)
        return slot_group

    def update_slot_group(
        self,
        slot_group: MissionSlotGroup,
        title: str = None,
        description: str = None,
        order_number: int = None,
    ) -> MissionSlotGroup:
        with transaction.atomic(using=self.using):
            if title is not None:
                slot_group.title = title
            if description is not None:
                slot_group.description = description

            reorder = order_number is not None and order_number != slot_group.order_number
            if reorder:
                old_order = slot_group.order_number
                siblings = MissionSlotGroup.objects.using(self.using).filter(
                    mission_id=slot_group.mission_id,
                ).exclude(uid=slot_group.uid)

                if order_number > old_order:
                    siblings.filter(
                        order_number__gt=old_order,
                        order_number__lte=order_number,
                    ).update(order_number=F('order_number') - 1)
                else:
                    siblings.filter(
                        order_number__gte=order_number,
                        order_number__lt=old_order,
                    ).update(order_number=F('order_number') + 1)

                slot_group.order_number = order_number

            slot_group.save(using=self.using)

            if reorder:
                recalculate_slot_order_numbers(slot_group.mission, using=self.using, logger=self.logger)

        return slot_group

    def delete_slot_group(self, slot_group: MissionSlotGroup) -> None:
        """Delete a slot group with all its slots and close the gap it leaves."""
        mission = slot_group.mission
        deleted_order = slot_group.order_number

        with transaction.atomic(using=self.using):
            slot_group.delete(using=self.using)

            MissionSlotGroup.objects.using(self.using).filter(
                mission=mission,
                order_number__gt=deleted_order,
            ).update(order_number=F('order_number') - 1)

            recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)

        self.logger.info('deleted slot group at position %d of mission %s', deleted_order, mission.slug)

    ################
    # Slots
    ################

    def _check_group_in_mission(self, mission: Mission, slot_group: MissionSlotGroup) -> None:
        if slot_group.mission_id != mission.uid:
            raise NotFoundError('Slot group not found in this mission', reason='slot_group_not_found')

    def create_slot(
        self,
        mission: Mission,
        slot_group: MissionSlotGroup,
        title: str,
        insert_after: int = 0,
        difficulty: int = 0,
        description: str = None,
        detailed_description: str = None,
        required_dlcs=None,
        restricted_community=None,
        blocked: bool = False,
        reserve: bool = False,
        auto_assignable: bool = False,
    ) -> MissionSlot:
        """
        Create a slot placed after mission-wide position `insert_after`.

        The whole mission is renumbered afterwards, so the new slot ends up in
        its group's place in the global order.
        """
        self._check_group_in_mission(mission, slot_group)
        validate_difficulty(difficulty)
        required_dlcs = validate_required_dlcs(required_dlcs)
        new_order_number = max(insert_after, 0) + 1

        with transaction.atomic(using=self.using):
            self._mission_slots(mission).filter(
                order_number__gte=new_order_number,
            ).update(order_number=F('order_number') + 1)

            slot = MissionSlot.objects.using(self.using).create(
                slot_group=slot_group,
                title=title,
                order_number=new_order_number,
                difficulty=difficulty,
                description=description or None,
                detailed_description=detailed_description or None,
                required_dlcs=required_dlcs,
                restricted_community=restricted_community,
                blocked=blocked,
                reserve=reserve,
                auto_assignable=auto_assignable,
            )
            recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)
            slot.refresh_from_db(using=self.using, fields=['order_number'])

        self.logger.info('created slot %s in mission %s at position %d', slot.uid, mission.slug, slot.order_number)
        return slot

    def create_slots(self, mission: Mission, slots: Iterable[dict]) -> List[MissionSlot]:
        """Create several slots in one transaction."""
        with transaction.atomic(using=self.using):
            return [self.create_slot(mission, **slot_data) for slot_data in slots]

    def update_slot(
        self,
        slot: MissionSlot,
        slot_group: MissionSlotGroup = None,
        order_number: int = None,
        **fields,
    ) -> MissionSlot:
        """
        Update slot attributes, optionally moving it to another group of the
        same mission and/or to a new mission-wide position.
        """
        unknown = set(fields) - UPDATABLE_SLOT_FIELDS
        if unknown:
            raise ValidationError(f'Unknown slot fields: {", ".join(sorted(unknown))}', reason='invalid_field')
        if 'required_dlcs' in fields:
            fields['required_dlcs'] = validate_required_dlcs(fields['required_dlcs'])
        if 'difficulty' in fields:
            validate_difficulty(fields['difficulty'])

        mission = slot.slot_group.mission

        with transaction.atomic(using=self.using):
            for name, value in fields.items():
                setattr(slot, name, value)

            reorder = False
            if slot_group is not None and slot_group.uid != slot.slot_group_id:
                self._check_group_in_mission(mission, slot_group)
                slot.slot_group = slot_group
                reorder = True

            if order_number is not None and order_number != slot.order_number:
                old_order = slot.order_number
                others = self._mission_slots(mission).exclude(uid=slot.uid)
                if order_number > old_order:
                    others.filter(
                        order_number__gt=old_order,
                        order_number__lte=order_number,
                    ).update(order_number=F('order_number') - 1)
                else:
                    others.filter(
                        order_number__gte=order_number,
                        order_number__lt=old_order,
                    ).update(order_number=F('order_number') + 1)
                slot.order_number = order_number
                reorder = True

            with conflict_on_integrity_error(
                'Assignee of this slot already holds a slot in the target slot group',
                reason='duplicate_group_assignment',
                using=self.using,
            ):
                slot.save(using=self.using)

            if reorder:
                recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)
                slot.refresh_from_db(using=self.using, fields=['order_number'])

        return slot

    def delete_slot(self, slot: MissionSlot) -> AssignmentChange:
        """Delete a slot (registrations cascade) and renumber the mission."""
        mission = slot.slot_group.mission
        change = AssignmentChange(slot, slot.assignee, slot.external_assignee or None, None, None)

        with transaction.atomic(using=self.using):
            slot.delete(using=self.using)
            recalculate_slot_order_numbers(mission, using=self.using, logger=self.logger)

        self.logger.info('deleted slot from mission %s', mission.slug)
        return change

    def duplicate_mission_slots(self, source: Mission, target: Mission) -> int:
        """
        Copy the slot groups and slots of `source` into `target`.

        Assignments and registrations are not copied. Returns the number of
        slots created.
        """
        created = 0
        with transaction.atomic(using=self.using):
            groups = MissionSlotGroup.objects.using(self.using).filter(mission=source).order_by('order_number')
            for slot_group in groups:
                new_group = MissionSlotGroup.objects.using(self.using).create(
                    mission=target,
                    title=slot_group.title,
                    description=slot_group.description,
                    order_number=slot_group.order_number,
                )
                for slot in slot_group.slots.order_by('order_number'):
                    MissionSlot.objects.using(self.using).create(
                        slot_group=new_group,
                        title=slot.title,
                        order_number=slot.order_number,
                        difficulty=slot.difficulty,
                        description=slot.description,
                        detailed_description=slot.detailed_description,
                        required_dlcs=slot.required_dlcs,
                        restricted_community=slot.restricted_community,
                        blocked=slot.blocked,
                        reserve=slot.reserve,
                        auto_assignable=slot.auto_assignable,
                    )
                    created += 1
            recalculate_slot_order_numbers(target, using=self.using, logger=self.logger)

        return created
