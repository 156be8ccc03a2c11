"""
Slot registration workflow.

A (slot, user) pair moves NONE -> REGISTERED -> CONFIRMED (assigned) or is
withdrawn. Auto-assignable slots skip the manual confirmation step. Every
operation that touches more than one row runs in a single transaction.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DEFAULT_DB_ALIAS, transaction

from slotting.errors import ConflictError, ForbiddenError, conflict_on_integrity_error
from slotting.models import MissionSlot, MissionSlotRegistration, User
from slotting.slots import AssignmentChange, SlotService


@dataclass
class RegistrationResult:
    registration: MissionSlotRegistration
    auto_assigned: bool = False
    change: Optional[AssignmentChange] = None


class RegistrationService:
    def __init__(self, slot_service: SlotService = None, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None):
        self.using = using
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.slots = slot_service or SlotService(using=using, logger=self.logger)

    def _lock_slot(self, slot: MissionSlot) -> MissionSlot:
        return MissionSlot.objects.using(self.using).select_for_update().select_related('slot_group').get(uid=slot.uid)

    def register(self, slot: MissionSlot, user: User, comment: str = None) -> RegistrationResult:
        """
        Register a user for a slot.

        Raises:
            ForbiddenError: Slot is blocked or restricted to another community
            ConflictError: Slot is already assigned or the user is already registered
        """
        if slot.blocked:
            raise ForbiddenError('Slot is blocked and does not accept registrations', reason='slot_blocked')

        if slot.restricted_community_id is not None and slot.restricted_community_id != user.community_id:
            raise ForbiddenError('This slot is restricted to a specific community', reason='slot_restricted')

        with transaction.atomic(using=self.using):
            slot = self._lock_slot(slot)

            if slot.is_assigned:
                raise ConflictError('Slot is already assigned', reason='slot_already_assigned')

            with conflict_on_integrity_error(
                'User is already registered for this slot',
                reason='duplicate_registration',
                using=self.using,
            ):
                registration = MissionSlotRegistration.objects.using(self.using).create(
                    slot=slot,
                    user=user,
                    comment=comment or None,
                )

            if not slot.auto_assignable:
                self.logger.info('user %s registered for slot %s', user.uid, slot.uid)
                return RegistrationResult(registration)

            change = self.slots.assign(slot, user=user)
            registration.confirmed = True
            registration.save(using=self.using, update_fields=['confirmed', 'updated_at'])

        self.logger.info('user %s registered for auto-assignable slot %s and was assigned', user.uid, slot.uid)
        return RegistrationResult(registration, auto_assigned=True, change=change)

    def confirm(self, registration: MissionSlotRegistration) -> AssignmentChange:
        """
        Confirm a registration and assign the slot to the registrant.

        Other registrations for the slot are left as they are.
        """
        with transaction.atomic(using=self.using):
            slot = self._lock_slot(registration.slot)

            if slot.is_assigned and slot.assignee_id != registration.user_id:
                raise ConflictError('Slot is already assigned to someone else', reason='slot_already_assigned')

            change = self.slots.assign(slot, user=registration.user)
            if not registration.confirmed:
                registration.confirmed = True
                registration.save(using=self.using, update_fields=['confirmed', 'updated_at'])

        self.logger.info('confirmed registration %s for slot %s', registration.uid, slot.uid)
        return change

    def revoke(self, registration: MissionSlotRegistration) -> AssignmentChange:
        """Mark a registration unconfirmed, unassigning the slot if the registrant holds it."""
        with transaction.atomic(using=self.using):
            slot = self._lock_slot(registration.slot)

            if slot.assignee_id == registration.user_id:
                change = self.slots.unassign(slot)
            else:
                change = AssignmentChange(slot, slot.assignee, slot.external_assignee or None, slot.assignee, slot.external_assignee or None)

            if registration.confirmed:
                registration.confirmed = False
                registration.save(using=self.using, update_fields=['confirmed', 'updated_at'])

        self.logger.info('revoked confirmation of registration %s', registration.uid)
        return change

    def set_confirmed(self, registration: MissionSlotRegistration, confirmed: bool) -> AssignmentChange:
        if confirmed:
            return self.confirm(registration)
        return self.revoke(registration)

    def withdraw(self, registration: MissionSlotRegistration) -> None:
        """
        Delete a registration.

        An assignment that resulted from this registration is kept; use
        `withdraw_and_unassign` to remove both.
        """
        uid = registration.uid
        registration.delete(using=self.using)
        self.logger.info('deleted registration %s', uid)

    def withdraw_and_unassign(self, registration: MissionSlotRegistration) -> AssignmentChange:
        """Delete a registration and release the slot if its registrant holds it."""
        with transaction.atomic(using=self.using):
            slot = self._lock_slot(registration.slot)

            if registration.confirmed and slot.assignee_id == registration.user_id:
                change = self.slots.unassign(slot)
            else:
                change = AssignmentChange(slot, slot.assignee, slot.external_assignee or None, slot.assignee, slot.external_assignee or None)

            self.withdraw(registration)

        return change

    def assign_slot(
        self,
        slot: MissionSlot,
        user: Optional[User] = None,
        external_assignee: Optional[str] = None,
        force: bool = False,
    ) -> AssignmentChange:
        """
        Assign a slot on behalf of an editor.

        The registrations that lead to the assignment (the new assignee's) and
        the registration of a detached previous assignee are removed in the same
        transaction.
        """
        with transaction.atomic(using=self.using):
            slot = self._lock_slot(slot)
            change = self.slots.assign(slot, user=user, external_assignee=external_assignee, force=force)

            registrations = MissionSlotRegistration.objects.using(self.using).filter(slot=slot)
            if change.attached_user is not None:
                registrations.filter(user=change.attached_user).delete()
            if change.detached_user is not None:
                registrations.filter(user=change.detached_user).delete()

        return change

    def unassign_slot(self, slot: MissionSlot) -> AssignmentChange:
        with transaction.atomic(using=self.using):
            slot = self._lock_slot(slot)
            return self.slots.unassign(slot)
