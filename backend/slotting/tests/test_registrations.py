"""
Tests for the slot registration workflow.

Covers registration guards, auto-assignment, confirmation, withdrawal and the
editor-driven assignment that cleans up registrations.
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from slotting.errors import ConflictError, ForbiddenError
from slotting.models import Community, Mission, MissionSlot, MissionSlotRegistration, User
from slotting.registrations import RegistrationService
from slotting.slots import SlotService


class RegistrationTestCase(TestCase):

    def setUp(self):
        self.service = RegistrationService()
        self.slots = SlotService()
        self.community = Community.objects.create(name='Alpha', tag='A', slug='alpha')
        self.creator = User.objects.create(steam_id='76561198000000401', nickname='Creator', community=self.community)
        self.alice = User.objects.create(steam_id='76561198000000402', nickname='Alice', community=self.community)
        self.bob = User.objects.create(steam_id='76561198000000403', nickname='Bob')
        start = timezone.now() + timedelta(days=3)
        self.mission = Mission.objects.create(
            slug='op-registration',
            title='Op Registration',
            briefing_time=start - timedelta(hours=1),
            slotting_time=start - timedelta(minutes=30),
            start_time=start,
            end_time=start + timedelta(hours=3),
            visibility=Mission.VISIBILITY_PUBLIC,
            creator=self.creator,
            community=self.community,
        )
        self.group = self.slots.create_slot_group(self.mission, 'Infantry')
        self.slot = self.slots.create_slot(self.mission, self.group, 'Rifleman')


class RegisterTests(RegistrationTestCase):

    def test_register_creates_unconfirmed_registration(self):
        result = self.service.register(self.slot, self.alice, comment='Happy to play anything')

        self.assertFalse(result.auto_assigned)
        self.assertFalse(result.registration.confirmed)
        self.assertEqual(result.registration.comment, 'Happy to play anything')
        self.slot.refresh_from_db()
        self.assertFalse(self.slot.is_assigned)

    def test_duplicate_registration(self):
        self.service.register(self.slot, self.alice)

        with self.assertRaises(ConflictError) as ctx:
            self.service.register(self.slot, self.alice)
        self.assertEqual(ctx.exception.reason, 'duplicate_registration')
        self.assertEqual(MissionSlotRegistration.objects.filter(slot=self.slot, user=self.alice).count(), 1)

    def test_blocked_slot(self):
        self.slot.blocked = True
        self.slot.save()

        with self.assertRaises(ForbiddenError) as ctx:
            self.service.register(self.slot, self.alice)
        self.assertEqual(ctx.exception.reason, 'slot_blocked')

    def test_restricted_slot(self):
        self.slot.restricted_community = self.community
        self.slot.save()

        with self.assertRaises(ForbiddenError) as ctx:
            self.service.register(self.slot, self.bob)
        self.assertEqual(ctx.exception.reason, 'slot_restricted')

        result = self.service.register(self.slot, self.alice)
        self.assertIsNotNone(result.registration.uid)

    def test_assigned_slot_rejects_registrations(self):
        self.slots.assign(self.slot, external_assignee='Guest')

        with self.assertRaises(ConflictError) as ctx:
            self.service.register(self.slot, self.alice)
        self.assertEqual(ctx.exception.reason, 'slot_already_assigned')


class AutoAssignTests(RegistrationTestCase):

    def setUp(self):
        super().setUp()
        self.slot.auto_assignable = True
        self.slot.save()

    def test_first_registrant_is_assigned(self):
        result = self.service.register(self.slot, self.alice)

        self.assertTrue(result.auto_assigned)
        self.assertTrue(result.registration.confirmed)
        self.assertEqual(result.change.attached_user, self.alice)
        self.slot.refresh_from_db()
        self.assertEqual(self.slot.assignee, self.alice)

    def test_second_registrant_is_rejected(self):
        self.service.register(self.slot, self.alice)

        with self.assertRaises(ConflictError) as ctx:
            self.service.register(self.slot, self.bob)
        self.assertEqual(ctx.exception.reason, 'slot_already_assigned')

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.assignee, self.alice)
        self.assertFalse(MissionSlotRegistration.objects.filter(slot=self.slot, user=self.bob).exists())

    def test_failed_assignment_leaves_no_registration(self):
        other = self.slots.create_slot(self.mission, self.group, 'Medic', insert_after=1)
        self.slots.assign(other, user=self.alice)

        with self.assertRaises(ConflictError) as ctx:
            self.service.register(self.slot, self.alice)
        self.assertEqual(ctx.exception.reason, 'duplicate_group_assignment')

        self.assertFalse(MissionSlotRegistration.objects.filter(slot=self.slot).exists())
        self.slot.refresh_from_db()
        self.assertFalse(self.slot.is_assigned)


class ConfirmationTests(RegistrationTestCase):

    def test_confirm_assigns_registrant(self):
        registration = self.service.register(self.slot, self.alice).registration
        other = self.service.register(self.slot, self.bob).registration

        change = self.service.confirm(registration)

        self.slot.refresh_from_db()
        registration.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(self.slot.assignee, self.alice)
        self.assertTrue(registration.confirmed)
        self.assertFalse(other.confirmed)
        self.assertEqual(change.attached_user, self.alice)

    def test_confirm_rejected_when_slot_held_by_someone_else(self):
        first = self.service.register(self.slot, self.alice).registration
        second = self.service.register(self.slot, self.bob).registration
        self.service.confirm(first)

        with self.assertRaises(ConflictError) as ctx:
            self.service.confirm(second)
        self.assertEqual(ctx.exception.reason, 'slot_already_assigned')

    def test_revoke_unassigns(self):
        registration = self.service.register(self.slot, self.alice).registration
        self.service.confirm(registration)

        change = self.service.set_confirmed(registration, False)

        self.slot.refresh_from_db()
        registration.refresh_from_db()
        self.assertFalse(self.slot.is_assigned)
        self.assertFalse(registration.confirmed)
        self.assertEqual(change.detached_user, self.alice)

    def test_withdraw_keeps_assignment(self):
        registration = self.service.register(self.slot, self.alice).registration
        self.service.confirm(registration)

        self.service.withdraw(registration)

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.assignee, self.alice)
        self.assertFalse(MissionSlotRegistration.objects.filter(slot=self.slot).exists())

    def test_withdraw_and_unassign(self):
        registration = self.service.register(self.slot, self.alice).registration
        self.service.confirm(registration)

        change = self.service.withdraw_and_unassign(registration)

        self.slot.refresh_from_db()
        self.assertFalse(self.slot.is_assigned)
        self.assertEqual(change.detached_user, self.alice)
        self.assertFalse(MissionSlotRegistration.objects.filter(slot=self.slot).exists())

    def test_withdraw_unconfirmed_keeps_other_assignment(self):
        self.slots.assign(self.slot, user=self.bob)
        registration = MissionSlotRegistration.objects.create(slot=self.slot, user=self.alice)

        self.service.withdraw_and_unassign(registration)

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.assignee, self.bob)


class EditorAssignmentTests(RegistrationTestCase):

    def test_assign_slot_removes_assignee_registration(self):
        MissionSlotRegistration.objects.create(slot=self.slot, user=self.alice)
        MissionSlotRegistration.objects.create(slot=self.slot, user=self.bob)

        self.service.assign_slot(self.slot, user=self.alice)

        remaining = set(MissionSlotRegistration.objects.filter(slot=self.slot).values_list('user_id', flat=True))
        self.assertEqual(remaining, {self.bob.uid})

    def test_forced_assignment_removes_detached_registration(self):
        registration = self.service.register(self.slot, self.alice).registration
        self.service.confirm(registration)

        change = self.service.assign_slot(self.slot, user=self.bob, force=True)

        self.assertEqual(change.detached_user, self.alice)
        self.assertFalse(MissionSlotRegistration.objects.filter(slot=self.slot, user=self.alice).exists())

    def test_unassign_slot_keeps_registrations(self):
        registration = self.service.register(self.slot, self.alice).registration
        self.service.confirm(registration)

        self.service.unassign_slot(self.slot)

        self.slot.refresh_from_db()
        self.assertFalse(self.slot.is_assigned)
        self.assertTrue(MissionSlotRegistration.objects.filter(slot=self.slot, user=self.alice).exists())


class OpAnvilScenarioTests(TestCase):
    """
    Community `alpha` runs `op-anvil` with an Infantry group of two slots and
    an Armor group of one. A registrant is confirmed for the Armor slot and an
    editor then tries to hand the slot to someone else.
    """

    def setUp(self):
        self.slots = SlotService()
        self.registrations = RegistrationService(slot_service=self.slots)
        self.community = Community.objects.create(name='Alpha', tag='A', slug='alpha')
        self.creator = User.objects.create(steam_id='76561198000000451', nickname='Creator', community=self.community)
        self.user = User.objects.create(steam_id='76561198000000452', nickname='Tanker', community=self.community)
        self.second_user = User.objects.create(steam_id='76561198000000453', nickname='Gunner', community=self.community)
        start = timezone.now() + timedelta(days=7)
        self.mission = Mission.objects.create(
            slug='op-anvil',
            title='Operation Anvil',
            briefing_time=start - timedelta(hours=1),
            slotting_time=start - timedelta(minutes=30),
            start_time=start,
            end_time=start + timedelta(hours=4),
            visibility=Mission.VISIBILITY_COMMUNITY,
            creator=self.creator,
            community=self.community,
        )
        infantry = self.slots.create_slot_group(self.mission, 'Infantry')
        armor = self.slots.create_slot_group(self.mission, 'Armor', insert_after=1)
        self.slots.create_slot(self.mission, infantry, 'Squad Leader', insert_after=0)
        self.slots.create_slot(self.mission, infantry, 'Rifleman', insert_after=1)
        self.armor_slot = self.slots.create_slot(self.mission, armor, 'Commander', insert_after=2)

    def test_scenario(self):
        self.assertEqual(self.slots.total_slot_count(self.mission), 3)
        self.assertEqual(self.armor_slot.order_number, 3)

        result = self.registrations.register(self.armor_slot, self.user)
        self.assertFalse(result.auto_assigned)
        self.assertFalse(result.registration.confirmed)
        self.armor_slot.refresh_from_db()
        self.assertFalse(self.armor_slot.is_assigned)

        self.registrations.confirm(result.registration)
        self.armor_slot.refresh_from_db()
        result.registration.refresh_from_db()
        self.assertEqual(self.armor_slot.assignee, self.user)
        self.assertTrue(result.registration.confirmed)

        # a direct overwrite is rejected
        with self.assertRaises(ConflictError) as ctx:
            self.registrations.assign_slot(self.armor_slot, user=self.second_user)
        self.assertEqual(ctx.exception.reason, 'slot_already_assigned')
        self.armor_slot.refresh_from_db()
        self.assertEqual(self.armor_slot.assignee, self.user)

        # forcing detaches the previous assignee first
        change = self.registrations.assign_slot(self.armor_slot, user=self.second_user, force=True)
        self.armor_slot.refresh_from_db()
        self.assertEqual(self.armor_slot.assignee, self.second_user)
        self.assertEqual(change.detached_user, self.user)
        self.assertFalse(
            MissionSlot.objects.filter(slot_group__mission=self.mission, assignee=self.user).exists()
        )
