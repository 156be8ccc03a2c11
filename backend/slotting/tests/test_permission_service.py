"""
Tests for PermissionService, grant validation and mission visibility checks.
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from slotting.errors import ValidationError
from slotting.models import Community, Mission, MissionAccess, MissionSlot, MissionSlotGroup, Permission, User
from slotting.permissions import (
    PermissionService, can_view_mission, load_user_grants, validate_community_permission, validate_mission_permission,
)


def create_mission(creator, slug, visibility=Mission.VISIBILITY_PUBLIC, community=None):
    start = timezone.now() + timedelta(days=7)
    return Mission.objects.create(
        slug=slug,
        title=slug.replace('-', ' ').title(),
        briefing_time=start - timedelta(hours=1),
        slotting_time=start - timedelta(minutes=30),
        start_time=start,
        end_time=start + timedelta(hours=3),
        visibility=visibility,
        creator=creator,
        community=community,
    )


class PermissionServiceTests(TestCase):
    """Lazy grant loading and checks for one principal"""

    def setUp(self):
        self.community = Community.objects.create(name='Alpha', tag='A', slug='alpha')
        self.user = User.objects.create(steam_id='76561198000000101', nickname='Ranger', community=self.community)

    def test_loads_stored_and_implicit_creator_grants(self):
        Permission.objects.create(user=self.user, permission='community.alpha.leader')
        create_mission(self.user, 'op-anvil')

        grants = load_user_grants(self.user)

        self.assertIn('community.alpha.leader', grants)
        self.assertIn('mission.op-anvil.creator', grants)

    def test_grant_loader_called_once(self):
        calls = []

        def loader(user):
            calls.append(user)
            return ['admin.user']

        service = PermissionService(self.user, grant_loader=loader)

        self.assertTrue(service.has_permission('admin.user'))
        self.assertFalse(service.has_permission('admin.mission'))
        self.assertEqual(len(calls), 1)

    def test_loader_errors_propagate(self):
        def loader(user):
            raise RuntimeError('grant store unavailable')

        service = PermissionService(self.user, grant_loader=loader)

        with self.assertRaises(RuntimeError):
            service.has_permission('admin.user')

    def test_anonymous_principal_has_nothing(self):
        service = PermissionService(None)

        self.assertEqual(service.grants, [])
        self.assertFalse(service.has_permission('admin.user'))

    def test_revoked_grant_takes_effect_on_next_service(self):
        grant = Permission.objects.create(user=self.user, permission='admin.mission')
        self.assertTrue(PermissionService(self.user).has_permission('admin.mission'))

        grant.delete()

        self.assertFalse(PermissionService(self.user).has_permission('admin.mission'))

    def test_strict_and_any(self):
        service = PermissionService(self.user, grant_loader=lambda user: ['community.alpha.recruitment'])
        required = ['community.alpha.leader', 'community.alpha.recruitment']

        self.assertTrue(service.has_permission(required))
        self.assertFalse(service.has_permission(required, strict=True))

    def test_community_leader_checks(self):
        service = PermissionService(self.user, grant_loader=lambda user: ['community.alpha.recruitment'])

        self.assertFalse(service.is_community_leader('alpha'))
        self.assertTrue(service.is_community_leader('alpha', include_recruitment=True))

    def test_editor_and_owner_of_mission(self):
        creator = User.objects.create(steam_id='76561198000000102', nickname='Creator')
        mission = create_mission(creator, 'op-anvil')

        editor = PermissionService(self.user, grant_loader=lambda user: ['mission.op-anvil.editor'])
        self.assertTrue(editor.is_mission_editor(mission))
        self.assertFalse(editor.is_mission_owner(mission))

        owner = PermissionService(creator, grant_loader=lambda user: [])
        self.assertTrue(owner.is_mission_editor(mission))
        self.assertTrue(owner.is_mission_owner(mission))

        admin = PermissionService(self.user, grant_loader=lambda user: ['admin.mission'])
        self.assertTrue(admin.is_mission_owner(mission))

    def test_community_slot_list_grant_covers_own_community_slots(self):
        creator = User.objects.create(steam_id='76561198000000103', nickname='Creator')
        other = Community.objects.create(name='Bravo', tag='B', slug='bravo')
        mission = create_mission(creator, 'op-anvil')
        group = MissionSlotGroup.objects.create(mission=mission, title='Alpha', order_number=1)
        own_slot = MissionSlot.objects.create(slot_group=group, title='Rifleman', order_number=1, restricted_community=self.community)
        foreign_slot = MissionSlot.objects.create(slot_group=group, title='Medic', order_number=2, restricted_community=other)
        open_slot = MissionSlot.objects.create(slot_group=group, title='Pilot', order_number=3)

        manager = PermissionService(self.user, grant_loader=lambda user: ['mission.op-anvil.slotlist.community'])
        self.assertTrue(manager.can_manage_slot(mission, own_slot))
        self.assertFalse(manager.can_manage_slot(mission, foreign_slot))
        self.assertFalse(manager.can_manage_slot(mission, open_slot))
        self.assertFalse(manager.is_mission_editor(mission))

        editor = PermissionService(self.user, grant_loader=lambda user: ['mission.op-anvil.editor'])
        self.assertTrue(editor.can_manage_slot(mission, foreign_slot))

        homeless = User.objects.create(steam_id='76561198000000104', nickname='Homeless')
        grant_only = PermissionService(homeless, grant_loader=lambda user: ['mission.op-anvil.slotlist.community'])
        self.assertFalse(grant_only.can_manage_slot(mission, own_slot))


class PermissionValidatorTests(TestCase):
    """Only a fixed set of scoped grants may be handed out"""

    def test_community_permissions(self):
        self.assertEqual(validate_community_permission('community.alpha.leader', 'alpha'), 'community.alpha.leader')
        self.assertEqual(
            validate_community_permission('community.alpha.recruitment', 'alpha'),
            'community.alpha.recruitment',
        )

        for invalid in ('community.alpha.founder', 'community.bravo.leader', 'admin.superadmin'):
            with self.assertRaises(ValidationError) as ctx:
                validate_community_permission(invalid, 'alpha')
            self.assertEqual(ctx.exception.reason, 'invalid_permission')

    def test_mission_permissions(self):
        self.assertEqual(validate_mission_permission('mission.op-anvil.editor', 'op-anvil'), 'mission.op-anvil.editor')
        self.assertEqual(
            validate_mission_permission('mission.op-anvil.slotlist.community', 'op-anvil'),
            'mission.op-anvil.slotlist.community',
        )

        with self.assertRaises(ValidationError):
            validate_mission_permission('mission.op-anvil.creator', 'op-anvil')


class CanViewMissionTests(TestCase):
    """Visibility rules evaluated for a single mission"""

    def setUp(self):
        self.community = Community.objects.create(name='Alpha', tag='A', slug='alpha')
        self.creator = User.objects.create(steam_id='76561198000000111', nickname='Creator', community=self.community)
        self.member = User.objects.create(steam_id='76561198000000112', nickname='Member', community=self.community)
        self.outsider = User.objects.create(steam_id='76561198000000113', nickname='Outsider')

    def _service(self, user):
        return PermissionService(user)

    def test_public_visible_to_anonymous(self):
        mission = create_mission(self.creator, 'public-op')
        self.assertTrue(can_view_mission(mission, PermissionService(None)))

    def test_community_visible_to_members_only(self):
        mission = create_mission(self.creator, 'community-op', Mission.VISIBILITY_COMMUNITY, community=self.community)

        self.assertTrue(can_view_mission(mission, self._service(self.member)))
        self.assertFalse(can_view_mission(mission, self._service(self.outsider)))
        self.assertFalse(can_view_mission(mission, PermissionService(None)))

    def test_private_visible_to_assignees(self):
        mission = create_mission(self.creator, 'private-op', Mission.VISIBILITY_PRIVATE)
        group = MissionSlotGroup.objects.create(mission=mission, title='Alpha', order_number=1)
        slot = MissionSlot.objects.create(slot_group=group, title='Rifleman', order_number=1)

        self.assertFalse(can_view_mission(mission, self._service(self.outsider)))

        slot.assignee = self.outsider
        slot.save()

        self.assertTrue(can_view_mission(mission, self._service(self.outsider)))

    def test_hidden_visible_to_creator_and_admins(self):
        mission = create_mission(self.creator, 'hidden-op', Mission.VISIBILITY_HIDDEN, community=self.community)

        self.assertTrue(can_view_mission(mission, self._service(self.creator)))
        self.assertFalse(can_view_mission(mission, self._service(self.member)))

        Permission.objects.create(user=self.outsider, permission='admin.mission')
        self.assertTrue(can_view_mission(mission, self._service(self.outsider)))

    def test_private_visible_through_mission_access(self):
        mission = create_mission(self.creator, 'private-op', Mission.VISIBILITY_PRIVATE)
        self.assertFalse(can_view_mission(mission, self._service(self.outsider)))
        self.assertFalse(can_view_mission(mission, self._service(self.member)))

        MissionAccess.objects.create(mission=mission, user=self.outsider)
        self.assertTrue(can_view_mission(mission, self._service(self.outsider)))
        self.assertFalse(can_view_mission(mission, self._service(self.member)))

        MissionAccess.objects.create(mission=mission, community=self.community)
        self.assertTrue(can_view_mission(mission, self._service(self.member)))

    def test_access_does_not_reveal_hidden_missions(self):
        mission = create_mission(self.creator, 'hidden-op', Mission.VISIBILITY_HIDDEN)
        MissionAccess.objects.create(mission=mission, user=self.outsider)

        self.assertFalse(can_view_mission(mission, self._service(self.outsider)))
