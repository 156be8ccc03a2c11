"""
API Tests for Mission Visibility and Permissions

Tests that verify mission visibility controls work correctly:
- Public missions: visible to everyone
- Community missions: visible to community members
- Private missions: visible to assigned users and editors
- Hidden missions: only visible to creator and admins
"""

import json
from datetime import datetime, timedelta, timezone

from django.test import Client, TestCase

from slotting.auth import generate_jwt
from slotting.models import Community, Mission, MissionAccess, MissionSlot, MissionSlotGroup, Permission, User


class MissionVisibilityTests(TestCase):
    """Test mission visibility controls"""

    def setUp(self):
        self.client = Client()

        self.community_a = Community.objects.create(name='Community A', tag='CA', slug='community-a')
        self.community_b = Community.objects.create(name='Community B', tag='CB', slug='community-b')

        self.creator = User.objects.create(steam_id='76561198000000001', nickname='Creator', community=self.community_a)
        self.community_member = User.objects.create(
            steam_id='76561198000000002', nickname='CommunityMember', community=self.community_a,
        )
        self.other_community_member = User.objects.create(
            steam_id='76561198000000003', nickname='OtherCommunityMember', community=self.community_b,
        )
        self.no_community_user = User.objects.create(steam_id='76561198000000004', nickname='NoCommunityUser')
        self.admin_user = User.objects.create(steam_id='76561198000000005', nickname='AdminUser')

        Permission.objects.create(user=self.admin_user, permission='admin.mission')

        self.public_mission = self._mission('public-mission', Mission.VISIBILITY_PUBLIC)
        self.community_mission = self._mission('community-mission', Mission.VISIBILITY_COMMUNITY)
        self.private_mission = self._mission('private-mission', Mission.VISIBILITY_PRIVATE)
        self.hidden_mission = self._mission('hidden-mission', Mission.VISIBILITY_HIDDEN)

        # Slot on the private mission for testing slot assignment visibility
        private_slot_group = MissionSlotGroup.objects.create(mission=self.private_mission, title='Alpha', order_number=1)
        self.private_slot = MissionSlot.objects.create(slot_group=private_slot_group, title='Squad Leader', order_number=1)

    def _mission(self, slug, visibility):
        start = datetime.now(timezone.utc) + timedelta(days=7)
        return Mission.objects.create(
            slug=slug,
            title=slug.replace('-', ' ').title(),
            description=f'A {visibility} mission',
            briefing_time=start - timedelta(hours=1),
            slotting_time=start - timedelta(minutes=30),
            start_time=start,
            end_time=start + timedelta(hours=3),
            visibility=visibility,
            creator=self.creator,
            community=self.community_a,
        )

    def _auth_headers(self, user):
        """Get authorization headers for a user"""
        return {'HTTP_AUTHORIZATION': f'Bearer {generate_jwt(user)}'}

    def _visible_slugs(self, user=None):
        headers = self._auth_headers(user) if user is not None else {}
        response = self.client.get('/api/v1/missions/', **headers)
        self.assertEqual(response.status_code, 200)
        return [m['slug'] for m in response.json()['missions']]

    def _patch(self, mission, user, data):
        return self.client.patch(
            f'/api/v1/missions/{mission.slug}',
            data=json.dumps(data),
            content_type='application/json',
            **self._auth_headers(user)
        )

    def test_public_mission_visible_to_everyone(self):
        """Public missions should be visible to all users, even unauthenticated"""
        for user in (None, self.community_member, self.other_community_member):
            self.assertIn('public-mission', self._visible_slugs(user))

        response = self.client.get(f'/api/v1/missions/{self.public_mission.slug}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['mission']['slug'], 'public-mission')

    def test_community_mission_visible_to_community_members_only(self):
        """Community missions should only be visible to community members"""
        self.assertIn('community-mission', self._visible_slugs(self.community_member))

        for user in (self.other_community_member, self.no_community_user, None):
            self.assertNotIn('community-mission', self._visible_slugs(user))

    def test_private_mission_visible_to_assigned_users(self):
        """Private missions should be visible to users with slots and editors"""
        self.private_slot.assignee = self.other_community_member
        self.private_slot.save()

        self.assertIn('private-mission', self._visible_slugs(self.other_community_member))
        self.assertNotIn('private-mission', self._visible_slugs(self.no_community_user))
        self.assertIn('private-mission', self._visible_slugs(self.creator))

    def test_private_mission_visible_to_editors(self):
        """Private missions should be visible to users with editor permissions"""
        Permission.objects.create(user=self.no_community_user, permission=f'mission.{self.private_mission.slug}.editor')

        self.assertIn('private-mission', self._visible_slugs(self.no_community_user))

    def test_private_mission_visible_through_accesses(self):
        """Private missions should be visible to users and communities granted an access"""
        MissionAccess.objects.create(mission=self.private_mission, user=self.no_community_user)
        MissionAccess.objects.create(mission=self.private_mission, community=self.community_b)
        MissionAccess.objects.create(mission=self.hidden_mission, user=self.no_community_user)

        self.assertIn('private-mission', self._visible_slugs(self.no_community_user))
        self.assertIn('private-mission', self._visible_slugs(self.other_community_member))
        self.assertNotIn('private-mission', self._visible_slugs(self.community_member))
        self.assertNotIn('hidden-mission', self._visible_slugs(self.no_community_user))

    def test_hidden_mission_only_visible_to_creator_and_admin(self):
        """Hidden missions should only be visible to creator and admins"""
        self.assertIn('hidden-mission', self._visible_slugs(self.creator))
        self.assertIn('hidden-mission', self._visible_slugs(self.admin_user))

        for user in (self.community_member, self.no_community_user, None):
            self.assertNotIn('hidden-mission', self._visible_slugs(user))

    def test_list_carries_slot_counts_and_user_flags(self):
        self.private_slot.assignee = self.creator
        self.private_slot.save()

        response = self.client.get('/api/v1/missions/', **self._auth_headers(self.creator))
        missions = {m['slug']: m for m in response.json()['missions']}

        self.assertEqual(missions['private-mission']['slotCounts']['total'], 1)
        self.assertTrue(missions['private-mission']['isAssignedToAnySlot'])
        self.assertFalse(missions['public-mission']['isRegisteredForAnySlot'])

        anonymous = self.client.get('/api/v1/missions/').json()['missions'][0]
        self.assertNotIn('isAssignedToAnySlot', anonymous)

    def test_get_specific_mission_respects_visibility(self):
        """Getting a specific mission should respect visibility rules"""
        cases = [
            (self.community_mission, self.community_member, 200),
            (self.community_mission, self.other_community_member, 403),
            (self.hidden_mission, self.creator, 200),
            (self.hidden_mission, self.community_member, 403),
            (self.hidden_mission, self.admin_user, 200),
        ]
        for mission, user, expected in cases:
            response = self.client.get(f'/api/v1/missions/{mission.slug}', **self._auth_headers(user))
            self.assertEqual(response.status_code, expected, f'{user.nickname} -> {mission.slug}')

        response = self.client.get(f'/api/v1/missions/{self.private_mission.slug}')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['reason'], 'mission_not_visible')

    def test_unknown_mission(self):
        response = self.client.get('/api/v1/missions/does-not-exist')
        self.assertEqual(response.status_code, 404)

    def test_mission_slots_respect_visibility(self):
        """Getting mission slots should respect visibility rules"""
        response = self.client.get(f'/api/v1/missions/{self.public_mission.slug}/slots')
        self.assertEqual(response.status_code, 200)

        response = self.client.get(f'/api/v1/missions/{self.hidden_mission.slug}/slots')
        self.assertEqual(response.status_code, 403)

        for user in (self.creator, self.admin_user):
            response = self.client.get(f'/api/v1/missions/{self.hidden_mission.slug}/slots', **self._auth_headers(user))
            self.assertEqual(response.status_code, 200)

    def test_only_creator_and_admin_can_change_visibility(self):
        """Only mission creator and admins can update mission visibility"""
        response = self._patch(self.public_mission, self.creator, {'visibility': 'private'})
        self.assertEqual(response.status_code, 200)
        self.public_mission.refresh_from_db()
        self.assertEqual(self.public_mission.visibility, 'private')

        response = self._patch(self.public_mission, self.admin_user, {'visibility': 'hidden'})
        self.assertEqual(response.status_code, 200)
        self.public_mission.refresh_from_db()
        self.assertEqual(self.public_mission.visibility, 'hidden')

        Mission.objects.filter(uid=self.public_mission.uid).update(visibility='public')

        response = self._patch(self.public_mission, self.community_member, {'visibility': 'hidden'})
        self.assertEqual(response.status_code, 403)
        self.public_mission.refresh_from_db()
        self.assertEqual(self.public_mission.visibility, 'public')

    def test_invalid_visibility(self):
        response = self._patch(self.public_mission, self.creator, {'visibility': 'secret'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'invalid_visibility')

    def test_editor_can_see_but_not_change_visibility(self):
        """Editors can see and edit a mission but only the creator or an admin may change its visibility"""
        Permission.objects.create(user=self.community_member, permission=f'mission.{self.hidden_mission.slug}.editor')

        response = self.client.get(f'/api/v1/missions/{self.hidden_mission.slug}', **self._auth_headers(self.community_member))
        self.assertEqual(response.status_code, 200)

        response = self._patch(self.hidden_mission, self.community_member, {'title': 'Renamed'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['mission']['title'], 'Renamed')

        response = self._patch(self.hidden_mission, self.community_member, {'visibility': 'public'})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['reason'], 'not_mission_owner')

    def test_only_owner_can_delete(self):
        Permission.objects.create(user=self.community_member, permission=f'mission.{self.public_mission.slug}.editor')

        response = self.client.delete(f'/api/v1/missions/{self.public_mission.slug}', **self._auth_headers(self.community_member))
        self.assertEqual(response.status_code, 403)

        response = self.client.delete(f'/api/v1/missions/{self.public_mission.slug}', **self._auth_headers(self.creator))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Mission.objects.filter(slug='public-mission').exists())
        self.assertFalse(Permission.objects.filter(permission__startswith='mission.public-mission.').exists())
