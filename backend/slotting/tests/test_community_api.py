"""
API tests for communities: founding, applications, membership and permissions.
"""

import json
import uuid

from django.test import Client, TestCase

from slotting.auth import decode_jwt, generate_jwt
from slotting.communities import CommunityService
from slotting.models import Community, CommunityApplication, Notification, Permission, User


class CommunityAPITests(TestCase):

    def setUp(self):
        self.client = Client()
        self.founder = User.objects.create(steam_id='76561198000000701', nickname='Founder')
        self.applicant = User.objects.create(steam_id='76561198000000702', nickname='Applicant')
        self.outsider = User.objects.create(steam_id='76561198000000703', nickname='Outsider')
        self.community = CommunityService().create_community(self.founder, 'Alpha Company', 'A', slug='alpha')

    def _headers(self, user):
        return {'HTTP_AUTHORIZATION': f'Bearer {generate_jwt(user)}'}

    def _post(self, path, user, data=None):
        return self.client.post(path, data=json.dumps(data or {}), content_type='application/json', **self._headers(user))

    def _patch(self, path, user, data):
        return self.client.patch(path, data=json.dumps(data), content_type='application/json', **self._headers(user))

    def _join(self, user):
        application = CommunityService().apply(self.community, user)
        CommunityService().process_application(application, CommunityApplication.STATUS_ACCEPTED)
        user.refresh_from_db()

    def test_create_community(self):
        response = self._post('/api/v1/communities/', self.applicant, {
            'name': 'Bravo Battery',
            'tag': 'B',
            'gameServers': [{'hostname': 'arma.example.com', 'port': 2302}],
        })
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['community']['slug'], 'bravo-battery')
        self.assertEqual(data['community']['leaders'][0]['uid'], str(self.applicant.uid))
        self.assertEqual(decode_jwt(data['token'])['user']['community']['slug'], 'bravo-battery')
        self.assertTrue(Permission.objects.filter(user=self.applicant, permission='community.bravo-battery.founder').exists())

    def test_member_cannot_found_second_community(self):
        founder = User.objects.get(uid=self.founder.uid)
        response = self._post('/api/v1/communities/', founder, {'name': 'Second', 'tag': 'S'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['reason'], 'already_member')

    def test_application_flow(self):
        response = self._post('/api/v1/communities/alpha/applications', self.applicant)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'submitted')
        self.assertTrue(Notification.objects.filter(
            user=self.founder,
            notification_type=Notification.TYPE_COMMUNITY_APPLICATION_NEW,
        ).exists())

        response = self._post('/api/v1/communities/alpha/applications', self.applicant)
        self.assertEqual(response.status_code, 409)

        response = self.client.get('/api/v1/communities/alpha/applications', **self._headers(self.outsider))
        self.assertEqual(response.status_code, 403)

        response = self.client.get('/api/v1/communities/alpha/applications', **self._headers(self.founder))
        self.assertEqual(response.status_code, 200)
        application_uid = response.json()['applications'][0]['uid']

        response = self._patch(f'/api/v1/communities/alpha/applications/{application_uid}', self.founder, {'status': 'accepted'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['application']['status'], 'accepted')
        self.applicant.refresh_from_db()
        self.assertEqual(self.applicant.community, self.community)

    def test_recruitment_may_process_applications(self):
        self._join(self.applicant)
        Permission.objects.create(user=self.applicant, permission='community.alpha.recruitment')
        application = CommunityApplication.objects.create(user=self.outsider, community=self.community)

        response = self._patch(f'/api/v1/communities/alpha/applications/{application.uid}', self.applicant, {'status': 'denied'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Notification.objects.filter(
            user=self.outsider,
            notification_type=Notification.TYPE_COMMUNITY_APPLICATION_DENIED,
        ).exists())

    def test_leave_community(self):
        self._join(self.applicant)

        response = self.client.delete(f'/api/v1/communities/alpha/members/{self.applicant.uid}', **self._headers(self.applicant))
        self.assertEqual(response.status_code, 200)
        self.applicant.refresh_from_db()
        self.assertIsNone(self.applicant.community)

    def test_founder_cannot_be_removed(self):
        response = self.client.delete(f'/api/v1/communities/alpha/members/{self.founder.uid}', **self._headers(self.founder))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['reason'], 'founder_removal')

    def test_member_cannot_remove_others(self):
        self._join(self.applicant)
        self._join(self.outsider)

        response = self.client.delete(f'/api/v1/communities/alpha/members/{self.outsider.uid}', **self._headers(self.applicant))
        self.assertEqual(response.status_code, 403)

    def test_permissions(self):
        self._join(self.applicant)

        response = self._post('/api/v1/communities/alpha/permissions', self.founder, {
            'userUid': str(self.applicant.uid),
            'permission': 'community.alpha.leader',
        })
        self.assertEqual(response.status_code, 200)
        permission_uid = response.json()['permission']['uid']

        response = self.client.get('/api/v1/communities/alpha/permissions', **self._headers(self.applicant))
        self.assertEqual(response.json()['total'], 2)

        # the new leader may update the community
        response = self._patch('/api/v1/communities/alpha', self.applicant, {'website': 'https://alpha.example.com'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['community']['website'], 'https://alpha.example.com')

        response = self._post('/api/v1/communities/alpha/permissions', self.founder, {
            'userUid': str(self.applicant.uid),
            'permission': 'community.alpha.founder',
        })
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(f'/api/v1/communities/alpha/permissions/{permission_uid}', **self._headers(self.founder))
        self.assertEqual(response.status_code, 200)

        response = self._patch('/api/v1/communities/alpha', self.applicant, {'website': 'https://example.com'})
        self.assertEqual(response.status_code, 403)

    def test_delete_community(self):
        self._join(self.applicant)

        response = self.client.delete('/api/v1/communities/alpha', **self._headers(self.applicant))
        self.assertEqual(response.status_code, 403)

        response = self.client.delete('/api/v1/communities/alpha', **self._headers(self.founder))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Community.objects.filter(slug='alpha').exists())
        self.assertFalse(Permission.objects.filter(permission__startswith='community.alpha.').exists())
        self.applicant.refresh_from_db()
        self.assertIsNone(self.applicant.community)

    def test_malformed_uids_are_rejected(self):
        paths = [
            ('patch', '/api/v1/communities/alpha/applications/not-a-uuid'),
            ('delete', '/api/v1/communities/alpha/members/not-a-uuid'),
            ('delete', '/api/v1/communities/alpha/permissions/not-a-uuid'),
        ]
        for method, path in paths:
            if method == 'patch':
                response = self._patch(path, self.founder, {'status': 'accepted'})
            else:
                response = self.client.delete(path, **self._headers(self.founder))
            self.assertEqual(response.status_code, 422, path)

    def test_unknown_uids_are_not_found(self):
        unknown = uuid.uuid4()

        response = self._patch(f'/api/v1/communities/alpha/applications/{unknown}', self.founder, {'status': 'accepted'})
        self.assertEqual(response.status_code, 404)

        response = self.client.delete(f'/api/v1/communities/alpha/members/{unknown}', **self._headers(self.founder))
        self.assertEqual(response.status_code, 404)

        response = self.client.delete(f'/api/v1/communities/alpha/permissions/{unknown}', **self._headers(self.founder))
        self.assertEqual(response.status_code, 404)
