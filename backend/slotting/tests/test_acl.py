"""
Tests for permission tree parsing and lookup.
"""

from django.test import SimpleTestCase

from slotting.acl import PermissionNode, find_permission, parse_permissions
from slotting.permissions import has_permission


class ParsePermissionsTests(SimpleTestCase):
    """Building the tree from grant strings"""

    def test_shared_prefixes_merge(self):
        tree = parse_permissions(['community.alpha.leader', 'community.alpha.recruitment', 'admin.user'])

        self.assertEqual(set(tree.children), {'community', 'admin'})
        self.assertEqual(set(tree.children['community'].children['alpha'].children), {'leader', 'recruitment'})

    def test_segments_are_lowercased(self):
        tree = parse_permissions(['Mission.OP-Anvil.Editor'])

        self.assertIn('mission', tree.children)
        self.assertIn('op-anvil', tree.children['mission'].children)

    def test_terminal_nodes_are_marked(self):
        tree = parse_permissions(['admin.user'])

        self.assertFalse(tree.children['admin'].granted_here)
        self.assertTrue(tree.children['admin'].children['user'].granted_here)

    def test_empty_grant_list_gives_empty_tree(self):
        tree = parse_permissions([])

        self.assertEqual(tree.children, {})
        self.assertFalse(tree)


class FindPermissionTests(SimpleTestCase):
    """Looking up a dotted query in a parsed tree"""

    def test_exact_match(self):
        tree = parse_permissions(['community.alpha.leader'])
        self.assertTrue(find_permission(tree, 'community.alpha.leader'))

    def test_case_differences_are_ignored(self):
        tree = parse_permissions(['community.alpha.leader'])
        self.assertTrue(find_permission(tree, 'COMMUNITY.Alpha.LEADER'))

    def test_unrelated_grant_does_not_match(self):
        tree = parse_permissions(['community.alpha.leader'])
        self.assertFalse(find_permission(tree, 'community.bravo.leader'))
        self.assertFalse(find_permission(tree, 'admin.user'))

    def test_query_longer_than_any_grant(self):
        tree = parse_permissions(['mission.op-anvil'])
        self.assertFalse(find_permission(tree, 'mission.op-anvil.editor'))

    def test_specific_grant_satisfies_broader_query(self):
        tree = parse_permissions(['mission.op-anvil.editor'])
        self.assertTrue(find_permission(tree, 'mission.op-anvil'))

    def test_wildcard_covers_remaining_segments(self):
        tree = parse_permissions(['mission.*'])
        self.assertTrue(find_permission(tree, 'mission.op-anvil.editor'))
        self.assertTrue(find_permission(tree, 'mission.op-anvil'))
        self.assertFalse(find_permission(tree, 'community.alpha.leader'))

    def test_trailing_wildcard_covers_everything_below(self):
        tree = parse_permissions(['community.*'])
        self.assertTrue(find_permission(tree, 'community.alpha.recruitment'))

    def test_inner_wildcard_matches_one_segment(self):
        tree = parse_permissions(['community.*.recruitment'])
        self.assertTrue(find_permission(tree, 'community.alpha.recruitment'))
        self.assertTrue(find_permission(tree, 'community.bravo'))
        self.assertFalse(find_permission(tree, 'community.alpha.leader'))

    def test_inner_wildcard_does_not_widen_to_other_roles(self):
        self.assertFalse(has_permission(['mission.*.editor'], 'mission.op-anvil.creator'))
        self.assertTrue(has_permission(['mission.*.editor'], 'mission.op-anvil.editor'))

    def test_top_level_wildcard(self):
        tree = parse_permissions(['*'])
        self.assertTrue(find_permission(tree, 'admin.superadmin'))

    def test_query_as_segment_list(self):
        tree = parse_permissions(['community.alpha.leader'])
        self.assertTrue(find_permission(tree, ['community', 'alpha', 'leader']))

    def test_empty_query(self):
        tree = parse_permissions(['admin.user'])
        self.assertFalse(find_permission(tree, []))

    def test_empty_tree(self):
        self.assertFalse(find_permission(PermissionNode(), 'admin.user'))
        self.assertFalse(find_permission(None, 'admin.user'))


class HasPermissionTests(SimpleTestCase):
    """The flat has_permission helper over a loaded grant list"""

    def test_empty_grants(self):
        self.assertFalse(has_permission([], 'admin.user'))

    def test_any_of_several(self):
        grants = ['community.alpha.recruitment']
        self.assertTrue(has_permission(grants, ['community.alpha.leader', 'community.alpha.recruitment']))

    def test_strict_requires_all(self):
        grants = ['community.alpha.recruitment']
        required = ['community.alpha.leader', 'community.alpha.recruitment']

        self.assertFalse(has_permission(grants, required, strict=True))
        self.assertTrue(has_permission(grants + ['community.alpha.leader'], required, strict=True))

    def test_superadmin_grants_everything(self):
        self.assertTrue(has_permission(['admin.superadmin'], 'mission.op-anvil.editor'))

    def test_global_wildcard(self):
        self.assertTrue(has_permission(['*'], ['community.alpha.leader', 'admin.user'], strict=True))
