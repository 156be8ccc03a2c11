"""
Permission tree parsing and lookup.

Grants are dotted, case-insensitive strings such as `community.alpha.leader`.
A `*` segment matches any single segment; a trailing `*` also matches everything below it.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Union

WILDCARD = '*'


@dataclass
class PermissionNode:
    """
    One level of a parsed permission tree.

    `granted_here` marks the end of a grant string; `children` maps the next
    lower-cased segment to its subtree.
    """
    granted_here: bool = False
    children: Dict[str, 'PermissionNode'] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.granted_here or bool(self.children)

    @property
    def has_global_wildcard(self) -> bool:
        return WILDCARD in self.children


def split_permission(permission: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(permission, str):
        return permission.lower().split('.')
    return [part.lower() for part in permission]


def parse_permissions(permissions: Iterable[str]) -> PermissionNode:
    """
    Parse a list of permissions into a tree.

    Example: ['admin.user', 'community.test.leader'] becomes
    admin -> user, community -> test -> leader, with the `user` and `leader`
    nodes marked as granted.
    """
    root = PermissionNode()
    for perm in permissions:
        current = root
        for part in split_permission(perm):
            current = current.children.setdefault(part, PermissionNode())
        current.granted_here = True
    return root


def _has_path(tree: PermissionNode, parts: Sequence[str]) -> bool:
    current = tree
    for part in parts:
        current = current.children.get(part)
        if current is None:
            return False
    return True


def find_permission(permission_tree: PermissionNode, target_permission: Union[str, Sequence[str]]) -> bool:
    """
    Recursively check for a permission in a permission tree.

    A `*` segment stands in for exactly one query segment. Only a `*` that
    ends a grant also covers every segment below it, so
    `community.*.recruitment` does not satisfy `community.alpha.leader`.

    Args:
        permission_tree: Parsed permission tree
        target_permission: Permission to check for (string or list of parts)

    Returns:
        bool: Whether a grant in the tree covers the permission
    """
    if not isinstance(permission_tree, PermissionNode) or not permission_tree.children:
        return False

    parts = split_permission(target_permission)
    if not parts:
        return False

    if _has_path(permission_tree, parts):
        return True

    perm_part = parts[0]
    remaining_parts = parts[1:]

    for current_key in (perm_part, WILDCARD):
        next_tree = permission_tree.children.get(current_key)
        if next_tree is None:
            continue
        if not remaining_parts:
            return True
        if current_key == WILDCARD and next_tree.granted_here:
            return True
        if find_permission(next_tree, remaining_parts):
            return True

    return False
