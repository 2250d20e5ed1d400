from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from journey.exceptions import AccessDenied
from organizations.models import Organization, OrgMember
from sharing.models import NodePolicy
from sharing.services import NodePermissionService
from timeline.models import TimelineNode


class NodePermissionServiceTests(TestCase):
    def setUp(self) -> None:
        User = get_user_model()
        self.owner = User.objects.create_user(username="owner", password="pw", user_name="owner")
        self.viewer = User.objects.create_user(username="viewer", password="pw", user_name="viewer")
        self.admin = User.objects.create_user(username="boss", password="pw", role="ADMIN")
        self.org = Organization.objects.create(name="Acme", type="company")
        self.node = TimelineNode.objects.create(user=self.owner, type="job", meta={"orgId": self.org.id, "role": "Dev"})

    def _policy(self, **kwargs) -> NodePolicy:
        defaults = {
            "node": self.node,
            "granted_by": self.owner,
            "level": "overview",
            "action": "view",
            "effect": "ALLOW",
        }
        defaults.update(kwargs)
        return NodePolicy.objects.create(**defaults)

    def test_owner_and_admin_always_have_access(self) -> None:
        self.assertTrue(NodePermissionService.can_access(self.owner, self.node, "edit", "full"))
        self.assertTrue(NodePermissionService.can_access(self.admin, self.node, "view", "full"))
        self.assertFalse(NodePermissionService.can_access(self.viewer, self.node))

    def test_public_policy_reaches_anonymous_users(self) -> None:
        self._policy(subject_type="public")
        self.assertTrue(NodePermissionService.can_access(AnonymousUser(), self.node))
        self.assertFalse(NodePermissionService.can_access(AnonymousUser(), self.node, "view", "full"))

    def test_user_deny_overrides_org_allow(self) -> None:
        OrgMember.objects.create(organization=self.org, user=self.viewer)
        self._policy(subject_type="org", subject_id=self.org.id, level="full")
        self.assertEqual(NodePermissionService.get_access_level(self.viewer, self.node), "full")

        self._policy(subject_type="user", subject_id=self.viewer.id, level="full", effect="DENY")
        self.assertFalse(NodePermissionService.can_access(self.viewer, self.node, "view", "full"))

    def test_public_deny_is_ignored(self) -> None:
        self._policy(subject_type="user", subject_id=self.viewer.id)
        self._policy(subject_type="public", effect="DENY")
        self.assertTrue(NodePermissionService.can_access(self.viewer, self.node))

    def test_expired_policy_is_ignored_and_cleaned(self) -> None:
        self._policy(subject_type="user", subject_id=self.viewer.id, expires_at=timezone.now() - timedelta(hours=1))
        self.assertFalse(NodePermissionService.can_access(self.viewer, self.node))

        out = StringIO()
        call_command("cleanup_expired_policies", stdout=out)
        self.assertIn("Deleted 1 expired policies", out.getvalue())
        self.assertFalse(NodePolicy.objects.exists())

    def test_can_edit_requires_full_edit_policy(self) -> None:
        self._policy(subject_type="user", subject_id=self.viewer.id, action="edit", level="overview")
        self.assertFalse(NodePermissionService.can_edit(self.viewer, self.node))
        self._policy(subject_type="user", subject_id=self.viewer.id, action="edit", level="full")
        self.assertTrue(NodePermissionService.can_edit(self.viewer, self.node))

    def test_hierarchy_access_inherits_and_closest_deny_wins(self) -> None:
        child = TimelineNode.objects.create(user=self.owner, type="project", parent=self.node, meta={"title": "API"})
        self._policy(subject_type="user", subject_id=self.viewer.id)
        self.assertTrue(NodePermissionService.check_hierarchy_access(self.viewer, child))

        self._policy(node=child, subject_type="user", subject_id=self.viewer.id, effect="DENY")
        self.assertFalse(NodePermissionService.check_hierarchy_access(self.viewer, child))

    def test_batch_check_access(self) -> None:
        self._policy(subject_type="public")
        other = TimelineNode.objects.create(user=self.owner, type="event", meta={"title": "Talk"})
        result = NodePermissionService.batch_check_access(
            self.viewer, [str(self.node.id), str(other.id), "missing"], "view", "overview"
        )
        self.assertEqual(result, {str(self.node.id): True, str(other.id): False, "missing": False})

    def test_set_node_policies_replaces_existing(self) -> None:
        self._policy(subject_type="public")
        created = NodePermissionService.set_node_policies(
            self.owner,
            self.node,
            [
                {"subjectType": "user", "subjectId": self.viewer.id, "level": "full"},
                {"subjectType": "org", "subjectId": self.org.id},
            ],
        )
        self.assertEqual(len(created), 2)
        self.assertEqual(NodePolicy.objects.filter(node=self.node).count(), 2)
        self.assertFalse(NodePolicy.objects.filter(subject_type="public").exists())

    def test_set_node_policies_validation(self) -> None:
        with self.assertRaises(AccessDenied):
            NodePermissionService.set_node_policies(self.viewer, self.node, [])
        with self.assertRaises(ValidationError):
            NodePermissionService.set_node_policies(self.owner, self.node, [{"subjectType": "user"}])
        with self.assertRaises(ValidationError):
            NodePermissionService.set_node_policies(
                self.owner, self.node, [{"subjectType": "public", "subjectId": 4}]
            )
        with self.assertRaises(ValidationError):
            NodePermissionService.set_node_policies(
                self.owner, self.node, [{"subjectType": "public"}] * 101
            )

    def test_effective_permissions_prefers_full(self) -> None:
        self._policy(subject_type="public")
        self._policy(subject_type="public", level="full")
        self._policy(subject_type="user", subject_id=self.viewer.id)
        self._policy(subject_type="org", subject_id=self.org.id, level="full")

        summary = NodePermissionService.effective_permissions(self.owner, self.node)
        self.assertEqual(summary["public"], "full")
        self.assertEqual(summary["organizations"], [{"id": self.org.id, "name": "Acme", "level": "full"}])
        self.assertEqual(summary["users"], [{"id": self.viewer.id, "userName": "viewer", "level": "overview"}])

    def test_accessible_nodes_for_owner_filter(self) -> None:
        hidden = TimelineNode.objects.create(user=self.owner, type="event", meta={"title": "Private"})
        self._policy(subject_type="user", subject_id=self.viewer.id)
        accessible = NodePermissionService.get_accessible_nodes(self.viewer, owner=self.owner)
        self.assertEqual([item["node"].id for item in accessible], [self.node.id])
        self.assertEqual(accessible[0]["accessLevel"], "overview")
        self.assertFalse(accessible[0]["canEdit"])
        self.assertNotIn(hidden.id, [item["node"].id for item in accessible])
