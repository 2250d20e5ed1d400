from datetime import timedelta
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from journey.exceptions import CycleDetected, NotFound
from timeline.models import TimelineNode
from timeline.services import HierarchyService, InsightService


@override_settings(MAPBOX_TOKEN='')
class HierarchyServiceTests(TestCase):
    def setUp(self) -> None:
        User = get_user_model()
        self.user = User.objects.create_user(username="river", password="pw")
        self.other = User.objects.create_user(username="sky", password="pw")
        self.job = HierarchyService.create_node(self.user, "job", {"orgId": 1, "role": "Engineer"})
        self.project = HierarchyService.create_node(
            self.user, "project", {"title": "Billing rewrite"}, parent_id=self.job.id
        )

    def test_create_rejects_incompatible_parent(self) -> None:
        with self.assertRaises(ValidationError):
            HierarchyService.create_node(self.user, "job", {"orgId": 1, "role": "Lead"}, parent_id=self.project.id)

    def test_create_with_foreign_parent_is_not_found(self) -> None:
        foreign = HierarchyService.create_node(self.other, "job", {"orgId": 2, "role": "Chef"})
        with self.assertRaises(NotFound):
            HierarchyService.create_node(self.user, "project", {"title": "X"}, parent_id=foreign.id)

    def test_get_node_hides_other_users_nodes(self) -> None:
        with self.assertRaises(NotFound):
            HierarchyService.get_node(self.other, self.job.id)
        with self.assertRaises(NotFound):
            HierarchyService.get_node(self.user, "not-a-uuid")

    def test_move_under_descendant_raises_cycle(self) -> None:
        event = HierarchyService.create_node(self.user, "event", {"title": "Launch"}, parent_id=self.job.id)
        action = HierarchyService.create_node(self.user, "action", {"title": "Demo"}, parent_id=event.id)
        with self.assertRaises(CycleDetected):
            HierarchyService.move_node(self.user, event.id, action.id)
        with self.assertRaises(CycleDetected):
            HierarchyService.move_node(self.user, event.id, event.id)

    def test_move_to_root(self) -> None:
        node = HierarchyService.move_node(self.user, self.project.id, None)
        self.assertIsNone(node.parent_id)

    def test_delete_orphans_children(self) -> None:
        self.assertTrue(HierarchyService.delete_node(self.user, self.job.id))
        self.project.refresh_from_db()
        self.assertIsNone(self.project.parent_id)
        self.assertFalse(HierarchyService.delete_node(self.user, self.job.id))

    def test_update_merges_meta_and_drops_null_keys(self) -> None:
        node = HierarchyService.update_node(
            self.user, self.project.id, meta={"description": "Moved to Stripe", "title": "Billing v2"}
        )
        self.assertEqual(node.meta["title"], "Billing v2")
        node = HierarchyService.update_node(self.user, self.project.id, meta={"description": None})
        self.assertNotIn("description", node.meta)

    def test_ancestors_tree_and_stats(self) -> None:
        action = HierarchyService.create_node(self.user, "action", {"title": "Refactor"}, parent_id=self.job.id)
        leaf = HierarchyService.create_node(self.user, "project", {"title": "Leaf"}, parent_id=action.id)

        ancestors = HierarchyService.get_ancestors(self.user, leaf.id)
        self.assertEqual([node.id for node in ancestors], [action.id, self.job.id])

        roots = HierarchyService.get_full_tree(self.user)
        self.assertEqual(len(roots), 1)
        self.assertEqual(len(roots[0].tree_children), 2)

        subtree = HierarchyService.get_subtree(self.user, self.job.id, max_depth=1)
        self.assertEqual(len(subtree.tree_children), 2)
        self.assertTrue(all(child.tree_children == [] for child in subtree.tree_children))

        stats = HierarchyService.get_hierarchy_stats(self.user)
        self.assertEqual(stats["totalNodes"], 4)
        self.assertEqual(stats["rootNodes"], 1)
        self.assertEqual(stats["maxDepth"], 2)
        self.assertEqual(stats["nodesByType"]["project"], 2)

    def test_analyze_stored_hierarchy(self) -> None:
        analysis = HierarchyService.analyze_hierarchy(self.user)
        self.assertFalse(analysis["hasCycles"])
        self.assertEqual(analysis["suggestions"], [])

    @override_settings(MAPBOX_TOKEN='test-token')
    @mock.patch("timeline.services.requests.get")
    def test_job_location_is_geocoded_once(self, mock_get) -> None:
        mock_get.return_value.json.return_value = {
            "features": [{"geometry": {"coordinates": [-97.74, 30.27]}, "relevance": 1, "place_name": "Austin"}]
        }
        node = HierarchyService.create_node(
            self.user, "job", {"orgId": 1, "role": "SRE", "location": "Austin, TX"}
        )
        self.assertEqual(node.meta["coordinates"]["latitude"], 30.27)

        HierarchyService.update_node(self.user, node.id, meta={"role": "Senior SRE"})
        self.assertEqual(mock_get.call_count, 1)
        self.assertEqual(mock_get.call_args.kwargs["params"]["types"], HierarchyService.GEOCODED_TYPES["job"])

    @override_settings(MAPBOX_TOKEN='test-token')
    @mock.patch("timeline.services.requests.get")
    def test_geocoder_failure_saves_node_without_coordinates(self, mock_get) -> None:
        mock_get.side_effect = requests.ConnectionError("mapbox down")
        with self.assertLogs("timeline.services", level="WARNING") as logs:
            node = HierarchyService.create_node(
                self.user, "education", {"orgId": 1, "degree": "MS", "location": "Boston, MA"}
            )
        self.assertNotIn("coordinates", node.meta)
        self.assertIn("education node", logs.output[0])


class InsightServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="lane", password="pw")
        self.node = TimelineNode.objects.create(user=self.user, type="project", meta={"title": "API"})

    def test_string_resources_are_normalized(self) -> None:
        insight = InsightService.create_insight(
            self.user, self.node.id, {"description": "Cache early", "resources": ["https://example.com/a"]}
        )
        self.assertEqual(insight.resources, [{"url": "https://example.com/a", "type": "other"}])

    def test_resource_limits(self) -> None:
        with self.assertRaises(ValidationError):
            InsightService.validate_resources(["https://example.com"] * 11)
        with self.assertRaises(ValidationError):
            InsightService.validate_resources([{"url": "ftp://x", "type": "podcast"}])

    def test_description_required(self) -> None:
        with self.assertRaises(ValidationError):
            InsightService.create_insight(self.user, self.node.id, {"description": "   "})

    def test_other_user_cannot_touch_insight(self) -> None:
        insight = InsightService.create_insight(self.user, self.node.id, {"description": "Write docs"})
        stranger = get_user_model().objects.create_user(username="stranger", password="pw")
        with self.assertRaises(NotFound):
            InsightService.update_insight(stranger, insight.id, {"description": "Nope"})

    def test_time_ago(self) -> None:
        now = timezone.now()
        self.assertEqual(InsightService.time_ago(now, now), "just now")
        self.assertEqual(InsightService.time_ago(now - timedelta(minutes=5), now), "5 minutes ago")
        self.assertEqual(InsightService.time_ago(now - timedelta(days=1), now), "1 day ago")
        self.assertEqual(InsightService.time_ago(now - timedelta(days=800), now), "2 years ago")
