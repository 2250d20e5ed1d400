from django.test import SimpleTestCase

from timeline.cycles import CycleDetectionService


class DetectCycleForMoveTests(SimpleTestCase):
    def setUp(self) -> None:
        # a -> b -> c (c is the root)
        self.parent_map = {"a": "b", "b": "c", "c": None, "d": None}

    def test_self_parent(self) -> None:
        check = CycleDetectionService.detect_cycle_for_move(self.parent_map, "a", "a")
        self.assertTrue(check.would_create_cycle)
        self.assertEqual(check.reason, "Node cannot be parent of itself")

    def test_move_under_descendant(self) -> None:
        check = CycleDetectionService.detect_cycle_for_move(self.parent_map, "c", "a")
        self.assertTrue(check.would_create_cycle)
        self.assertEqual(check.cycle_path[0], "c")
        self.assertIn("a", check.cycle_path)

    def test_safe_moves(self) -> None:
        self.assertFalse(CycleDetectionService.detect_cycle_for_move(self.parent_map, "a", "d").would_create_cycle)
        self.assertFalse(CycleDetectionService.detect_cycle_for_move(self.parent_map, "a", None).would_create_cycle)

    def test_to_dict_keys(self) -> None:
        result = CycleDetectionService.detect_cycle_for_move(self.parent_map, "a", "a").to_dict()
        self.assertEqual(set(result), {"wouldCreateCycle", "cyclePath", "reason"})


class AnalyzeHierarchyTests(SimpleTestCase):
    def test_clean_hierarchy(self) -> None:
        analysis = CycleDetectionService.analyze_hierarchy({"a": None, "b": "a", "c": "b"})
        self.assertFalse(analysis["hasCycles"])
        self.assertEqual(analysis["orphanedNodes"], [])
        self.assertEqual(analysis["maxDepth"], 2)

    def test_single_root_has_zero_depth(self) -> None:
        self.assertEqual(CycleDetectionService.max_depth({"a": None}), 0)

    def test_cycle_and_orphan_found(self) -> None:
        analysis = CycleDetectionService.analyze_hierarchy(
            {"a": "b", "b": "a", "c": "missing", "d": None}
        )
        self.assertTrue(analysis["hasCycles"])
        self.assertEqual(len(analysis["cycles"]), 1)
        cycle = analysis["cycles"][0]
        self.assertEqual(cycle["cycleId"], "cycle-1")
        self.assertEqual(sorted(cycle["nodes"]), ["a", "b"])
        self.assertEqual(cycle["severity"], "minor")
        self.assertEqual(analysis["orphanedNodes"], ["missing"])

    def test_large_cycle_is_major(self) -> None:
        ids = [f"n{i}" for i in range(6)]
        parent_map = {node: ids[(i + 1) % len(ids)] for i, node in enumerate(ids)}
        analysis = CycleDetectionService.analyze_hierarchy(parent_map)
        self.assertEqual(analysis["cycles"][0]["severity"], "major")


class RecoverySuggestionTests(SimpleTestCase):
    def test_suggestions_for_cycle_orphan_and_depth(self) -> None:
        analysis = {
            "cycles": [{"cycleId": "cycle-1", "nodes": ["a", "b"], "severity": "minor"}],
            "orphanedNodes": ["gone"],
            "maxDepth": 12,
        }
        suggestions = CycleDetectionService.get_recovery_suggestions(analysis)
        self.assertEqual(len(suggestions), 3)
        self.assertEqual(suggestions[0]["severity"], "medium")
        self.assertEqual(suggestions[0]["automaticFix"]["nodeId"], "b")
        self.assertEqual(suggestions[1]["automaticFix"]["action"], "remove_parent")
        self.assertEqual(suggestions[2]["severity"], "low")
        self.assertNotIn("automaticFix", suggestions[2])


class ValidateHierarchyChangeTests(SimpleTestCase):
    def test_bulk_change_warning_and_duplicates(self) -> None:
        result = CycleDetectionService.validate_hierarchy_change(
            {"a": None, "b": None},
            [{"nodeId": "a", "newParentId": "b"}, {"nodeId": "a", "newParentId": None}],
        )
        self.assertFalse(result["isValid"])
        self.assertEqual(len(result["warnings"]), 1)
        self.assertIn("Duplicate node IDs found in change set", result["errors"])

    def test_cycle_in_change_is_an_error(self) -> None:
        result = CycleDetectionService.validate_hierarchy_change(
            {"a": "b", "b": None},
            [{"nodeId": "b", "newParentId": "a"}],
        )
        self.assertFalse(result["isValid"])
        self.assertEqual(result["warnings"], [])
        self.assertEqual(len(result["errors"]), 1)
