"""
Cycle detection for timeline hierarchies.

All checks operate on a plain ``{node_id: parent_id}`` map so they can be run
against stored data as well as against a proposed set of changes.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

MAJOR_CYCLE_SIZE = 5
MAX_RECOMMENDED_DEPTH = 10


@dataclass
class CycleCheck:
    would_create_cycle: bool
    cycle_path: List[str] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "wouldCreateCycle": self.would_create_cycle,
            "cyclePath": self.cycle_path,
            "reason": self.reason,
        }


def _key(value) -> Optional[str]:
    return str(value) if value is not None else None


def normalize_parent_map(parent_map: Dict) -> Dict[str, Optional[str]]:
    """Coerce UUID keys and values to strings."""
    return {_key(node_id): _key(parent_id) for node_id, parent_id in parent_map.items()}


class CycleDetectionService:
    """Diagnostics and guards against cycles in a node hierarchy."""

    @staticmethod
    def get_ancestor_ids(parent_map: Dict[str, Optional[str]], node_id: str) -> List[str]:
        """
        Ancestors of ``node_id`` from its parent upwards.

        Stops at the first repeated id so that corrupt data cannot loop.
        """
        ancestors: List[str] = []
        seen = {node_id}
        current = parent_map.get(node_id)
        while current is not None and current not in seen:
            ancestors.append(current)
            seen.add(current)
            current = parent_map.get(current)
        return ancestors

    @staticmethod
    def detect_cycle_for_move(parent_map: Dict, node_id, proposed_parent_id) -> CycleCheck:
        parent_map = normalize_parent_map(parent_map)
        node_id = _key(node_id)
        proposed_parent_id = _key(proposed_parent_id)

        if proposed_parent_id is None:
            return CycleCheck(would_create_cycle=False)

        if node_id == proposed_parent_id:
            return CycleCheck(
                would_create_cycle=True,
                cycle_path=[node_id],
                reason="Node cannot be parent of itself",
            )

        ancestors = CycleDetectionService.get_ancestor_ids(parent_map, proposed_parent_id)
        if node_id in ancestors:
            path = [node_id, proposed_parent_id] + ancestors[: ancestors.index(node_id) + 1]
            return CycleCheck(
                would_create_cycle=True,
                cycle_path=path,
                reason=f"Moving node would create cycle: {' -> '.join(path)}",
            )

        return CycleCheck(would_create_cycle=False)

    @staticmethod
    def _walk_for_cycle(
        start: str,
        parent_map: Dict[str, Optional[str]],
        visited: set,
    ) -> Optional[List[str]]:
        path: List[str] = []
        on_path = set()
        current = start
        while current is not None and current in parent_map:
            if current in on_path:
                return path[path.index(current):]
            if current in visited:
                return None
            visited.add(current)
            on_path.add(current)
            path.append(current)
            current = parent_map.get(current)
        return None

    @staticmethod
    def max_depth(parent_map: Dict) -> int:
        """Deepest root-to-leaf path, counted in edges."""
        parent_map = normalize_parent_map(parent_map)
        children: Dict[str, List[str]] = {}
        for node_id, parent_id in parent_map.items():
            if parent_id is not None:
                children.setdefault(parent_id, []).append(node_id)

        max_depth = 0
        roots = [node_id for node_id, parent_id in parent_map.items() if parent_id is None]
        stack = [(root, 0) for root in roots]
        seen = set()
        while stack:
            node_id, depth = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            max_depth = max(max_depth, depth)
            for child_id in children.get(node_id, []):
                stack.append((child_id, depth + 1))
        return max_depth

    @staticmethod
    def analyze_hierarchy(parent_map: Dict) -> Dict[str, object]:
        """
        Find cycles, dangling parent references and the deepest branch.
        """
        parent_map = normalize_parent_map(parent_map)
        cycles = []
        visited: set = set()

        for node_id in parent_map:
            if node_id in visited:
                continue
            cycle = CycleDetectionService._walk_for_cycle(node_id, parent_map, visited)
            if cycle:
                cycles.append({
                    "cycleId": f"cycle-{len(cycles) + 1}",
                    "nodes": cycle,
                    "severity": "major" if len(cycle) > MAJOR_CYCLE_SIZE else "minor",
                })

        orphaned = sorted({
            parent_id
            for parent_id in parent_map.values()
            if parent_id is not None and parent_id not in parent_map
        })

        analysis = {
            "hasCycles": bool(cycles),
            "cycles": cycles,
            "orphanedNodes": orphaned,
            "maxDepth": CycleDetectionService.max_depth(parent_map),
        }
        logger.info(
            "Hierarchy analysis complete: %s cycles, %s orphaned references, max depth %s",
            len(cycles),
            len(orphaned),
            analysis["maxDepth"],
        )
        return analysis

    @staticmethod
    def get_recovery_suggestions(analysis: Dict[str, object]) -> List[Dict[str, object]]:
        suggestions: List[Dict[str, object]] = []

        for cycle in analysis.get("cycles", []):
            last_node = cycle["nodes"][-1]
            suggestions.append({
                "issue": f"Cycle detected involving nodes: {', '.join(cycle['nodes'])}",
                "severity": "high" if cycle["severity"] == "major" else "medium",
                "suggestion": "Break the cycle by removing parent relationship from one of the nodes in the cycle",
                "automaticFix": {
                    "action": "remove_parent",
                    "nodeId": last_node,
                    "details": f"Remove parent relationship from {last_node} to break the cycle",
                },
            })

        for orphan_id in analysis.get("orphanedNodes", []):
            suggestions.append({
                "issue": f"Orphaned parent reference: {orphan_id}",
                "severity": "medium",
                "suggestion": f"Remove references to non-existent parent node {orphan_id}",
                "automaticFix": {
                    "action": "remove_parent",
                    "nodeId": orphan_id,
                    "details": f"Clean up references to deleted parent node {orphan_id}",
                },
            })

        max_depth = analysis.get("maxDepth", 0)
        if max_depth > MAX_RECOMMENDED_DEPTH:
            suggestions.append({
                "issue": f"Hierarchy depth exceeds recommended limit ({max_depth} levels)",
                "severity": "low",
                "suggestion": "Consider flattening the hierarchy by promoting some child nodes to higher levels",
            })

        return suggestions

    @staticmethod
    def validate_hierarchy_change(parent_map: Dict, changes: List[Dict]) -> Dict[str, object]:
        """
        Check a batch of ``{"nodeId", "newParentId"}`` moves.
        """
        result = {"isValid": True, "errors": [], "warnings": []}

        for change in changes:
            new_parent_id = change.get("newParentId")
            if not new_parent_id:
                continue
            check = CycleDetectionService.detect_cycle_for_move(
                parent_map,
                change.get("nodeId"),
                new_parent_id,
            )
            if check.would_create_cycle:
                result["isValid"] = False
                result["errors"].append(
                    f"Node {change.get('nodeId')} cannot be moved to {new_parent_id}: {check.reason}"
                )

        if len(changes) > 1:
            result["warnings"].append(
                f"Bulk hierarchy changes ({len(changes)} changes) should be applied with caution"
            )
            node_ids = [str(change.get("nodeId")) for change in changes]
            if len(node_ids) != len(set(node_ids)):
                result["isValid"] = False
                result["errors"].append("Duplicate node IDs found in change set")

        return result
