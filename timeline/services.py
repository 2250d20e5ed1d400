"""
Timeline Service Layer
Handles validation and business logic for timeline nodes, their hierarchy
and the insights attached to them.
"""
import copy
import logging
import os
import uuid
from datetime import timedelta
from typing import Dict, List, Optional
from urllib.parse import quote_plus

import requests
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from journey.exceptions import CycleDetected, NotFound
from .cycles import CycleDetectionService
from .meta import META_SCHEMAS, is_valid_url, validate_meta
from .models import NodeInsight, TimelineNode

logger = logging.getLogger(__name__)

_UNSET = object()

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"


class HierarchyService:
    """Service for managing a user's timeline node hierarchy."""

    VALID_TYPES = list(META_SCHEMAS)

    ALLOWED_CHILDREN = {
        'careerTransition': ['action', 'event', 'project'],
        'job': ['project', 'event', 'action'],
        'education': ['project', 'event', 'action'],
        'action': ['project'],
        'event': ['project', 'action'],
        'project': [],
    }

    # Mapbox feature types searched for each node type that carries a location
    GEOCODED_TYPES = {
        'job': 'address,poi,place,locality',
        'education': 'poi,place,locality',
    }
    DEFAULT_SUBTREE_DEPTH = 10

    # ------------------------------------------------------------------ #
    # Rules                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def validate_type(node_type: str) -> str:
        if node_type not in HierarchyService.VALID_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(HierarchyService.VALID_TYPES)}")
        return node_type

    @staticmethod
    def get_allowed_children(node_type: str) -> List[str]:
        return list(HierarchyService.ALLOWED_CHILDREN.get(node_type, []))

    @staticmethod
    def is_valid_parent_child(parent_type: str, child_type: str) -> bool:
        return child_type in HierarchyService.ALLOWED_CHILDREN.get(parent_type, [])

    # ------------------------------------------------------------------ #
    # Reads                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def get_node(user, node_id) -> TimelineNode:
        """
        Fetch one of the user's nodes.

        Raises:
            NotFound: If the node does not exist or belongs to someone else
        """
        try:
            return TimelineNode.objects.get(id=node_id, user=user)
        except (TimelineNode.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Node {node_id} not found")

    @staticmethod
    def list_nodes(user, node_type: Optional[str] = None) -> List[TimelineNode]:
        queryset = TimelineNode.objects.filter(user=user)
        if node_type:
            HierarchyService.validate_type(node_type)
            queryset = queryset.filter(type=node_type)
        return list(queryset.order_by('created_at'))

    @staticmethod
    def get_children(user, node_id) -> List[TimelineNode]:
        node = HierarchyService.get_node(user, node_id)
        return list(TimelineNode.objects.filter(user=user, parent=node).order_by('created_at'))

    @staticmethod
    def get_parent_map(user) -> Dict[str, Optional[str]]:
        return {
            str(node_id): (str(parent_id) if parent_id else None)
            for node_id, parent_id in TimelineNode.objects.filter(user=user).values_list('id', 'parent_id')
        }

    @staticmethod
    def get_ancestors(user, node_id) -> List[TimelineNode]:
        """
        Ancestors of a node ordered from its parent up to the root.
        """
        node = HierarchyService.get_node(user, node_id)
        parent_map = HierarchyService.get_parent_map(user)
        ancestor_ids = CycleDetectionService.get_ancestor_ids(parent_map, str(node.id))
        by_id = {
            str(ancestor.id): ancestor
            for ancestor in TimelineNode.objects.filter(user=user, id__in=ancestor_ids)
        }
        return [by_id[ancestor_id] for ancestor_id in ancestor_ids if ancestor_id in by_id]

    @staticmethod
    def _attach_children(nodes: List[TimelineNode]) -> Dict[str, TimelineNode]:
        by_id = {str(node.id): node for node in nodes}
        for node in nodes:
            node.tree_children = []
        for node in nodes:
            parent_id = str(node.parent_id) if node.parent_id else None
            if parent_id and parent_id in by_id:
                by_id[parent_id].tree_children.append(node)
        return by_id

    @staticmethod
    def get_full_tree(user) -> List[TimelineNode]:
        """
        All of the user's nodes arranged as a forest.

        Each returned node carries a ``tree_children`` list. Nodes whose
        parent is missing are returned as roots.
        """
        nodes = list(TimelineNode.objects.filter(user=user).order_by('created_at'))
        by_id = HierarchyService._attach_children(nodes)
        return [
            node for node in nodes
            if not node.parent_id or str(node.parent_id) not in by_id
        ]

    @staticmethod
    def get_subtree(user, node_id, max_depth: int = DEFAULT_SUBTREE_DEPTH) -> TimelineNode:
        """
        A node with its descendants attached as ``tree_children``, cut off
        after ``max_depth`` levels.
        """
        root = HierarchyService.get_node(user, node_id)
        max_depth = max(int(max_depth), 0)
        root.tree_children = []
        frontier = [root]
        seen = {root.id}
        for _ in range(max_depth):
            if not frontier:
                break
            by_parent = {node.id: node for node in frontier}
            children = TimelineNode.objects.filter(user=user, parent_id__in=list(by_parent)).order_by('created_at')
            next_frontier = []
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                child.tree_children = []
                by_parent[child.parent_id].tree_children.append(child)
                next_frontier.append(child)
            frontier = next_frontier
        return root

    @staticmethod
    def get_hierarchy_stats(user) -> Dict[str, object]:
        nodes = list(TimelineNode.objects.filter(user=user).values_list('id', 'parent_id', 'type'))
        nodes_by_type: Dict[str, int] = {}
        for _, _, node_type in nodes:
            nodes_by_type[node_type] = nodes_by_type.get(node_type, 0) + 1
        parent_map = {node_id: parent_id for node_id, parent_id, _ in nodes}
        return {
            'totalNodes': len(nodes),
            'nodesByType': nodes_by_type,
            'rootNodes': sum(1 for _, parent_id, _ in nodes if parent_id is None),
            'maxDepth': CycleDetectionService.max_depth(parent_map),
        }

    @staticmethod
    def analyze_hierarchy(user) -> Dict[str, object]:
        """
        Run cycle diagnostics over the stored hierarchy.
        """
        analysis = CycleDetectionService.analyze_hierarchy(HierarchyService.get_parent_map(user))
        return {
            **analysis,
            'suggestions': CycleDetectionService.get_recovery_suggestions(analysis),
        }

    # ------------------------------------------------------------------ #
    # Writes                                                             #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _resolve_parent(user, parent_id, child_type: str) -> Optional[TimelineNode]:
        if not parent_id:
            return None
        try:
            parent = TimelineNode.objects.get(id=parent_id, user=user)
        except (TimelineNode.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Parent node {parent_id} not found")
        if not HierarchyService.is_valid_parent_child(parent.type, child_type):
            allowed = HierarchyService.get_allowed_children(parent.type)
            raise ValidationError(
                f"{child_type} cannot be a child of {parent.type}. "
                f"Allowed children: {', '.join(allowed) if allowed else 'none'}"
            )
        return parent

    @staticmethod
    def create_node(user, node_type: str, meta: Optional[Dict] = None, parent_id=None) -> TimelineNode:
        """
        Create a node for a user.

        Raises:
            ValidationError: If the type, meta or parent relationship is invalid
            NotFound: If the parent does not exist
        """
        HierarchyService.validate_type(node_type)
        clean_meta = validate_meta(node_type, meta)
        parent = HierarchyService._resolve_parent(user, parent_id, node_type)

        if node_type in HierarchyService.GEOCODED_TYPES and 'coordinates' not in clean_meta:
            HierarchyService._locate_node(node_type, clean_meta)

        node = TimelineNode.objects.create(
            user=user,
            type=node_type,
            parent=parent,
            meta=clean_meta,
        )
        logger.info("Created %s node %s for user %s", node_type, node.id, user.pk)
        return node

    @staticmethod
    def update_node(user, node_id, meta: Optional[Dict] = None, parent_id=_UNSET) -> TimelineNode:
        """
        Merge ``meta`` into a node and optionally move it.

        Keys set to ``None`` in ``meta`` are removed.
        """
        node = HierarchyService.get_node(user, node_id)

        if meta is not None:
            if not isinstance(meta, dict):
                raise ValidationError("meta must be an object")
            existing = node.meta or {}
            merged = {**existing, **meta}
            clean_meta = validate_meta(node.type, merged)

            if node.type in HierarchyService.GEOCODED_TYPES:
                old_location = (existing.get('location') or '').strip().lower()
                new_location = (clean_meta.get('location') or '').strip().lower()
                if existing.get('coordinates') and old_location == new_location:
                    clean_meta['coordinates'] = existing['coordinates']
                elif 'coordinates' not in meta:
                    clean_meta.pop('coordinates', None)
                    HierarchyService._locate_node(node.type, clean_meta, node_id=node.id)

            node.meta = clean_meta

        if parent_id is not _UNSET:
            HierarchyService._apply_move(user, node, parent_id)

        node.save()
        return node

    @staticmethod
    def _apply_move(user, node: TimelineNode, new_parent_id) -> None:
        if new_parent_id:
            check = CycleDetectionService.detect_cycle_for_move(
                HierarchyService.get_parent_map(user),
                node.id,
                new_parent_id,
            )
            if check.would_create_cycle:
                raise CycleDetected(check.reason, details=check.to_dict())
        node.parent = HierarchyService._resolve_parent(user, new_parent_id, node.type)

    @staticmethod
    def move_node(user, node_id, new_parent_id) -> TimelineNode:
        """
        Re-parent a node. ``None`` moves it to the root.

        Raises:
            CycleDetected: If the new parent is the node or one of its descendants
        """
        with transaction.atomic():
            node = HierarchyService.get_node(user, node_id)
            HierarchyService._apply_move(user, node, new_parent_id)
            node.save(update_fields=['parent', 'updated_at'])
        logger.info("Moved node %s under %s", node.id, new_parent_id or 'root')
        return node

    @staticmethod
    def delete_node(user, node_id) -> bool:
        """
        Delete a node. Its children become root nodes.

        Returns:
            True if deleted, False if not found
        """
        try:
            node = TimelineNode.objects.get(id=node_id, user=user)
        except (TimelineNode.DoesNotExist, ValidationError, ValueError):
            return False

        with transaction.atomic():
            orphaned = TimelineNode.objects.filter(parent=node).update(parent=None)
            node.delete()
        logger.info("Deleted node %s (%s children moved to root)", node_id, orphaned)
        return True

    @staticmethod
    def _locate_node(node_type: str, meta: Dict, node_id=None) -> None:
        """
        Set ``meta['coordinates']`` for a job or education node from its
        ``location`` through the Mapbox geocoder.

        Nodes without a location, without a configured MAPBOX_TOKEN or
        without a usable match are saved with no coordinates. Geocoder
        failures are logged and never block the save.
        """
        location = meta.get('location')
        if not isinstance(location, str) or not location.strip():
            meta.pop('coordinates', None)
            return

        token = os.environ.get('MAPBOX_TOKEN') or getattr(settings, 'MAPBOX_TOKEN', '')
        if not token:
            return

        label = f"{node_type} node {node_id or '(new)'}"
        try:
            response = requests.get(
                MAPBOX_GEOCODE_URL.format(query=quote_plus(location.strip())),
                params={
                    'access_token': token,
                    'types': HierarchyService.GEOCODED_TYPES[node_type],
                    'limit': 1,
                },
                timeout=5,
            )
            response.raise_for_status()
            features = response.json().get('features') or []
            match = next(
                (f for f in features if len((f.get('geometry') or {}).get('coordinates') or []) >= 2),
                None,
            )
            if match is None:
                logger.info("No geocoding match for %s at '%s'", label, location)
                return

            longitude, latitude = match['geometry']['coordinates'][:2]
            meta['coordinates'] = {
                'latitude': float(latitude),
                'longitude': float(longitude),
                'placeName': match.get('place_name'),
                'relevance': match.get('relevance'),
                'source': 'mapbox',
            }
        except (requests.RequestException, ValueError, TypeError) as exc:
            logger.warning("Could not geocode %s at '%s': %s", label, location, exc)
            meta.pop('coordinates', None)


class InsightService:
    """Service for insights recorded against timeline nodes."""

    RESOURCE_TYPES = ['article', 'video', 'course', 'book', 'tool', 'documentation', 'other']
    MAX_RESOURCES = 10
    MAX_DESCRIPTION_LENGTH = 2000

    @staticmethod
    def validate_resources(resources) -> List[Dict]:
        """
        Validate and normalize an insight's resource list.

        Plain URL strings are accepted and become ``{"url", "type": "other"}``.
        """
        if resources is None:
            return []
        if not isinstance(resources, list):
            raise ValidationError("resources must be a list")
        if len(resources) > InsightService.MAX_RESOURCES:
            raise ValidationError(f"At most {InsightService.MAX_RESOURCES} resources are allowed")

        errors = []
        cleaned = []
        for index, resource in enumerate(resources):
            if isinstance(resource, str):
                resource = {'url': resource}
            if not isinstance(resource, dict):
                errors.append(f"resources[{index}] must be an object or URL")
                continue

            resource = copy.deepcopy(resource)
            if not is_valid_url(resource.get('url')):
                errors.append(f"resources[{index}].url must be a valid URL")
            resource_type = resource.get('type') or 'other'
            if resource_type not in InsightService.RESOURCE_TYPES:
                errors.append(
                    f"resources[{index}].type must be one of: {', '.join(InsightService.RESOURCE_TYPES)}"
                )
            resource['type'] = resource_type

            score = resource.get('relevanceScore')
            if score is not None and (
                isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 1
            ):
                errors.append(f"resources[{index}].relevanceScore must be between 0 and 1")

            tags = resource.get('tags')
            if tags is not None and (not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)):
                errors.append(f"resources[{index}].tags must be a list of strings")

            cleaned.append(resource)

        if errors:
            raise ValidationError(errors)
        return cleaned

    @staticmethod
    def validate_description(description) -> str:
        description = (description or '').strip() if isinstance(description, str) else ''
        if not description:
            raise ValidationError("description is required")
        if len(description) > InsightService.MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"description must be at most {InsightService.MAX_DESCRIPTION_LENGTH} characters"
            )
        return description

    @staticmethod
    def list_insights(user, node_id) -> List[NodeInsight]:
        node = HierarchyService.get_node(user, node_id)
        return list(NodeInsight.objects.filter(node=node).order_by('-created_at'))

    @staticmethod
    def get_insight(user, insight_id) -> NodeInsight:
        try:
            return NodeInsight.objects.select_related('node').get(id=insight_id, node__user=user)
        except (NodeInsight.DoesNotExist, ValidationError, ValueError):
            raise NotFound(f"Insight {insight_id} not found")

    @staticmethod
    def create_insight(user, node_id, data: Dict) -> NodeInsight:
        node = HierarchyService.get_node(user, node_id)
        description = InsightService.validate_description(data.get('description'))
        resources = InsightService.validate_resources(data.get('resources'))
        return NodeInsight.objects.create(
            id=uuid.uuid4(),
            node=node,
            description=description,
            resources=resources,
        )

    @staticmethod
    def update_insight(user, insight_id, data: Dict) -> NodeInsight:
        insight = InsightService.get_insight(user, insight_id)
        if 'description' in data:
            insight.description = InsightService.validate_description(data.get('description'))
        if 'resources' in data:
            insight.resources = InsightService.validate_resources(data.get('resources'))
        insight.save()
        return insight

    @staticmethod
    def delete_insight(user, insight_id) -> None:
        insight = InsightService.get_insight(user, insight_id)
        insight.delete()

    @staticmethod
    def time_ago(moment, now=None) -> str:
        """
        Human friendly age of a timestamp ("just now", "3 hours ago").
        """
        now = now or timezone.now()
        delta = now - moment
        if delta < timedelta(minutes=1):
            return "just now"

        units = [
            (timedelta(days=365), 'year'),
            (timedelta(days=30), 'month'),
            (timedelta(days=7), 'week'),
            (timedelta(days=1), 'day'),
            (timedelta(hours=1), 'hour'),
            (timedelta(minutes=1), 'minute'),
        ]
        for size, label in units:
            if delta >= size:
                count = int(delta / size)
                return f"{count} {label}{'s' if count != 1 else ''} ago"
        return "just now"
