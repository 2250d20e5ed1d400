"""
Timeline app views

Node CRUD, hierarchy navigation, diagnostics and insights. All lookups are
scoped to the requesting user through HierarchyService.
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from journey.exceptions import InvalidNodeType
from .cycles import CycleDetectionService
from .meta import get_meta_schema
from .serializers import (
    NodeCreateSerializer,
    NodeInsightSerializer,
    NodeMoveSerializer,
    NodeUpdateSerializer,
    TimelineNodeSerializer,
    TimelineTreeSerializer,
)
from .services import HierarchyService, InsightService


class TimelineNodeViewSet(viewsets.ViewSet):
    """
    ViewSet for the current user's timeline nodes.

    - list/create: GET/POST /api/v2/timeline/nodes/
    - retrieve/update/delete: /api/v2/timeline/nodes/{id}/
    - move, children, ancestors, subtree, insights: detail actions
    """

    permission_classes = [IsAuthenticated]

    def list(self, request):
        nodes = HierarchyService.list_nodes(request.user, request.query_params.get('type'))
        return Response(TimelineNodeSerializer(nodes, many=True).data)

    def create(self, request):
        serializer = NodeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        node = HierarchyService.create_node(
            request.user,
            data['type'],
            meta=data.get('meta'),
            parent_id=data.get('parentId'),
        )
        return Response(TimelineNodeSerializer(node).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        node = HierarchyService.get_node(request.user, pk)
        return Response(TimelineNodeSerializer(node).data)

    def partial_update(self, request, pk=None):
        serializer = NodeUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        kwargs = {'meta': data.get('meta')}
        if 'parentId' in data:
            kwargs['parent_id'] = data['parentId']
        node = HierarchyService.update_node(request.user, pk, **kwargs)
        return Response(TimelineNodeSerializer(node).data)

    def update(self, request, pk=None):
        return self.partial_update(request, pk)

    def destroy(self, request, pk=None):
        # Resolve first so a missing node is a 404, not {"deleted": false}
        HierarchyService.get_node(request.user, pk)
        deleted = HierarchyService.delete_node(request.user, pk)
        return Response({'deleted': deleted})

    @action(detail=True, methods=['post'])
    def move(self, request, pk=None):
        """
        POST {"parentId": "<uuid>"} or {"parentId": null} to move to the root.
        """
        serializer = NodeMoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        node = HierarchyService.move_node(request.user, pk, serializer.validated_data.get('parentId'))
        return Response(TimelineNodeSerializer(node).data)

    @action(detail=True, methods=['get'])
    def children(self, request, pk=None):
        nodes = HierarchyService.get_children(request.user, pk)
        return Response(TimelineNodeSerializer(nodes, many=True).data)

    @action(detail=True, methods=['get'])
    def ancestors(self, request, pk=None):
        nodes = HierarchyService.get_ancestors(request.user, pk)
        return Response(TimelineNodeSerializer(nodes, many=True).data)

    @action(detail=True, methods=['get'])
    def subtree(self, request, pk=None):
        try:
            max_depth = int(request.query_params.get('maxDepth', HierarchyService.DEFAULT_SUBTREE_DEPTH))
        except ValueError:
            max_depth = HierarchyService.DEFAULT_SUBTREE_DEPTH
        root = HierarchyService.get_subtree(request.user, pk, max_depth=max_depth)
        return Response(TimelineTreeSerializer(root).data)

    @action(detail=True, methods=['get', 'post'])
    def insights(self, request, pk=None):
        if request.method == 'GET':
            insights = InsightService.list_insights(request.user, pk)
            return Response(NodeInsightSerializer(insights, many=True).data)

        insight = InsightService.create_insight(request.user, pk, request.data)
        return Response(NodeInsightSerializer(insight).data, status=status.HTTP_201_CREATED)


class TimelineTreeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        roots = HierarchyService.get_full_tree(request.user)
        return Response(TimelineTreeSerializer(roots, many=True).data)


class TimelineStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(HierarchyService.get_hierarchy_stats(request.user))


class HierarchyValidationView(APIView):
    """
    GET analyzes the stored hierarchy.
    POST {"changes": [{"nodeId", "newParentId"}]} checks proposed moves.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(HierarchyService.analyze_hierarchy(request.user))

    def post(self, request):
        if not isinstance(request.data, dict):
            raise ValidationError({'changes': ['Request body must be an object with a changes list.']})
        changes = request.data.get('changes')
        if not isinstance(changes, list):
            changes = []
        result = CycleDetectionService.validate_hierarchy_change(
            HierarchyService.get_parent_map(request.user),
            [change for change in changes if isinstance(change, dict)],
        )
        return Response(result)


class NodeTypeSchemaView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, node_type):
        if node_type not in HierarchyService.VALID_TYPES:
            raise InvalidNodeType(
                f"Unknown node type: {node_type}",
                details={'validTypes': HierarchyService.VALID_TYPES},
            )
        return Response({
            'type': node_type,
            'allowedChildren': HierarchyService.get_allowed_children(node_type),
            'metaSchema': get_meta_schema(node_type),
        })


class NodeInsightDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def put(self, request, insight_id):
        insight = InsightService.update_insight(request.user, insight_id, request.data)
        return Response(NodeInsightSerializer(insight).data)

    def patch(self, request, insight_id):
        return self.put(request, insight_id)

    def delete(self, request, insight_id):
        InsightService.delete_insight(request.user, insight_id)
        return Response({'deleted': True})
