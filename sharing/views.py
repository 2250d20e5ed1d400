"""
Sharing app views

Policy management for node owners, batch access checks and browsing another
user's shared timeline.
"""
from django.contrib.auth import get_user_model
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from journey.exceptions import NotFound
from .serializers import BatchAccessCheckSerializer, NodePolicySerializer, SharedNodeSerializer
from .services import NodePermissionService


class NodePermissionsView(APIView):
    """
    GET lists a node's policies. PUT {"policies": [...]} replaces them.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, node_id):
        node = NodePermissionService.get_node(node_id)
        policies = NodePermissionService.get_node_policies(request.user, node)
        return Response(NodePolicySerializer(policies, many=True).data)

    def put(self, request, node_id):
        node = NodePermissionService.get_node(node_id)
        payload = request.data
        if isinstance(payload, list):
            policies = payload
        else:
            policies = payload.get('policies') if isinstance(payload, dict) else None
        policies = NodePermissionService.set_node_policies(request.user, node, policies)
        return Response(NodePolicySerializer(policies, many=True).data)


class NodePolicyDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, node_id, policy_id):
        node = NodePermissionService.get_node(node_id)
        NodePermissionService.delete_policy(request.user, policy_id, node=node)
        return Response({'deleted': True})


class EffectivePermissionsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, node_id):
        node = NodePermissionService.get_node(node_id)
        return Response(NodePermissionService.effective_permissions(request.user, node))


class BatchAccessCheckView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = BatchAccessCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = NodePermissionService.batch_check_access(
            request.user, data['nodeIds'], data['action'], data['level'],
        )
        return Response(result)


class UserNodesView(APIView):
    """
    GET /api/v2/users/{user_name}/nodes/

    Nodes of ``user_name`` that the caller is allowed to see.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, user_name):
        owner = get_user_model().objects.filter(user_name__iexact=user_name).first()
        if owner is None:
            raise NotFound(f"User {user_name} not found")

        accessible = NodePermissionService.get_accessible_nodes(request.user, owner=owner)
        access = {
            str(item['node'].id): {'accessLevel': item['accessLevel'], 'canEdit': item['canEdit']}
            for item in accessible
        }
        nodes = [item['node'] for item in accessible]
        return Response(SharedNodeSerializer(nodes, many=True, context={'access': access}).data)
