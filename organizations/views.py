"""
Organizations app views

Organization CRUD, search and membership endpoints.
"""
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsAdminRole
from journey.exceptions import AccessDenied
from .models import Organization, OrgMember
from .serializers import AddMemberSerializer, OrganizationSerializer, OrgMemberSerializer
from .services import OrganizationService


class OrganizationViewSet(viewsets.ModelViewSet):
    """
    ViewSet for organizations.

    - Any authenticated user can list, search and create (find-or-create)
    - Updating, deleting and managing other members is admin only
    - Users join and leave organizations themselves
    """

    serializer_class = OrganizationSerializer
    queryset = Organization.objects.all()

    def get_permissions(self):
        if self.action in ['update', 'partial_update', 'destroy', 'remove_member']:
            permission_classes = [IsAuthenticated, IsAdminRole]
        else:
            permission_classes = [IsAuthenticated]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        queryset = Organization.objects.all()
        org_type = self.request.query_params.get('type')
        if org_type:
            queryset = queryset.filter(type=org_type)
        return queryset

    def create(self, request, *args, **kwargs):
        organization = OrganizationService.create_organization(request.data)
        serializer = self.get_serializer(organization)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        organization = OrganizationService.update_organization(kwargs['pk'], request.data)
        return Response(self.get_serializer(organization).data)

    def destroy(self, request, *args, **kwargs):
        OrganizationService.delete_organization(kwargs['pk'])
        return Response({'deleted': True})

    @action(detail=False, methods=['get'])
    def search(self, request):
        """
        GET /api/v2/organizations/search/?q=acme&page=1&limit=10
        """
        try:
            page = int(request.query_params.get('page', 1))
            limit = int(request.query_params.get('limit', 10))
        except ValueError:
            page, limit = 1, 10
        result = OrganizationService.search_organizations(
            request.query_params.get('q', ''),
            page=page,
            limit=limit,
        )
        return Response({
            'organizations': self.get_serializer(result['organizations'], many=True).data,
            'pagination': result['pagination'],
        })

    @action(detail=False, methods=['get'])
    def mine(self, request):
        organizations = OrganizationService.get_user_organizations(request.user)
        return Response(self.get_serializer(organizations, many=True).data)

    @action(detail=True, methods=['get', 'post'])
    def members(self, request, pk=None):
        """
        GET lists members. POST adds a member (admins may add anyone,
        other users only themselves).
        """
        organization = OrganizationService.get_organization(pk)
        if request.method == 'GET':
            members = OrgMember.objects.filter(organization=organization).select_related('user')
            return Response(OrgMemberSerializer(members, many=True).data)

        serializer = AddMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_id = serializer.validated_data['user_id']
        if user_id != request.user.id and not request.user.is_admin:
            raise AccessDenied('Only admins can add other users.')
        user = get_object_or_404(get_user_model(), id=user_id)
        member = OrganizationService.add_member(organization.id, user, serializer.validated_data['role'])
        return Response(OrgMemberSerializer(member).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'], url_path=r'members/(?P<user_id>\d+)')
    def remove_member(self, request, pk=None, user_id=None):
        user = get_object_or_404(get_user_model(), id=user_id)
        OrganizationService.remove_member(pk, user)
        return Response({'removed': True})

    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        member = OrganizationService.add_member(pk, request.user)
        return Response(OrgMemberSerializer(member).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        OrganizationService.remove_member(pk, request.user)
        return Response({'left': True})
