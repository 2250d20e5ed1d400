"""
Accounts views

/api/users/ is admin CRUD (or self for detail routes); /api/users/me/ lets
any signed-in user read and edit their own account.
"""
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import User
from .permissions import IsAdminOrSelf, IsAdminRole
from .serializers import CurrentUserUpdateSerializer, UserSerializer


class UserViewSet(viewsets.ModelViewSet):
    queryset = User.objects.order_by('id')
    serializer_class = UserSerializer

    ACTION_PERMISSIONS = {
        'list': [IsAuthenticated, IsAdminRole],
        'create': [IsAuthenticated, IsAdminRole],
        'me': [IsAuthenticated],
    }

    def get_permissions(self):
        classes = self.ACTION_PERMISSIONS.get(self.action, [IsAuthenticated, IsAdminOrSelf])
        return [permission() for permission in classes]

    def get_serializer_class(self):
        # Only admins may change role or quota, even on their own record
        if self.action in ('update', 'partial_update') and not self.request.user.is_admin:
            return CurrentUserUpdateSerializer
        return UserSerializer

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """
        GET or PATCH /api/users/me/
        """
        if request.method == 'GET':
            return Response(self.get_serializer(request.user).data)

        serializer = CurrentUserUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
