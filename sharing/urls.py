"""
Sharing app URLs

Mounted at /api/v2/.
"""
from django.urls import path

from .views import (
    BatchAccessCheckView,
    EffectivePermissionsView,
    NodePermissionsView,
    NodePolicyDetailView,
    UserNodesView,
)

urlpatterns = [
    path('nodes/permissions/check/', BatchAccessCheckView.as_view(), name='node-permissions-check'),
    path('nodes/<uuid:node_id>/permissions/', NodePermissionsView.as_view(), name='node-permissions'),
    path(
        'nodes/<uuid:node_id>/permissions/effective/',
        EffectivePermissionsView.as_view(),
        name='node-permissions-effective',
    ),
    path(
        'nodes/<uuid:node_id>/permissions/<uuid:policy_id>/',
        NodePolicyDetailView.as_view(),
        name='node-policy-detail',
    ),
    path('users/<str:user_name>/nodes/', UserNodesView.as_view(), name='user-nodes'),
]
