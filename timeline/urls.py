"""
Timeline app URLs

Mounted at /api/v2/timeline/.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    HierarchyValidationView,
    NodeInsightDetailView,
    NodeTypeSchemaView,
    TimelineNodeViewSet,
    TimelineStatsView,
    TimelineTreeView,
)

router = DefaultRouter()
router.register(r'nodes', TimelineNodeViewSet, basename='timeline-node')

urlpatterns = [
    path('tree/', TimelineTreeView.as_view(), name='timeline-tree'),
    path('stats/', TimelineStatsView.as_view(), name='timeline-stats'),
    path('validate/', HierarchyValidationView.as_view(), name='timeline-validate'),
    path('schema/<str:node_type>/', NodeTypeSchemaView.as_view(), name='timeline-schema'),
    path('insights/<uuid:insight_id>/', NodeInsightDetailView.as_view(), name='timeline-insight'),
    path('', include(router.urls)),
]
