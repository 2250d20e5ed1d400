"""
Agent app URLs

Mounted at /api/agent/.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AgentTurnViewSet, CareerConversationViewSet

router = DefaultRouter()
router.register(r'conversations', CareerConversationViewSet, basename='agent-conversation')
router.register(r'turns', AgentTurnViewSet, basename='agent-turn')

urlpatterns = [
    path('', include(router.urls)),
]
