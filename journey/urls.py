"""
URL configuration for the career journey project.

- /api/users/ and /api/v2/organizations/ are router viewsets
- /api/v2/timeline/ hierarchy nodes, insights and stats
- /api/v2/ node permissions and shared timelines
- /api/ profile and onboarding
- /api/agent/ career agent conversations
"""
from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounts.views import UserViewSet
from organizations.views import OrganizationViewSet

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')

v2_router = DefaultRouter()
v2_router.register(r'organizations', OrganizationViewSet, basename='organization')

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include(router.urls)),
    path('api/', include('profiles.urls')),
    path('api/agent/', include('agent.urls')),
    path('api/v2/timeline/', include('timeline.urls')),
    path('api/v2/', include(v2_router.urls)),
    path('api/v2/', include('sharing.urls')),
    path('api-auth/', include('rest_framework.urls')),
]
