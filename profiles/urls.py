"""
Profiles app URLs

Mounted at /api/.
"""
from django.urls import path

from .views import ProfileView, SaveProfileView

urlpatterns = [
    path('profile/', ProfileView.as_view(), name='profile'),
    path('onboarding/save-profile/', SaveProfileView.as_view(), name='onboarding-save-profile'),
]
