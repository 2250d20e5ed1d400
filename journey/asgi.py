"""
ASGI config for the journey project.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'journey.settings')

application = get_asgi_application()
