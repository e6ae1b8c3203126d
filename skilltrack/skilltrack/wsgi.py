"""
WSGI config for the skilltrack project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'skilltrack.settings')

application = get_wsgi_application()
