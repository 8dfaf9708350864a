"""
WSGI config for the gestionale project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'gestionale.config.settings')

application = get_wsgi_application()
