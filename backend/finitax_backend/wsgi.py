"""WSGI entry point for FiniTax."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "finitax_backend.settings")

application = get_wsgi_application()
