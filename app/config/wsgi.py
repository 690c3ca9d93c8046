"""
WSGI config for the banking service.

Fallback entry point for gunicorn or mod_wsgi deployments; Uvicorn uses
config.asgi.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
