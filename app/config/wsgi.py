"""
WSGI config for the chat backend.

Serves the HTTP API only. Live delivery needs the ASGI application
(config.asgi), so production runs under an ASGI server; this entry point
exists for management tooling and WSGI-only hosting of the REST surface.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
