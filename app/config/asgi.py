"""
ASGI config for the chat backend.

Exposes the ASGI callable as a module-level variable named `application`.

Protocols:
    http: Django (REST API, admin, health check, OpenAPI docs)
    websocket: Django Channels, live delivery at ws/chat/

WebSocket stack (outermost first):
    1. AllowedHostsOriginValidator - origin must match ALLOWED_HOSTS
    2. JWTAuthMiddleware - resolves ?token= / "jwt" subprotocol to a user
    3. URLRouter - dispatches to ChatConsumer

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django before importing anything that touches models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
