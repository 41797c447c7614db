"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - One connection per client; events for every conversation the
               user participates in arrive over it

Authentication:
    JWT token passed as query parameter (?token=<jwt_access_token>) or as
    the "jwt" subprotocol. JWTAuthMiddleware validates it and attaches the
    user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
