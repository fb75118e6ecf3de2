"""
ASGI entry point: Django for HTTP, Channels for the ``ws/updates/`` feed.

Django is set up before the consumer import because the consumer module
pulls in the booking service and with it the models.
"""
import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital_ops.settings")
django.setup()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from django.core.asgi import get_asgi_application  # noqa: E402
from django.urls import path  # noqa: E402

from clinic.realtime.consumers import UpdatesConsumer  # noqa: E402

application = ProtocolTypeRouter({
    "http": get_asgi_application(),
    "websocket": AuthMiddlewareStack(URLRouter([
        path("ws/updates/", UpdatesConsumer.as_asgi()),
    ])),
})
