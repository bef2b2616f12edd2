"""
ASGI config for the Django application.

Uvicorn serves the application through this entry point. Only HTTP is
routed; the payment API has no WebSocket surface.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
