"""
ASGI config for the Django application.

ASGI (Asynchronous Server Gateway Interface) is the successor to WSGI. This
file exposes the ASGI callable as a module-level variable named `application`.

Uvicorn uses this entry point to serve the upload API. Upload bodies are read
synchronously by the views, so each in-flight append or chunk occupies one
worker thread for its duration.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
