"""
WSGI config for the residencia project.

Exposes the WSGI callable as a module-level variable named ``application``.
WebSocket notifications need the ASGI entry point in ``residencia.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'residencia.settings')

application = get_wsgi_application()
