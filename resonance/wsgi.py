"""
WSGI config for the Resonance project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'resonance.settings')

application = get_wsgi_application()
