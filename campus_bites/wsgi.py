"""
WSGI config for campus_bites.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "campus_bites.settings")

application = get_wsgi_application()
