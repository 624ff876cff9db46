"""
WSGI config for MealRoute.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'mealroute_core.settings')

application = get_wsgi_application()
