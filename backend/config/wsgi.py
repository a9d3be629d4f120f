"""
WSGI config for the backend.

Process entry point: builds the auth runtime and starts its background
maintenance tasks (WebAuthn session sweep, OTP retention purge) when
BACKGROUND_TASKS_ENABLED is set.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.local")

application = get_wsgi_application()

from django.conf import settings  # noqa: E402

from apps.accounts.runtime import get_runtime  # noqa: E402

if settings.BACKGROUND_TASKS_ENABLED:
    get_runtime().start_background_tasks()
