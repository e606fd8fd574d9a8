"""
Celery configuration for the Django application.

Celery runs the escrow engine's background work:
- Stripe webhook processing (payments.tasks.process_webhook_event)
- Delivery reconciliation, escrow release and the orphan authorization
  audit (payments.workers), scheduled by django-celery-beat

Redis is both the message broker and result backend. The beat schedule
lives in the database (DatabaseScheduler) and is seeded by a payments
data migration, so intervals can be changed from the admin without a
deploy.

Usage:
    # Run a job immediately:
    from payments.workers import release_funds
    release_funds.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
