"""
Celery configuration for Charter.
"""
import os
import logging
from celery import Celery
from celery.schedules import crontab
from celery.signals import task_retry

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('charter')

# Load configuration from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@task_retry.connect
def task_retry_handler(sender=None, request=None, reason=None, einfo=None, **extra):
    """Log task retry. Start, completion and failure are logged by LoggedTask."""
    logger.warning(
        f"Task retry: {sender.name}",
        extra={
            'task_id': getattr(request, 'id', None),
            'task_name': sender.name,
            'reason': str(reason)[:200] if reason else None,
            'retry_count': getattr(request, 'retries', 0),
        }
    )


# Celery Beat Schedule for Periodic Tasks
app.conf.beat_schedule = {
    # Flag past-due tasks and compliance deadlines hourly
    'mark-overdue-items': {
        'task': 'formation.mark_overdue_items',
        'schedule': crontab(minute=15),
    },

    # Expire stale access requests every 6 hours
    'expire-access-requests': {
        'task': 'iam.expire_access_requests',
        'schedule': crontab(minute=30, hour='*/6'),
    },

    # Enforce audit log retention daily at 3 AM UTC
    'purge-expired-audit-logs': {
        'task': 'iam.purge_expired_audit_logs',
        'schedule': crontab(minute=0, hour=3),
    },
}

app.conf.timezone = 'UTC'
