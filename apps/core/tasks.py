"""
Base Celery task class with logging and Sentry reporting.
"""
import logging
from celery import Task
from apps.core.sentry_utils import capture_exception

logger = logging.getLogger(__name__)

SENSITIVE_KWARGS = ('password', 'token', 'api_key', 'secret', 'email')


class LoggedTask(Task):
    """
    Logs task start, completion and failure.

    Failures are reported to Sentry with the task name and id, then re-raised
    so Celery's own retry and failure handling still applies.
    """

    def __call__(self, *args, **kwargs):
        task_id = self.request.id
        logger.info(
            f"Task started: {self.name}",
            extra={'task_id': task_id, 'task_name': self.name, 'kwargs': self._sanitize_kwargs(kwargs)}
        )
        try:
            result = super().__call__(*args, **kwargs)
        except Exception as exc:
            logger.error(
                f"Task failed: {self.name}",
                extra={'task_id': task_id, 'task_name': self.name, 'exception': str(exc)},
                exc_info=True
            )
            capture_exception(exc, task_name=self.name, task_id=task_id)
            raise

        logger.info(
            f"Task completed: {self.name}",
            extra={'task_id': task_id, 'task_name': self.name, 'result': self._summarize(result)}
        )
        return result

    def _sanitize_kwargs(self, kwargs):
        return {
            key: '********' if any(s in key.lower() for s in SENSITIVE_KWARGS) else value
            for key, value in (kwargs or {}).items()
        }

    def _summarize(self, result):
        if result is None:
            return None
        text = str(result)
        return text if len(text) <= 200 else text[:200] + '... (truncated)'
