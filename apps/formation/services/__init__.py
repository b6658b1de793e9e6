"""
Formation services.
"""
from apps.formation.services.setup_service import SetupService
from apps.formation.services.progress_service import ProgressService
from apps.formation.services.workflow_service import WorkflowService
from apps.formation.services.operations_service import OperationsService
from apps.formation.services.document_service import DocumentService
from apps.formation.services.task_service import TaskService
from apps.formation.services.home_service import HomeService

__all__ = [
    'SetupService',
    'ProgressService',
    'WorkflowService',
    'OperationsService',
    'DocumentService',
    'TaskService',
    'HomeService',
]
