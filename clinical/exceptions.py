"""
Error taxonomy of the clinical workflow engine and the DRF handler that
renders it.

Every workflow error carries a user-facing message (rendered as-is by
the front-end), a machine ``code`` and the HTTP status used when it
reaches an API view.
"""
from __future__ import annotations

from typing import Iterable, Optional

from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response


class WorkflowError(Exception):
    code = 'workflow_error'
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(WorkflowError):
    code = 'not_found'
    status_code = 404

    LABELS = {
        'consult': 'la interconsulta',
        'assessment': 'la evaluación',
        'ward_patient': 'el paciente de pase de sala',
        'task': 'la tarea',
    }

    def __init__(self, entity_kind: str, entity_id) -> None:
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        label = self.LABELS.get(entity_kind, entity_kind)
        super().__init__(f"No se encontró {label} ({entity_id})")


class DuplicatePatient(WorkflowError):
    code = 'duplicate_patient'
    status_code = 409

    def __init__(self, identifier: str, conflicting_name: Optional[str]) -> None:
        self.identifier = identifier
        self.conflicting_name = conflicting_name or ''
        super().__init__(f"Ya existe un paciente con DNI {identifier}: {self.conflicting_name}")


class DuplicateTask(WorkflowError):
    """A derived task already exists for the patient (unique constraint hit)."""
    code = 'duplicate_task'
    status_code = 409

    def __init__(self, patient_id) -> None:
        self.patient_id = patient_id
        super().__init__(f"Ya existe una tarea de pendientes para el paciente {patient_id}")


class PersistenceError(WorkflowError):
    code = 'persistence_error'
    status_code = 503

    def __init__(self, cause: BaseException, operation: str = '') -> None:
        self.cause = cause
        self.operation = operation
        prefix = f"Error al {operation}" if operation else "Error de persistencia"
        super().__init__(f"{prefix}: {cause}")


class ValidationFailure(WorkflowError):
    code = 'validation_failure'
    status_code = 400

    def __init__(self, fields: Iterable[str], message: Optional[str] = None) -> None:
        self.fields = list(fields)
        super().__init__(message or f"Faltan datos obligatorios: {', '.join(self.fields)}")


def api_exception_handler(exc, context):
    if isinstance(exc, WorkflowError):
        body = {'ok': False, 'error': {'code': exc.code, 'message': exc.message}}
        if isinstance(exc, ValidationFailure):
            body['error']['fields'] = exc.fields
        return Response(body, status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
