"""
Store collaborators used by the workflow engine.

Each store is a thin ORM-backed repository over one table.  They are the
only place where database exceptions are seen: a missing row becomes
:class:`NotFound`, a unique-constraint violation becomes the matching
duplicate error and any other ``DatabaseError`` (driver timeouts
included) becomes :class:`PersistenceError`.  Services receive stores
through their constructors so tests can substitute doubles.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, List

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from clinical.exceptions import DuplicatePatient, DuplicateTask, NotFound, PersistenceError
from clinical.models import ClinicalAssessment, ConsultRequest, Task, WardPatient

logger = logging.getLogger(__name__)


@contextmanager
def _db_errors(operation: str):
    try:
        yield
    except DatabaseError as exc:
        logger.error("store call failed (%s): %s", operation, exc)
        raise PersistenceError(exc, operation) from exc


def write_scope():
    """Transaction around a multi-step write, unless WORKFLOW_ATOMIC_WRITES is off."""
    if getattr(settings, 'WORKFLOW_ATOMIC_WRITES', True):
        return transaction.atomic()
    return nullcontext()


def _update_row(model, pk, fields: Dict[str, Any], kind: str, operation: str) -> None:
    values = dict(fields)
    if any(f.name == 'updated_at' for f in model._meta.get_fields()):
        values.setdefault('updated_at', timezone.now())
    with _db_errors(operation):
        updated = model.objects.filter(pk=pk).update(**values)
    if not updated:
        raise NotFound(kind, pk)


class ConsultStore:
    def get(self, consult_id) -> ConsultRequest:
        with _db_errors('leer la interconsulta'):
            consult = ConsultRequest.objects.filter(pk=consult_id).first()
        if consult is None:
            raise NotFound('consult', consult_id)
        return consult

    def update(self, consult_id, fields: Dict[str, Any]) -> None:
        _update_row(ConsultRequest, consult_id, fields, 'consult', 'actualizar la interconsulta')


class AssessmentStore:
    def get(self, assessment_id) -> ClinicalAssessment:
        with _db_errors('leer la evaluación'):
            assessment = ClinicalAssessment.objects.filter(pk=assessment_id).first()
        if assessment is None:
            raise NotFound('assessment', assessment_id)
        return assessment

    def mark_response_sent(self, assessment_id) -> None:
        with _db_errors('marcar la evaluación como respondida'):
            updated = ClinicalAssessment.objects.filter(pk=assessment_id).update(response_sent=True)
        if not updated:
            raise NotFound('assessment', assessment_id)


class WardPatientStore:
    def get(self, patient_id) -> WardPatient:
        with _db_errors('leer el paciente de pase de sala'):
            patient = WardPatient.objects.filter(pk=patient_id).first()
        if patient is None:
            raise NotFound('ward_patient', patient_id)
        return patient

    def find_by_identifier_and_context(self, dni: str, hospital_context: str) -> List[WardPatient]:
        with _db_errors('buscar pacientes por DNI'):
            return list(
                WardPatient.objects.filter(dni=dni, hospital_context=hospital_context).order_by('id')
            )

    def insert(self, candidate: WardPatient) -> int:
        try:
            # savepoint: a constraint hit must leave an outer transaction usable
            with transaction.atomic():
                candidate.save(force_insert=True)
        except IntegrityError as exc:
            logger.warning("ward patient insert hit unique constraint dni=%s context=%s",
                           candidate.dni, candidate.hospital_context)
            existing = self.find_by_identifier_and_context(candidate.dni, candidate.hospital_context)
            if existing:
                raise DuplicatePatient(candidate.dni, existing[0].nombre) from exc
            raise PersistenceError(exc, 'insertar el paciente de pase de sala') from exc
        except DatabaseError as exc:
            logger.error("ward patient insert failed: %s", exc)
            raise PersistenceError(exc, 'insertar el paciente de pase de sala') from exc
        return candidate.pk


class PatientStore:
    """Ward patients as seen by the pendientes synchronization."""

    def list_all(self) -> List[WardPatient]:
        with _db_errors('listar pacientes de pase de sala'):
            return list(WardPatient.objects.order_by('display_order', 'id'))

    def get(self, patient_id) -> WardPatient:
        return WardPatientStore().get(patient_id)

    def update(self, patient_id, fields: Dict[str, Any]) -> None:
        _update_row(WardPatient, patient_id, fields, 'ward_patient', 'actualizar el paciente de pase de sala')


class TaskStore:
    def get(self, task_id) -> Task:
        with _db_errors('leer la tarea'):
            task = Task.objects.filter(pk=task_id).first()
        if task is None:
            raise NotFound('task', task_id)
        return task

    def find_by_patient_and_source(self, patient_id, source: str) -> List[Task]:
        with _db_errors('buscar tareas del paciente'):
            return list(
                Task.objects.filter(patient_id=patient_id, source=source).order_by('created_at', 'id')
            )

    def insert(self, task: Task) -> int:
        try:
            with transaction.atomic():
                task.save(force_insert=True)
        except IntegrityError as exc:
            logger.warning("task insert hit unique constraint patient=%s", task.patient_id)
            raise DuplicateTask(task.patient_id) from exc
        except DatabaseError as exc:
            logger.error("task insert failed: %s", exc)
            raise PersistenceError(exc, 'crear la tarea') from exc
        return task.pk

    def update(self, task_id, fields: Dict[str, Any]) -> None:
        _update_row(Task, task_id, fields, 'task', 'actualizar la tarea')
