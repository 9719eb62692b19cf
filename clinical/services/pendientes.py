"""
Synchronization between a ward patient's pendientes and the task board.

Every ward patient with non-empty pendientes owns exactly one task with
``source='ward_rounds'`` whose description mirrors the text.  Emptying
the pendientes completes that task; completing the task from the board
clears the pendientes, so both directions converge on the same state
without ever recreating a completed task.

The engine reports success as a boolean and never raises: store failures
are logged with the ids involved and turn the result into ``False``.
"""
from __future__ import annotations

import logging
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.utils import timezone

from clinical.exceptions import DuplicateTask, WorkflowError
from clinical.models import Task, WardPatient
from clinical.services.audit import try_log_action
from clinical.services.priority import severity_to_priority
from clinical.stores import PatientStore, TaskStore, write_scope

logger = logging.getLogger(__name__)


def task_title(patient: WardPatient) -> str:
    return f"{patient.nombre} ({patient.cama}) - Pendientes"


class TaskSyncEngine:
    def __init__(self, patients: Optional[PatientStore]=None, tasks: Optional[TaskStore]=None) -> None:
        self.patients = patients or PatientStore()
        self.tasks = tasks or TaskStore()

    def sync_one(self, patient: WardPatient, notify: bool = True) -> bool:
        """Create or refresh the ward-rounds task of one patient.

        An existing task is reopened as ``pending`` on every sync; empty
        pendientes complete the patient's tasks instead.
        """
        if not (patient.pendientes or '').strip():
            return self.complete_patient_tasks(patient.pk, notify=notify)

        fields = {
            'title': task_title(patient),
            'description': patient.pendientes,
            'priority': severity_to_priority(patient.severidad),
            'status': Task.STATUS_PENDING,
        }
        try:
            existing = self.tasks.find_by_patient_and_source(patient.pk, Task.SOURCE_WARD_ROUNDS)
            if existing:
                self.tasks.update(existing[0].pk, fields)
            else:
                try:
                    self.tasks.insert(Task(patient_id=patient.pk, source=Task.SOURCE_WARD_ROUNDS, **fields))
                except DuplicateTask:
                    # created concurrently since the lookup
                    existing = self.tasks.find_by_patient_and_source(patient.pk, Task.SOURCE_WARD_ROUNDS)
                    if not existing:
                        raise
                    self.tasks.update(existing[0].pk, fields)
        except WorkflowError as exc:
            logger.warning("pendientes sync failed for ward patient %s: %s", patient.pk, exc)
            return False

        if notify:
            self._notify('sync', patientIds=[patient.pk])
        return True

    def complete_patient_tasks(self, patient_id, notify: bool = True) -> bool:
        """Complete every open ward-rounds task of a patient."""
        try:
            tasks = self.tasks.find_by_patient_and_source(patient_id, Task.SOURCE_WARD_ROUNDS)
            open_tasks = [t for t in tasks if t.status != Task.STATUS_COMPLETED]
            for task in open_tasks:
                self.tasks.update(task.pk, {'status': Task.STATUS_COMPLETED})
        except WorkflowError as exc:
            logger.warning("could not complete tasks of ward patient %s: %s", patient_id, exc)
            return False

        if open_tasks:
            logger.info("completed %d task(s) of ward patient %s", len(open_tasks), patient_id)
            if notify:
                self._notify('patient_cleared', patientIds=[patient_id])
        return True

    def sync_all(self) -> bool:
        """Sync every ward patient; True only when every patient synced."""
        try:
            patients = self.patients.list_all()
        except WorkflowError as exc:
            logger.error("pendientes sync aborted, could not list ward patients: %s", exc)
            return False

        results = [self.sync_one(patient, notify=False) for patient in patients]
        failed = results.count(False)
        if failed:
            logger.warning("pendientes sync finished with %d of %d patient(s) failing", failed, len(results))
        else:
            logger.info("pendientes sync finished for %d patient(s)", len(results))
        self._notify('sync_all', total=len(results), failed=failed)
        return not failed

    def complete_cascade(self, task_id, clear_patient_pendientes: bool = True) -> bool:
        """Complete a task and, for ward-rounds tasks, clear the patient's pendientes."""
        try:
            with write_scope():
                task = self.tasks.get(task_id)
                self.tasks.update(task.pk, {'status': Task.STATUS_COMPLETED})
                cleared = (
                    task.source == Task.SOURCE_WARD_ROUNDS
                    and clear_patient_pendientes
                    and task.patient_id is not None
                )
                if cleared:
                    self.patients.update(task.patient_id, {'pendientes': ''})
        except WorkflowError as exc:
            logger.warning("completion cascade failed for task %s: %s", task_id, exc)
            return False

        try_log_action(action='task_complete', object_type='task', object_id=task.pk,
                       detail={'patientId': task.patient_id, 'clearedPendientes': cleared})
        self._notify('complete', taskIds=[task.pk],
                     patientIds=[task.patient_id] if task.patient_id is not None else [])
        return True

    def _notify(self, reason: str, **data) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        event = {"type": "tasks.changed", "reason": reason, "ts": timezone.now().isoformat()}
        event.update(data)
        try:
            async_to_sync(channel_layer.group_send)(settings.PENDIENTES_CHANNEL_GROUP, event)
        except Exception as exc:
            # delivery is best effort
            logger.warning("tasks.changed broadcast failed: %s", exc)
