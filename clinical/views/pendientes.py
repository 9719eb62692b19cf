"""
Pendientes synchronization endpoints.

The sync engine reports failures as ``False`` rather than raising, so
these views translate that into a 503 with the usual error envelope.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinical.serializers.workflow import TaskCompleteSerializer
from clinical.services.pendientes import TaskSyncEngine
from clinical.stores import PatientStore, TaskStore


def _failed(message: str) -> Response:
    return Response(
        {'ok': False, 'error': {'code': 'sync_failed', 'message': message}},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def pendientes_sync(request):
    if not TaskSyncEngine().sync_all():
        return _failed('No se pudieron sincronizar todos los pendientes')
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ward_patient_sync(request, patient_id: int):
    # NotFound propagates to the exception handler
    patient = PatientStore().get(patient_id)
    if not TaskSyncEngine().sync_one(patient):
        return _failed(f'No se pudieron sincronizar los pendientes del paciente {patient_id}')
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def task_complete(request, task_id: int):
    s = TaskCompleteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    TaskStore().get(task_id)
    if not TaskSyncEngine().complete_cascade(task_id, s.validated_data['clearPatientPendientes']):
        return _failed(f'No se pudo completar la tarea {task_id}')
    return Response({'ok': True})
