"""
Consult workflow endpoints.

Thin wrappers over :class:`clinical.services.workflow.WorkflowOrchestrator`.
Workflow errors are not caught here: the DRF exception handler renders
them as ``{'ok': False, 'error': {...}}`` with their own HTTP status.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinical.models import WardPatient
from clinical.serializers.workflow import (
    ConsultResponseSerializer,
    ConsultStatusSerializer,
    PreviewQuerySerializer,
    PromoteEditedSerializer,
    PromoteSerializer,
    ResolveSerializer,
    TemplateQuerySerializer,
)
from clinical.services.notes import render_note_template
from clinical.services.workflow import WorkflowOrchestrator
from clinical.stores import ConsultStore


def serialize_ward_patient(patient: WardPatient) -> dict:
    return {
        'id': patient.pk,
        'nombre': patient.nombre,
        'dni': patient.dni,
        'edad': patient.edad,
        'cama': patient.cama,
        'fecha': patient.fecha.isoformat() if patient.fecha else None,
        'antecedentes': patient.antecedentes,
        'motivo_consulta': patient.motivo_consulta,
        'examen_fisico': patient.examen_fisico,
        'estudios': patient.estudios,
        'diagnostico': patient.diagnostico,
        'plan': patient.plan,
        'pendientes': patient.pendientes,
        'severidad': patient.severidad,
        'image_thumbnail_url': patient.image_thumbnail_url,
        'image_full_url': patient.image_full_url,
        'exa_url': patient.exa_url,
        'hospital_context': patient.hospital_context,
        'display_order': patient.display_order,
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def consult_promote(request, consult_id: int):
    s = PromoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient_id = WorkflowOrchestrator().promote_to_ward_round(consult_id, s.validated_data['assessmentId'])
    return Response({'ok': True, 'patientId': patient_id}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def consult_preview(request, consult_id: int):
    q = PreviewQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    candidate = WorkflowOrchestrator().preview(consult_id, q.validated_data['assessmentId'])
    return Response({'ok': True, 'data': serialize_ward_patient(candidate)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def consult_promote_edited(request):
    s = PromoteEditedSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    fields = dict(s.validated_data)
    assessment_id = fields.pop('assessmentId')
    patient_id = WorkflowOrchestrator().promote_edited(assessment_id, fields)
    return Response({'ok': True, 'patientId': patient_id}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def consult_response(request, consult_id: int):
    s = ConsultResponseSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    WorkflowOrchestrator().update_response(consult_id, s.validated_data['respuesta'])
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def consult_status(request, consult_id: int):
    s = ConsultStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    new_status = WorkflowOrchestrator().transition_consult(consult_id, s.validated_data['status'])
    return Response({'ok': True, 'status': new_status})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def consult_resolve(request, consult_id: int):
    s = ResolveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    WorkflowOrchestrator().resolve_consult(
        consult_id, s.validated_data['assessmentId'], s.validated_data.get('wardPatientId'),
    )
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def consult_template(request, consult_id: int):
    """Evolution note skeleton pre-filled from the consult."""
    q = TemplateQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    consult = ConsultStore().get(consult_id)
    note_format = q.validated_data['layout']
    return Response({'ok': True, 'format': note_format, 'template': render_note_template(consult, note_format)})
