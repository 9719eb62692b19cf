"""
Consult → evolution note → ward round workflow.

A consult (interconsulta) is answered with an evolution note stored as a
:class:`ClinicalAssessment`.  Promoting the pair materializes a
:class:`WardPatient` for the ward-round list, guarded against a second
entry for the same DNI in the same hospital context, and flags the
assessment as answered.

Each step may fail and stops the remaining ones.  Failures are raised
as :mod:`clinical.exceptions` errors carrying the ids involved, so the
caller can render a precise message and decide whether to retry.

The duplicate lookup before inserting is only a fast path for a friendly
message: two concurrent promotions of the same patient race between the
lookup and the insert, and the unique constraint on
``ward_round_patients(dni, hospital_context)`` settles the race (the
store maps the violation to the same :class:`DuplicatePatient`).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from django.conf import settings
from django.utils import timezone

from clinical.exceptions import DuplicatePatient, ValidationFailure
from clinical.models import ClinicalAssessment, ConsultRequest, WardPatient
from clinical.services.audit import try_log_action
from clinical.services.notes import NOTE_FORMAT_CONSULT, ParsedNote, parse_note, text_of
from clinical.stores import AssessmentStore, ConsultStore, WardPatientStore, write_scope

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = 'II'
DEFAULT_DISPLAY_ORDER = 9999
REQUIRED_FIELDS = ('nombre', 'dni')

# Fields a user may adjust in the confirmation dialog before saving
EDITABLE_FIELDS = (
    'nombre', 'dni', 'edad', 'cama',
    'antecedentes', 'motivo_consulta', 'examen_fisico', 'estudios',
    'diagnostico', 'plan', 'pendientes', 'severidad',
    'image_thumbnail_url', 'image_full_url', 'exa_url',
    'hospital_context', 'display_order',
)

# Consult lifecycle; Resuelta and Cancelada are final
CONSULT_TRANSITIONS = {
    ConsultRequest.STATUS_REQUESTED: {
        ConsultRequest.STATUS_IN_PROGRESS,
        ConsultRequest.STATUS_RESOLVED,
        ConsultRequest.STATUS_CANCELLED,
    },
    ConsultRequest.STATUS_IN_PROGRESS: {
        ConsultRequest.STATUS_RESOLVED,
        ConsultRequest.STATUS_CANCELLED,
    },
    ConsultRequest.STATUS_RESOLVED: set(),
    ConsultRequest.STATUS_CANCELLED: set(),
}


def _first_filled(*values: Any) -> str:
    for value in values:
        text = str(value).strip() if value is not None else ''
        if text:
            return text
    return ''


def default_hospital_context() -> str:
    return getattr(settings, 'DEFAULT_HOSPITAL_CONTEXT', 'Posadas')


def narrative_fields(parsed: ParsedNote) -> Dict[str, str]:
    """Ward patient narrative fields for either note layout.

    A consult answer carries no pendientes: its Interpretación is the
    diagnosis and its Sugerencias the plan.
    """
    sections = parsed.sections
    if parsed.format == NOTE_FORMAT_CONSULT:
        return {
            'antecedentes': sections.antecedentes,
            'motivo_consulta': sections.enfermedad_actual,
            'examen_fisico': sections.examen_neurologico,
            'estudios': sections.estudios_complementarios,
            'diagnostico': sections.interpretacion,
            'plan': sections.sugerencias,
            'pendientes': '',
        }
    return {
        'antecedentes': sections.antecedentes,
        'motivo_consulta': sections.enfermedad_actual,
        'examen_fisico': sections.examen_fisico,
        'estudios': sections.estudios_complementarios,
        'diagnostico': text_of(parsed.diagnosis),
        'plan': sections.conducta,
        'pendientes': sections.pendientes,
    }


class WorkflowOrchestrator:
    def __init__(self, consults: Optional[ConsultStore]=None, assessments: Optional[AssessmentStore]=None,
                 ward_patients: Optional[WardPatientStore]=None) -> None:
        self.consults = consults or ConsultStore()
        self.assessments = assessments or AssessmentStore()
        self.ward_patients = ward_patients or WardPatientStore()

    # ------------------------------------------------------------------
    # Promotion to ward rounds
    # ------------------------------------------------------------------
    def build_candidate(self, consult: ConsultRequest, assessment: ClinicalAssessment) -> WardPatient:
        """Map a consult and its evolution note to an unsaved ward patient.

        Identity fields prefer the note's patient lines, then the consult,
        then the assessment row.  Narrative fields come from the note's
        sections (see :func:`narrative_fields`).
        """
        parsed = parse_note(assessment.clinical_notes or '')
        datos = parsed.patient
        return WardPatient(
            nombre=_first_filled(datos.nombre, consult.nombre, assessment.patient_name),
            dni=_first_filled(datos.dni, consult.dni, assessment.patient_dni),
            edad=_first_filled(datos.edad, consult.edad, assessment.patient_age),
            cama=_first_filled(datos.cama, consult.cama),
            fecha=timezone.localdate(),
            severidad=DEFAULT_SEVERITY,
            image_thumbnail_url=list(consult.image_thumbnail_url or []),
            image_full_url=list(consult.image_full_url or []),
            exa_url=list(consult.exa_url or []),
            hospital_context=_first_filled(
                consult.hospital_context, assessment.hospital_context, default_hospital_context()
            ),
            display_order=DEFAULT_DISPLAY_ORDER,
            **narrative_fields(parsed),
        )

    def preview(self, consult_id, assessment_id) -> WardPatient:
        """Mapped candidate for the confirmation dialog; writes nothing."""
        consult = self.consults.get(consult_id)
        assessment = self.assessments.get(assessment_id)
        return self.build_candidate(consult, assessment)

    def promote_to_ward_round(self, consult_id, assessment_id) -> int:
        """Create the ward-round entry for an answered consult.

        Returns the new ward patient id.  Raises ``NotFound`` for a missing
        consult or assessment, ``ValidationFailure`` when name or DNI are
        still empty after every fallback, ``DuplicatePatient`` when the DNI
        already has an entry in the hospital context and
        ``PersistenceError`` when a write fails.  Nothing is written
        before the duplicate check passes, and the consult itself is left
        untouched (see :meth:`resolve_consult`).
        """
        consult = self.consults.get(consult_id)
        assessment = self.assessments.get(assessment_id)
        candidate = self.build_candidate(consult, assessment)
        patient_id = self._save_candidate(
            candidate, assessment_id, 'ward_patient_promote',
            {'consultId': consult.pk, 'assessmentId': assessment.pk, 'dni': candidate.dni},
        )
        logger.info("consult %s promoted to ward patient %s (assessment %s)", consult_id, patient_id, assessment_id)
        return patient_id

    def promote_edited(self, assessment_id, fields: Mapping[str, Any]) -> int:
        """Save a ward patient from data the user edited after preview."""
        assessment = self.assessments.get(assessment_id)
        values: Dict[str, Any] = {k: fields[k] for k in EDITABLE_FIELDS if fields.get(k) is not None}
        values['hospital_context'] = _first_filled(
            values.get('hospital_context'), assessment.hospital_context, default_hospital_context()
        )
        values['severidad'] = _first_filled(values.get('severidad'), DEFAULT_SEVERITY)
        values.setdefault('display_order', DEFAULT_DISPLAY_ORDER)
        for key in ('image_thumbnail_url', 'image_full_url', 'exa_url'):
            values[key] = list(values.get(key) or [])
        for key in ('nombre', 'dni', 'edad', 'cama'):
            values[key] = _first_filled(values.get(key))
        candidate = WardPatient(fecha=timezone.localdate(), **values)
        patient_id = self._save_candidate(
            candidate, assessment_id, 'ward_patient_promote_edited',
            {'assessmentId': assessment.pk, 'dni': candidate.dni},
        )
        logger.info("edited ward patient %s saved from assessment %s", patient_id, assessment_id)
        return patient_id

    def _save_candidate(self, candidate: WardPatient, assessment_id, action: str, detail: Dict[str, Any]) -> int:
        self._validate(candidate)
        self._guard_duplicate(candidate)
        with write_scope():
            patient_id = self.ward_patients.insert(candidate)
            self.assessments.mark_response_sent(assessment_id)
        try_log_action(action=action, object_type='ward_patient', object_id=patient_id, detail=detail)
        return patient_id

    def _validate(self, candidate: WardPatient) -> None:
        missing = [name for name in REQUIRED_FIELDS if not getattr(candidate, name)]
        if missing:
            logger.warning("ward patient candidate rejected, missing %s", missing)
            raise ValidationFailure(missing)

    def _guard_duplicate(self, candidate: WardPatient) -> None:
        existing = self.ward_patients.find_by_identifier_and_context(candidate.dni, candidate.hospital_context)
        if existing:
            logger.warning("duplicate ward patient dni=%s context=%s (existing id %s)",
                           candidate.dni, candidate.hospital_context, existing[0].pk)
            raise DuplicatePatient(candidate.dni, existing[0].nombre)

    # ------------------------------------------------------------------
    # Consult lifecycle
    # ------------------------------------------------------------------
    def update_response(self, consult_id, respuesta: str) -> None:
        self.consults.update(consult_id, {'respuesta': respuesta})
        logger.info("response updated for consult %s", consult_id)

    def transition_consult(self, consult_id, status: str) -> str:
        """Move a consult forward in its lifecycle.

        Resolving goes through :meth:`resolve_consult`, which checks that
        the evolution note (and ward patient) were stored first.
        """
        if status == ConsultRequest.STATUS_RESOLVED:
            raise ValidationFailure(['status'], 'Para resolver una interconsulta indique la evaluación guardada')
        consult = self.consults.get(consult_id)
        if consult.status == status:
            return status
        self._check_transition(consult.status, status)
        self.consults.update(consult_id, {'status': status})
        try_log_action(action='consult_status', object_type='consult', object_id=consult.pk,
                       detail={'from': consult.status, 'to': status})
        return status

    def resolve_consult(self, consult_id, assessment_id, ward_patient_id=None) -> None:
        consult = self.consults.get(consult_id)
        assessment = self.assessments.get(assessment_id)
        if assessment.source_interconsulta_id not in (None, consult.pk):
            raise ValidationFailure(['assessmentId'], 'La evaluación pertenece a otra interconsulta')
        if ward_patient_id is not None:
            self.ward_patients.get(ward_patient_id)
        if consult.status == ConsultRequest.STATUS_RESOLVED:
            return
        self._check_transition(consult.status, ConsultRequest.STATUS_RESOLVED)
        self.consults.update(consult_id, {'status': ConsultRequest.STATUS_RESOLVED})
        try_log_action(action='consult_resolve', object_type='consult', object_id=consult.pk,
                       detail={'assessmentId': assessment.pk, 'wardPatientId': ward_patient_id})
        logger.info("consult %s resolved", consult_id)

    def _check_transition(self, current: str, target: str) -> None:
        if target not in CONSULT_TRANSITIONS:
            raise ValidationFailure(['status'], f"Estado desconocido: {target}")
        if target not in CONSULT_TRANSITIONS.get(current, set()):
            raise ValidationFailure(['status'], f"Transición no permitida: {current} → {target}")
