"""
Database models for the clinical workflow engine.

The tables mirror the ones the residency front-end already reads and
writes (``interconsultas``, ``diagnostic_assessments``,
``ward_round_patients`` and ``tasks``), so field names stay in Spanish
where the front-end uses Spanish names.
"""
from __future__ import annotations

from django.db import models


def _empty_list() -> list:
    return []


class ConsultRequest(models.Model):
    """A consult (interconsulta) requested by another service.

    Created by intake, edited when the response is written and advanced
    through its lifecycle by :mod:`clinical.services.workflow`.
    """
    STATUS_REQUESTED = 'Pendiente'
    STATUS_IN_PROGRESS = 'En Proceso'
    STATUS_RESOLVED = 'Resuelta'
    STATUS_CANCELLED = 'Cancelada'
    STATUS_CHOICES = (
        (STATUS_REQUESTED, 'Pendiente'),
        (STATUS_IN_PROGRESS, 'En Proceso'),
        (STATUS_RESOLVED, 'Resuelta'),
        (STATUS_CANCELLED, 'Cancelada'),
    )

    nombre = models.CharField(max_length=255)
    # Documento nacional de identidad
    dni = models.CharField(max_length=32, db_index=True)
    cama = models.CharField(max_length=64, blank=True)
    edad = models.CharField(max_length=16, blank=True)
    fecha_interconsulta = models.DateField(null=True, blank=True)
    relato_consulta = models.TextField(blank=True)
    respuesta = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_REQUESTED, db_index=True)
    image_thumbnail_url = models.JSONField(default=_empty_list, blank=True)
    image_full_url = models.JSONField(default=_empty_list, blank=True)
    exa_url = models.JSONField(default=_empty_list, blank=True)
    estudios_ocr = models.TextField(blank=True)
    hospital_context = models.CharField(max_length=64, default='Posadas', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'interconsultas'
        indexes = [
            models.Index(fields=['hospital_context', 'status', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"{self.nombre} (DNI {self.dni}) [{self.status}]"


class ClinicalAssessment(models.Model):
    """An evolution note written for a patient encounter.

    ``clinical_notes`` holds the seven-section note parsed by
    :mod:`clinical.services.notes`.  Content is immutable once stored;
    only ``response_sent`` changes afterwards.
    """
    patient_name = models.CharField(max_length=255, blank=True)
    patient_age = models.CharField(max_length=16, blank=True)
    patient_dni = models.CharField(max_length=32, blank=True)
    clinical_notes = models.TextField(blank=True)
    scale_results = models.JSONField(default=_empty_list, blank=True)
    hospital_context = models.CharField(max_length=64, blank=True)
    source_interconsulta = models.ForeignKey(
        ConsultRequest,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='assessments',
    )
    response_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'diagnostic_assessments'

    def __str__(self) -> str:
        return f"Evolución {self.pk} - {self.patient_name}"


class WardPatient(models.Model):
    """A ward-round entry (pase de sala).

    At most one entry exists per ``dni`` within a hospital context; the
    constraint backs the duplicate check done before a consult is
    promoted.  A blank ``dni`` is stored as NULL so that entries without
    one never collide.
    """
    SEVERITY_CHOICES = [
        ('I', 'I'),
        ('II', 'II'),
        ('III', 'III'),
        ('IV', 'IV'),
    ]
    cama = models.CharField(max_length=64, blank=True)
    dni = models.CharField(max_length=32, null=True, blank=True, db_index=True)
    nombre = models.CharField(max_length=255)
    edad = models.CharField(max_length=16, blank=True)
    fecha = models.DateField(null=True, blank=True)
    antecedentes = models.TextField(blank=True)
    motivo_consulta = models.TextField(blank=True)
    examen_fisico = models.TextField(blank=True)
    estudios = models.TextField(blank=True)
    diagnostico = models.TextField(blank=True)
    plan = models.TextField(blank=True)
    pendientes = models.TextField(blank=True)
    severidad = models.CharField(max_length=8, blank=True, default='II')
    image_thumbnail_url = models.JSONField(default=_empty_list, blank=True)
    image_full_url = models.JSONField(default=_empty_list, blank=True)
    exa_url = models.JSONField(default=_empty_list, blank=True)
    hospital_context = models.CharField(max_length=64, default='Posadas', db_index=True)
    display_order = models.IntegerField(default=9999)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ward_round_patients'
        ordering = ['display_order', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['dni', 'hospital_context'],
                name='uniq_ward_patient_dni_context',
            ),
        ]

    def save(self, *args, **kwargs):
        if not (self.dni or '').strip():
            self.dni = None
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.nombre} ({self.cama})"


class Task(models.Model):
    """A to-do item on the pendientes board.

    Tasks with ``source='ward_rounds'`` are derived from a ward patient's
    ``pendientes`` text by :mod:`clinical.services.pendientes`; others
    are created by hand.  A patient has at most one derived task.
    """
    SOURCE_WARD_ROUNDS = 'ward_rounds'
    SOURCE_MANUAL = 'manual'

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]
    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='low')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    patient = models.ForeignKey(
        WardPatient,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='tasks',
    )
    source = models.CharField(max_length=32, default=SOURCE_MANUAL, db_index=True)
    # mirrors ``patient`` for ward_rounds tasks only; its uniqueness allows one derived task per patient
    ward_rounds_patient = models.OneToOneField(
        WardPatient,
        null=True,
        blank=True,
        editable=False,
        on_delete=models.SET_NULL,
        related_name='ward_rounds_task',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tasks'

    def save(self, *args, **kwargs):
        self.ward_rounds_patient_id = self.patient_id if self.source == self.SOURCE_WARD_ROUNDS else None
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.title} (#{self.id})"


class AuditEvent(models.Model):
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}#{self.object_id}"
