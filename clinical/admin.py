"""
Django admin registrations for the clinical models.

Lets staff inspect consults, evolution notes, the ward-round list and
the derived tasks at ``/admin/``, and read the audit trail.
"""

from django.contrib import admin

from .models import AuditEvent, ClinicalAssessment, ConsultRequest, Task, WardPatient


@admin.register(ConsultRequest)
class ConsultRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'nombre', 'dni', 'cama', 'status', 'hospital_context', 'created_at')
    list_filter = ('status', 'hospital_context')
    search_fields = ('nombre', 'dni', 'cama')


@admin.register(ClinicalAssessment)
class ClinicalAssessmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'patient_dni', 'source_interconsulta', 'response_sent', 'created_at')
    list_filter = ('response_sent', 'hospital_context')
    search_fields = ('patient_name', 'patient_dni')


@admin.register(WardPatient)
class WardPatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'nombre', 'dni', 'cama', 'severidad', 'hospital_context', 'display_order')
    list_filter = ('severidad', 'hospital_context')
    search_fields = ('nombre', 'dni', 'cama')


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'priority', 'status', 'source', 'patient', 'updated_at')
    list_filter = ('status', 'priority', 'source')
    search_fields = ('title', 'description')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    readonly_fields = ('action', 'object_type', 'object_id', 'detail', 'created_at')
