"""
URL mappings for the clinical workflow API.

Paths follow the front-end's naming (Spanish resource names, no
trailing slashes).
"""
from django.urls import path, include

from .views import health
from .views.notes import note_parse
from .views.pendientes import pendientes_sync, task_complete, ward_patient_sync
from .views.workflow import (
    consult_preview,
    consult_promote,
    consult_promote_edited,
    consult_resolve,
    consult_response,
    consult_status,
    consult_template,
)

urlpatterns = [
    # Consult workflow
    path('api/interconsultas/promote-edited', consult_promote_edited, name='consult-promote-edited'),
    path('api/interconsultas/<int:consult_id>/promote', consult_promote, name='consult-promote'),
    path('api/interconsultas/<int:consult_id>/preview', consult_preview, name='consult-preview'),
    path('api/interconsultas/<int:consult_id>/response', consult_response, name='consult-response'),
    path('api/interconsultas/<int:consult_id>/status', consult_status, name='consult-status'),
    path('api/interconsultas/<int:consult_id>/resolve', consult_resolve, name='consult-resolve'),
    path('api/interconsultas/<int:consult_id>/template', consult_template, name='consult-template'),
    path('api/notes/parse', note_parse, name='note-parse'),

    # Pendientes / tasks
    path('api/pendientes/sync', pendientes_sync, name='pendientes-sync'),
    path('api/ward-patients/<int:patient_id>/sync', ward_patient_sync, name='ward-patient-sync'),
    path('api/tasks/<int:task_id>/complete', task_complete, name='task-complete'),

    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
]
