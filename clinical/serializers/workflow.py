import bleach
from rest_framework import serializers

from clinical.models import ConsultRequest, WardPatient
from clinical.services.notes import NOTE_FORMAT_SOAP, NOTE_FORMATS


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class PromoteSerializer(serializers.Serializer):
    assessmentId = serializers.IntegerField(min_value=1)


class PreviewQuerySerializer(serializers.Serializer):
    assessmentId = serializers.IntegerField(min_value=1)


class ResolveSerializer(serializers.Serializer):
    assessmentId = serializers.IntegerField(min_value=1)
    wardPatientId = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class ConsultStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[value for value, _ in ConsultRequest.STATUS_CHOICES])


class ConsultResponseSerializer(serializers.Serializer):
    respuesta = serializers.CharField(allow_blank=True, max_length=20000)

    def validate_respuesta(self, v):
        return _clean(v)


class PromoteEditedSerializer(serializers.Serializer):
    """Ward patient fields as left by the user in the confirmation dialog."""
    assessmentId = serializers.IntegerField(min_value=1)
    nombre = serializers.CharField(max_length=255, allow_blank=True, required=False)
    dni = serializers.CharField(max_length=32, allow_blank=True, required=False)
    edad = serializers.CharField(max_length=16, allow_blank=True, required=False)
    cama = serializers.CharField(max_length=64, allow_blank=True, required=False)
    antecedentes = serializers.CharField(allow_blank=True, required=False)
    motivo_consulta = serializers.CharField(allow_blank=True, required=False)
    examen_fisico = serializers.CharField(allow_blank=True, required=False)
    estudios = serializers.CharField(allow_blank=True, required=False)
    diagnostico = serializers.CharField(allow_blank=True, required=False)
    plan = serializers.CharField(allow_blank=True, required=False)
    pendientes = serializers.CharField(allow_blank=True, required=False)
    severidad = serializers.ChoiceField(choices=[value for value, _ in WardPatient.SEVERITY_CHOICES], required=False)
    image_thumbnail_url = serializers.ListField(child=serializers.CharField(max_length=2048), required=False)
    image_full_url = serializers.ListField(child=serializers.CharField(max_length=2048), required=False)
    exa_url = serializers.ListField(child=serializers.CharField(max_length=2048), required=False)
    hospital_context = serializers.CharField(max_length=64, allow_blank=True, required=False)
    display_order = serializers.IntegerField(required=False)

    TEXT_FIELDS = (
        'nombre', 'dni', 'edad', 'cama', 'antecedentes', 'motivo_consulta',
        'examen_fisico', 'estudios', 'diagnostico', 'plan', 'pendientes', 'hospital_context',
    )

    def validate(self, attrs):
        for name in self.TEXT_FIELDS:
            if name in attrs:
                attrs[name] = _clean(attrs[name])
        return attrs


class TemplateQuerySerializer(serializers.Serializer):
    layout = serializers.ChoiceField(choices=NOTE_FORMATS, required=False, default=NOTE_FORMAT_SOAP)


class NoteParseSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, max_length=50000, trim_whitespace=False)


class TaskCompleteSerializer(serializers.Serializer):
    clearPatientPendientes = serializers.BooleanField(required=False, default=True)
