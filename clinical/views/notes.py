from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinical.serializers.workflow import NoteParseSerializer
from clinical.services.notes import Found, parse_note


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def note_parse(request):
    """Split an evolution note into its sections; nothing is stored."""
    s = NoteParseSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    parsed = parse_note(s.validated_data['text'])
    diagnosis = parsed.diagnosis
    return Response({
        'ok': True,
        'format': parsed.format,
        'sections': parsed.sections.as_dict(),
        'found': sorted(parsed.sections.found),
        'patient': {
            'nombre': parsed.patient.nombre,
            'dni': parsed.patient.dni,
            'edad': parsed.patient.edad,
            'cama': parsed.patient.cama,
        },
        'diagnosis': diagnosis.text if isinstance(diagnosis, Found) else None,
    })
