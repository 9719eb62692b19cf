import pytest

from clinical.models import ConsultRequest
from clinical.services.notes import (
    Found,
    MISSING,
    NOTE_FORMAT_CONSULT,
    NOTE_FORMAT_SOAP,
    detect_note_format,
    extract_diagnosis,
    extract_patient_data,
    parse_note,
    parse_sections,
    render_note_template,
)
from clinical.tests.notes_fixtures import CONSULT_NOTE, FULL_NOTE


def test_sections_are_bounded_by_the_next_header():
    s = parse_sections(FULL_NOTE)
    assert s.datos == "PACIENTE: Juan Pérez\nDNI: 30111222, EDAD: 45, CAMA: UTI 2"
    assert s.antecedentes == "HTA, DBT2."
    assert s.enfermedad_actual == "Disnea progresiva de 3 días.\n\nFiebre de 38.5 desde ayer."
    assert s.estudios_complementarios == "Rx tórax: infiltrado basal derecho."
    assert s.examen_fisico == "Crepitantes bibasales."
    assert s.conducta.startswith("Diagnóstico presuntivo:")
    assert s.conducta.endswith("- Control de saturación")
    assert s.pendientes == "Hemocultivos x2\nEcocardiograma"
    assert len(s.found) == 7


@pytest.mark.parametrize('body', [
    "una línea",
    "con\n\nlíneas en blanco\n\n",
    "texto con dos puntos: y guiones - varios",
])
def test_injected_body_never_leaks_into_neighbours(body):
    note = FULL_NOTE.replace("Crepitantes bibasales.", body)
    s = parse_sections(note)
    assert s.examen_fisico == body.strip()
    assert s.estudios_complementarios == "Rx tórax: infiltrado basal derecho."
    assert s.conducta.startswith("Diagnóstico presuntivo:")


def test_headers_are_case_insensitive_and_accept_unaccented_fisico():
    note = FULL_NOTE.replace("EXAMEN FÍSICO:", "Examen fisico:").replace("CONDUCTA:", "conducta:")
    s = parse_sections(note)
    assert s.examen_fisico == "Crepitantes bibasales."
    assert s.conducta.startswith("Diagnóstico presuntivo:")


def test_missing_header_empties_only_its_section_and_predecessor():
    note = FULL_NOTE.replace("ESTUDIOS COMPLEMENTARIOS:\n", "")
    s = parse_sections(note)
    assert s.estudios_complementarios == ""
    assert s.section('estudios_complementarios') is MISSING
    # the preceding section has no closing header either
    assert s.enfermedad_actual == ""
    assert s.datos.startswith("PACIENTE: Juan Pérez")
    assert s.antecedentes == "HTA, DBT2."
    assert s.examen_fisico == "Crepitantes bibasales."
    assert s.pendientes == "Hemocultivos x2\nEcocardiograma"


def test_last_section_runs_to_end_of_text():
    s = parse_sections(FULL_NOTE + "\nRepetir laboratorio\n")
    assert s.pendientes.endswith("Repetir laboratorio")


def test_repeated_header_resolves_to_first_occurrence():
    note = FULL_NOTE.replace("HTA, DBT2.", "uno\nANTECEDENTES:\ndos")
    s = parse_sections(note)
    assert s.antecedentes == "uno\nANTECEDENTES:\ndos"
    assert s.enfermedad_actual.startswith("Disnea progresiva")


def test_repeated_last_header_keeps_everything_after_the_first():
    note = FULL_NOTE.replace("PENDIENTES:\nHemocultivos x2\nEcocardiograma\n", "PENDIENTES:\np\nPENDIENTES:\nq\n")
    assert parse_sections(note).pendientes == "p\nPENDIENTES:\nq"


def test_out_of_order_headers():
    note = (
        "DATOS:\nPACIENTE: Ana\n"
        "ANTECEDENTES:\nHTA\n"
        "ENFERMEDAD ACTUAL:\nCefalea\n"
        "EXAMEN FÍSICO:\nLúcida\n"
        "ESTUDIOS COMPLEMENTARIOS:\nTC normal\n"
        "CONDUCTA:\nAnalgesia\n"
        "PENDIENTES:\nAlta\n"
    )
    s = parse_sections(note)
    # EXAMEN FÍSICO is searched after ESTUDIOS COMPLEMENTARIOS and never found
    assert s.section('examen_fisico') is MISSING
    assert s.section('estudios_complementarios') is MISSING
    assert s.enfermedad_actual == "Cefalea\nEXAMEN FÍSICO:\nLúcida"
    assert s.conducta == "Analgesia"
    assert s.pendientes == "Alta"
    assert s.found == frozenset({'datos', 'antecedentes', 'enfermedad_actual', 'conducta', 'pendientes'})


def test_section_lookup_tells_empty_from_missing():
    s = parse_sections(FULL_NOTE.replace("HTA, DBT2.", ""))
    assert s.section('antecedentes') == Found("")
    assert parse_sections("").section('antecedentes') is MISSING


def test_garbage_input_never_raises():
    s = parse_sections("sin formato alguno\nCONDUCTA sin dos puntos")
    assert s.as_dict() == {name: "" for name in s.as_dict()}
    assert parse_note(None).diagnosis is MISSING


def test_datos_fields_one_per_line():
    data = extract_patient_data("DATOS: \nPACIENTE: Ana\nDNI: 123\nEDAD: 30\nCAMA: 4\n")
    assert (data.nombre, data.dni, data.edad, data.cama) == ("Ana", "123", "30", "4")


def test_datos_fields_sharing_a_line():
    data = extract_patient_data("PACIENTE: Pérez, Juan\nDNI: 30111222, EDAD: 45, CAMA: UTI 2")
    assert data.nombre == "Pérez, Juan"
    assert data.dni == "30111222"
    assert data.edad == "45"
    assert data.cama == "UTI 2"


def test_datos_first_label_wins_and_missing_labels_are_blank():
    data = extract_patient_data("NOMBRE: Ana\nPACIENTE: Otra")
    assert data.nombre == "Ana"
    assert data.dni == ""


def test_diagnosis_after_marker_stops_at_list():
    conducta = parse_sections(FULL_NOTE).conducta
    assert extract_diagnosis(conducta) == Found("Neumonía aguda de la comunidad")


@pytest.mark.parametrize('conducta, expected', [
    ("Dx: IC descompensada\n\nControl", "IC descompensada"),
    ("Impresión diagnóstica: ACV isquémico", "ACV isquémico"),
    ("Plan:\n- Sepsis a foco urinario\n- Cultivos", "Sepsis a foco urinario"),
])
def test_diagnosis_markers_and_bullet_fallback(conducta, expected):
    assert extract_diagnosis(conducta) == Found(expected)


def test_diagnosis_miss_is_tagged():
    assert extract_diagnosis("") is MISSING
    assert extract_diagnosis("Reposo relativo.") is MISSING


@pytest.mark.parametrize('conducta, expected', [
    ("Se solicita RMN para diagnóstico.\nDx: ACV isquémico", "ACV isquémico"),
    ("Diagnóstico\nNeumonía\n- Ceftriaxona", "Neumonía"),
    ("Impresión\n\n- Crisis hipertensiva\n- Control", "Crisis hipertensiva"),
])
def test_diagnosis_label_must_be_a_label(conducta, expected):
    assert extract_diagnosis(conducta) == Found(expected)


@pytest.mark.parametrize('conducta', [
    "Impresiona estable.",
    "Se discute el diagnóstico con familia.",
])
def test_passing_mentions_are_not_diagnoses(conducta):
    assert extract_diagnosis(conducta) is MISSING


def test_template_is_parseable_back():
    consult = ConsultRequest(
        nombre="Ana Gómez", dni="123", edad="30", cama="4",
        relato_consulta="Dolor abdominal", estudios_ocr="Hb 10",
    )
    parsed = parse_note(render_note_template(consult))
    assert parsed.patient.nombre == "Ana Gómez"
    assert parsed.patient.dni == "123"
    assert parsed.patient.edad == "30"
    assert parsed.patient.cama == "4"
    assert parsed.sections.enfermedad_actual == "Dolor abdominal"
    assert parsed.sections.estudios_complementarios == "Hb 10"
    assert parsed.sections.found == frozenset(parsed.sections.as_dict())


def test_template_marks_unknown_age():
    text = render_note_template(ConsultRequest(nombre="Ana", dni="1"))
    assert "EDAD: No especificada" in text


def test_note_format_detection():
    assert detect_note_format(CONSULT_NOTE) == NOTE_FORMAT_CONSULT
    assert detect_note_format("\n  paciente: Ana") == NOTE_FORMAT_CONSULT
    assert detect_note_format(FULL_NOTE) == NOTE_FORMAT_SOAP
    assert detect_note_format("") == NOTE_FORMAT_SOAP


def test_consult_note_sections_and_patient():
    parsed = parse_note(CONSULT_NOTE)
    assert parsed.format == NOTE_FORMAT_CONSULT
    assert parsed.patient.nombre == "Ana Gómez"
    assert parsed.patient.dni == "27999888"
    assert parsed.patient.edad == "61"
    assert parsed.patient.cama == "12B"
    s = parsed.sections
    assert s.antecedentes == "HTA, FA anticoagulada."
    assert s.examen_neurologico == "NIHSS 6. Afasia motora."
    assert s.estudios_complementarios == "TC de cerebro sin sangrado."
    assert s.sugerencias == "RMN de encéfalo\nEcodoppler de vasos de cuello"
    assert s.personal_interviniente == "Dra. Ruiz (neurología)"
    assert parsed.diagnosis == Found("ACV isquémico agudo en territorio de ACM izquierda")
    assert len(s.found) == 7


def test_consult_note_missing_heading_extends_previous_section():
    parsed = parse_note(CONSULT_NOTE.replace("Sugerencias\n", ""))
    s = parsed.sections
    assert s.section('sugerencias') is MISSING
    assert s.interpretacion.startswith("ACV isquémico agudo")
    assert s.interpretacion.endswith("Ecodoppler de vasos de cuello")
    assert s.personal_interviniente == "Dra. Ruiz (neurología)"


def test_consult_note_without_interpretation_has_no_diagnosis():
    parsed = parse_note("PACIENTE: Ana\nDNI: 1\n\nSugerencias\nControl")
    assert parsed.diagnosis is MISSING
    assert parsed.sections.sugerencias == "Control"


def test_consult_template_is_parseable_back():
    consult = ConsultRequest(
        nombre="Ana Gómez", dni="123", edad="30", cama="4",
        relato_consulta="Cefalea súbita", estudios_ocr="TC normal",
    )
    text = render_note_template(consult, NOTE_FORMAT_CONSULT)
    assert text.startswith("PACIENTE: Ana Gómez\n")
    parsed = parse_note(text)
    assert parsed.format == NOTE_FORMAT_CONSULT
    assert parsed.patient.dni == "123"
    assert parsed.sections.enfermedad_actual == "Cefalea súbita"
    assert parsed.sections.estudios_complementarios == "TC normal"
    assert parsed.sections.found == frozenset(parsed.sections.as_dict())
    assert parsed.diagnosis is MISSING
