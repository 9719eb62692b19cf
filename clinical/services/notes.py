"""
Parsing of evolution notes.

Two layouts are recognised.  The seven-section SOAP template::

    DATOS:
    PACIENTE: ...
    DNI: ..., EDAD: ..., CAMA: ...
    ANTECEDENTES:
    ENFERMEDAD ACTUAL:
    ESTUDIOS COMPLEMENTARIOS:
    EXAMEN FÍSICO:
    CONDUCTA:
    PENDIENTES:

and the consult answer layout, which opens with the patient line and
uses headings on lines of their own::

    PACIENTE: ...
    DNI: ..., EDAD: ..., CAMA: ...
    Antecedentes:
    Enfermedad actual:
    Examen neurológico
    Estudios complementarios
    Interpretación
    Sugerencias
    Personal interviniente

A note starting with ``PACIENTE:`` is read with the second layout; any
other note (old rows included) is read as SOAP.

Everything here is pure and never raises: notes are typed by people and
historical rows are often malformed, so a section that cannot be
bounded comes back empty instead of failing the caller.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Pattern, Tuple, Union

NOTE_FORMAT_SOAP = 'soap'
NOTE_FORMAT_CONSULT = 'consulta'
NOTE_FORMATS = (NOTE_FORMAT_SOAP, NOTE_FORMAT_CONSULT)


@dataclass(frozen=True)
class Found:
    text: str


@dataclass(frozen=True)
class Missing:
    pass


MISSING = Missing()

Extraction = Union[Found, Missing]


def text_of(extraction: Extraction, default: str = '') -> str:
    """Return the extracted text, or ``default`` for a miss."""
    if isinstance(extraction, Found):
        return extraction.text
    return default


# (attribute name, header pattern), in template order
SECTION_HEADERS: Tuple[Tuple[str, str], ...] = (
    ('datos', r'DATOS'),
    ('antecedentes', r'ANTECEDENTES'),
    ('enfermedad_actual', r'ENFERMEDAD\s+ACTUAL'),
    ('estudios_complementarios', r'ESTUDIOS\s+COMPLEMENTARIOS'),
    ('examen_fisico', r'EXAMEN\s+F[ÍI]SICO'),
    ('conducta', r'CONDUCTA'),
    ('pendientes', r'PENDIENTES'),
)

SECTION_TITLES: Dict[str, str] = {
    'datos': 'DATOS',
    'antecedentes': 'ANTECEDENTES',
    'enfermedad_actual': 'ENFERMEDAD ACTUAL',
    'estudios_complementarios': 'ESTUDIOS COMPLEMENTARIOS',
    'examen_fisico': 'EXAMEN FÍSICO',
    'conducta': 'CONDUCTA',
    'pendientes': 'PENDIENTES',
}

CONSULT_SECTION_HEADERS: Tuple[Tuple[str, str], ...] = (
    ('antecedentes', r'ANTECEDENTES'),
    ('enfermedad_actual', r'ENFERMEDAD\s+ACTUAL'),
    ('examen_neurologico', r'EXAMEN\s+NEUROL[ÓO]GICO'),
    ('estudios_complementarios', r'ESTUDIOS\s+COMPLEMENTARIOS'),
    ('interpretacion', r'INTERPRETACI[ÓO]N'),
    ('sugerencias', r'SUGERENCIAS'),
    ('personal_interviniente', r'PERSONAL\s+INTERVINIENTE'),
)

_HEADER_RES = tuple(
    (name, re.compile(rf'^[ \t]*{pattern}[ \t]*:', re.IGNORECASE | re.MULTILINE))
    for name, pattern in SECTION_HEADERS
)
# consult answer headings stand alone on their line, colon optional
_CONSULT_HEADER_RES = tuple(
    (name, re.compile(rf'^[ \t]*{pattern}[ \t]*:?[ \t]*$', re.IGNORECASE | re.MULTILINE))
    for name, pattern in CONSULT_SECTION_HEADERS
)
_CONSULT_FORMAT_RE = re.compile(r'\A\s*PACIENTE[ \t]*:', re.IGNORECASE)

_LABELS = {
    'PACIENTE': 'nombre',
    'NOMBRE': 'nombre',
    'DNI': 'dni',
    'EDAD': 'edad',
    'CAMA': 'cama',
}
_LABEL_ALT = '|'.join(_LABELS)
# A label opens a line or follows a comma; its value stops at the end of
# the line or at the next ", LABEL:" on the same line.
_FIELD_RE = re.compile(
    rf'(?:^|,)[ \t]*({_LABEL_ALT})[ \t]*:[ \t]*([^\n]*?)[ \t]*(?=,[ \t]*(?:{_LABEL_ALT})[ \t]*:|$)',
    re.IGNORECASE | re.MULTILINE,
)

# "Diagnóstico presuntivo:", "Impresión diagnóstica:", "Dx:".  A qualifier
# may sit between the word and the colon but never a sentence break.
_DIAGNOSIS_LABEL_RE = re.compile(
    r'\b(?:(?:diagn[óo]stico|impresi[óo]n)\b[^:.;\n]{0,40}?|dx)[ \t]*:[ \t]*',
    re.IGNORECASE,
)
# The same words used as a heading, alone on their line (one qualifier word at most)
_DIAGNOSIS_HEADING_RE = re.compile(
    r'^[ \t]*(?:(?:diagn[óo]stico|impresi[óo]n)(?:[ \t]+\w+)?|dx)[ \t]*$',
    re.IGNORECASE | re.MULTILINE,
)
_BULLET_RE = re.compile(r'^[ \t]*[-*•][ \t]*(.+)$', re.MULTILINE)


@dataclass(frozen=True)
class PatientData:
    nombre: str = ''
    dni: str = ''
    edad: str = ''
    cama: str = ''


class _Sections:
    found: FrozenSet[str]
    HEADERS: Tuple[Tuple[str, str], ...] = ()

    def section(self, name: str) -> Extraction:
        """Tagged lookup that keeps "not located" apart from "located but empty"."""
        if name not in self.found:
            return MISSING
        return Found(getattr(self, name))

    def as_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name, _ in self.HEADERS}


@dataclass(frozen=True)
class NoteSections(_Sections):
    datos: str = ''
    antecedentes: str = ''
    enfermedad_actual: str = ''
    estudios_complementarios: str = ''
    examen_fisico: str = ''
    conducta: str = ''
    pendientes: str = ''
    # names of the sections whose bounds were actually located
    found: FrozenSet[str] = field(default_factory=frozenset)

    HEADERS = SECTION_HEADERS


@dataclass(frozen=True)
class ConsultNoteSections(_Sections):
    antecedentes: str = ''
    enfermedad_actual: str = ''
    examen_neurologico: str = ''
    estudios_complementarios: str = ''
    interpretacion: str = ''
    sugerencias: str = ''
    personal_interviniente: str = ''
    found: FrozenSet[str] = field(default_factory=frozenset)

    HEADERS = CONSULT_SECTION_HEADERS


@dataclass(frozen=True)
class ParsedNote:
    sections: Union[NoteSections, ConsultNoteSections]
    patient: PatientData
    diagnosis: Extraction
    format: str = NOTE_FORMAT_SOAP


def _bound(text: str, header_res: Tuple[Tuple[str, Pattern], ...], strict: bool) -> Dict[str, Extraction]:
    matches: List[Optional[re.Match]] = []
    cursor = 0
    for _, header_re in header_res:
        m = header_re.search(text, cursor)
        matches.append(m)
        if m:
            cursor = m.end()

    located: Dict[str, Extraction] = {}
    for i, (name, _) in enumerate(header_res):
        m = matches[i]
        if m is None:
            located[name] = MISSING
            continue
        following = matches[i + 1:i + 2] if strict else matches[i + 1:]
        if not following:
            located[name] = Found(text[m.end():].strip())
            continue
        end = next((f.start() for f in following if f is not None), None)
        if end is None:
            located[name] = MISSING if strict else Found(text[m.end():].strip())
        else:
            located[name] = Found(text[m.end():end].strip())
    return located


def locate_sections(text: str) -> Dict[str, Extraction]:
    """Bound every SOAP section between its header and the next template header.

    Headers are searched in template order, each search starting after
    the previous header that was found, so duplicated headers resolve to
    their first occurrence.  A section is only bounded when both its own
    header and the immediately following one are present; the last
    section runs to the end of the text.
    """
    return _bound(text or '', _HEADER_RES, strict=True)


def locate_consult_sections(text: str) -> Dict[str, Extraction]:
    """Bound the consult answer sections.

    Same search order as :func:`locate_sections`, but a section runs up
    to the next heading that was found (or the end of the text), since
    the headings of this layout are routinely left out.
    """
    return _bound(text or '', _CONSULT_HEADER_RES, strict=False)


def detect_note_format(text: str) -> str:
    if _CONSULT_FORMAT_RE.match(text or ''):
        return NOTE_FORMAT_CONSULT
    return NOTE_FORMAT_SOAP


def parse_sections(text: str) -> NoteSections:
    located = locate_sections(text)
    return NoteSections(
        found=frozenset(name for name, value in located.items() if isinstance(value, Found)),
        **{name: text_of(value) for name, value in located.items()},
    )


def parse_consult_sections(text: str) -> ConsultNoteSections:
    located = locate_consult_sections(text)
    return ConsultNoteSections(
        found=frozenset(name for name, value in located.items() if isinstance(value, Found)),
        **{name: text_of(value) for name, value in located.items()},
    )


def extract_patient_data(text: str) -> PatientData:
    """Read ``LABEL: value`` pairs (PACIENTE, DNI, EDAD, CAMA).

    A value never spans lines.  Several pairs may share one
    comma-separated line.  The first occurrence of each label wins.
    """
    values: Dict[str, str] = {}
    for label, value in _FIELD_RE.findall(text or ''):
        key = _LABELS[label.upper()]
        if key not in values:
            values[key] = value.strip()
    return PatientData(**values)


def _value_from(text: str, pos: int) -> str:
    # rest of the marker's line, then following lines up to a blank line or list item
    lines = text[pos:].split('\n')
    collected = [lines[0].strip()] if lines[0].strip() else []
    for line in lines[1:]:
        stripped = line.strip()
        if not stripped:
            if collected:
                break
            continue
        bullet = _BULLET_RE.match(line)
        if bullet:
            if not collected:
                collected.append(bullet.group(1).strip())
            break
        collected.append(stripped)
    return '\n'.join(collected)


def extract_diagnosis(conducta: str) -> Extraction:
    """Best-effort diagnosis from the CONDUCTA section.

    Text after a "Diagnóstico ...:", "Dx:" or "Impresión ...:" label, or
    under one of those words used as a heading, up to the next blank
    line or list item.  A passing mention inside a sentence is not a
    label.  Failing that, the first bullet.
    """
    if not conducta:
        return MISSING
    candidates = [m for m in (_DIAGNOSIS_LABEL_RE.search(conducta), _DIAGNOSIS_HEADING_RE.search(conducta)) if m]
    for m in sorted(candidates, key=lambda m: m.start()):
        value = _value_from(conducta, m.end())
        if value:
            return Found(value)
    bullet = _BULLET_RE.search(conducta)
    if bullet and bullet.group(1).strip():
        return Found(bullet.group(1).strip())
    return MISSING


def _preamble(text: str) -> str:
    starts = []
    for _, header_re in _CONSULT_HEADER_RES:
        m = header_re.search(text)
        if m:
            starts.append(m.start())
    return text[:min(starts)] if starts else text


def parse_note(text: str) -> ParsedNote:
    text = text or ''
    if detect_note_format(text) == NOTE_FORMAT_CONSULT:
        sections = parse_consult_sections(text)
        interpretacion = sections.interpretacion
        return ParsedNote(
            sections=sections,
            patient=extract_patient_data(_preamble(text)),
            diagnosis=Found(interpretacion) if interpretacion else MISSING,
            format=NOTE_FORMAT_CONSULT,
        )
    sections = parse_sections(text)
    return ParsedNote(
        sections=sections,
        patient=extract_patient_data(sections.datos),
        diagnosis=extract_diagnosis(sections.conducta),
    )


def _patient_lines(consult) -> List[str]:
    return [
        f"PACIENTE: {consult.nombre or ''}",
        f"DNI: {consult.dni or ''}, EDAD: {consult.edad or 'No especificada'}, CAMA: {consult.cama or ''}",
    ]


def render_note_template(consult, note_format: str = NOTE_FORMAT_SOAP) -> str:
    """Start a new evolution note pre-filled from a consult request."""
    if note_format == NOTE_FORMAT_CONSULT:
        return render_consult_note_template(consult)
    bodies = {
        'datos': '\n'.join(_patient_lines(consult)),
        'enfermedad_actual': (consult.relato_consulta or '').strip(),
        'estudios_complementarios': (getattr(consult, 'estudios_ocr', '') or '').strip(),
    }
    blocks = []
    for name, _ in SECTION_HEADERS:
        body = bodies.get(name, '')
        blocks.append(f"{SECTION_TITLES[name]}:\n{body}".rstrip())
    return '\n\n'.join(blocks) + '\n'


def render_consult_note_template(consult) -> str:
    relato = (consult.relato_consulta or '').strip()
    estudios = (getattr(consult, 'estudios_ocr', '') or '').strip()
    blocks = [
        '\n'.join(_patient_lines(consult)),
        "Antecedentes:",
        f"Enfermedad actual:\n{relato}".rstrip(),
        "Examen neurológico",
        f"Estudios complementarios\n{estudios}".rstrip(),
        "Interpretación",
        "Sugerencias",
        "Personal interviniente",
    ]
    return '\n\n'.join(blocks) + '\n'
