from typing import Optional

SEVERITY_PRIORITY = {
    'IV': 'high',
    'III': 'medium',
}
DEFAULT_PRIORITY = 'low'


def severity_to_priority(severidad: Optional[str]) -> str:
    """Map a ward severity code (I-IV) to a task priority.

    IV is high, III is medium; I, II, blank and unknown codes are low.
    """
    code = str(severidad or '').strip().upper()
    return SEVERITY_PRIORITY.get(code, DEFAULT_PRIORITY)
