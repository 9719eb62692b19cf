import logging
from typing import Optional, Any, Dict

from django.db import DatabaseError

from clinical.exceptions import PersistenceError
from clinical.models import AuditEvent

logger = logging.getLogger(__name__)


def log_action(*, action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    try:
        return AuditEvent.objects.create(
            action=action,
            object_type=object_type, object_id=object_id,
            detail=detail or {},
        )
    except DatabaseError as exc:
        raise PersistenceError(exc, 'registrar la auditoría') from exc


def try_log_action(**kwargs) -> Optional[AuditEvent]:
    """Audit a write that already happened; a failed audit row never undoes or fails it."""
    try:
        return log_action(**kwargs)
    except PersistenceError as exc:
        logger.warning("audit event %s for %s %s not recorded: %s",
                       kwargs.get('action'), kwargs.get('object_type'), kwargs.get('object_id'), exc)
        return None
