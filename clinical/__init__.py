"""Clinical workflow application for the residency backend.

This package contains the models, services, serializers and views that
take a consult request through its evolution note into the ward-round
list, and keep the ward-round pendientes mirrored on the task board.
"""
