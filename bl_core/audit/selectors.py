# bl_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from bl_core.audit.models import AuditEvent


def list_events_for_entity(*, entity_type: str, entity_id: UUID) -> QuerySet[AuditEvent]:
    return AuditEvent.objects.filter(entity_type=entity_type, entity_id=entity_id).order_by("occurred_at")
