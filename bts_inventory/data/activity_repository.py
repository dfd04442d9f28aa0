from typing import Optional

from sqlmodel import Session

from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.models.activity_log import ActivityLog, ActivityLogField, ActivityStatus
from bts_inventory.models.base import EntityType


class ActivityLogRepository(SyncRepository[ActivityLog]):
    model_type = ActivityLog
    entity_type = EntityType.ACTIVITY_LOGS
    fields = ActivityLogField
    order_by = "timestamp"

    def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        performed_by_employee_id: str,
        details: str = "",
        status: ActivityStatus = ActivityStatus.SUCCESS,
        session: Optional[Session] = None,
    ) -> ActivityLog:
        """Appends an audit entry; it syncs like any other record."""
        entry = ActivityLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            performed_by_employee_id=performed_by_employee_id,
            details=details,
            status=status,
        )
        return self.add(entry, session=session)
