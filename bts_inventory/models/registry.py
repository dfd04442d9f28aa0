from typing import Dict, Optional, Type

from .activity_log import ActivityLog
from .base import EntityType, SyncModel
from .employee import Employee
from .product import Product
from .return_record import ReturnRecord
from .settings import SystemSettings

# Entity type tag -> table model. Keys are the outbox/wire tags.
ENTITY_MODELS: Dict[EntityType, Type[SyncModel]] = {
    EntityType.EMPLOYEES: Employee,
    EntityType.PRODUCTS: Product,
    EntityType.RETURNS: ReturnRecord,
    EntityType.ACTIVITY_LOGS: ActivityLog,
    EntityType.SETTINGS: SystemSettings,
}


def resolve_entity_type(tag: str) -> Optional[EntityType]:
    """Maps a raw tag to EntityType, or None for kinds this client does not track."""
    try:
        return EntityType(tag)
    except ValueError:
        return None
