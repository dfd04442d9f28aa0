from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.models.base import EntityType
from bts_inventory.models.employee import Employee, EmployeeField


class EmployeeRepository(SyncRepository[Employee]):
    model_type = Employee
    entity_type = EntityType.EMPLOYEES
    fields = EmployeeField
    order_by = "created_at"
