from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.models.base import EntityType
from bts_inventory.models.product import Product, ProductField


class ProductRepository(SyncRepository[Product]):
    model_type = Product
    entity_type = EntityType.PRODUCTS
    fields = ProductField
