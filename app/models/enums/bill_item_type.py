from enum import Enum

class BillItemType(str, Enum):
    services = "services"
    products = "products"
