"""
ORM models; importing this package registers every table on Base.metadata
"""

from .district import District
from .user import User, UserSession
from .farm import Farm
from .productivity import Productivity
from .warehouse import WarehouseInventory, StockRemoval, WarehouseFacility

__all__ = [
    'District',
    'User',
    'UserSession',
    'Farm',
    'Productivity',
    'WarehouseInventory',
    'StockRemoval',
    'WarehouseFacility',
]
