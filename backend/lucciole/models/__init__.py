from .inventory import Item, StockItem, MenuDirectItem, MenuDishItem
from .ledger import LogEntry
from .general import GeneralDocument
from .auth import User, SessionToken

__all__ = [
    'Item', 'StockItem', 'MenuDirectItem', 'MenuDishItem',
    'LogEntry',
    'GeneralDocument',
    'User', 'SessionToken',
]
