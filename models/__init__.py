from .restaurant import Restaurant, MenuItem, MenuItemType
from .ingestion import MenuParseBatch, MenuParseItem, BatchStatus, ItemAction
