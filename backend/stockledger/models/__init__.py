from .tenancy import Business, Branch
from .inventory import Product, StockLevel, StockMovement
from .sales import Sale, SaleItem, CashRegisterEntry
from .documents import Return, ReturnItem, StockTransfer, StockTransferItem

__all__ = [
    'Business', 'Branch',
    'Product', 'StockLevel', 'StockMovement',
    'Sale', 'SaleItem', 'CashRegisterEntry',
    'Return', 'ReturnItem', 'StockTransfer', 'StockTransferItem',
]
