from .shops import Shop, DocumentSequence
from .inventory import Product
from .customers import Customer, CustomerLedgerEntry
from .cash import CashEntry
from .sales import Sale, SaleItem
from .returns import SaleReturn, SaleReturnItem, SaleReturnExchangeItem

__all__ = [
    'Shop', 'DocumentSequence',
    'Product',
    'Customer', 'CustomerLedgerEntry',
    'CashEntry',
    'Sale', 'SaleItem',
    'SaleReturn', 'SaleReturnItem', 'SaleReturnExchangeItem',
]
