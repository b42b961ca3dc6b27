from .accounts import Currency, AccountCategory, AccountSubCategory, Account
from .directory import User, Unit, Item, ItemDetail, StockLocation, Supplier
from .journal import JournalPage, JournalPost
from .inventory import InventoryLog
from .documents import Sale, SaleDetail, Purchase, PurchaseDetail, CurrencyExchange, DocumentSequence

__all__ = [
    'Currency', 'AccountCategory', 'AccountSubCategory', 'Account',
    'User', 'Unit', 'Item', 'ItemDetail', 'StockLocation', 'Supplier',
    'JournalPage', 'JournalPost',
    'InventoryLog',
    'Sale', 'SaleDetail', 'Purchase', 'PurchaseDetail',
    'CurrencyExchange', 'DocumentSequence',
]
