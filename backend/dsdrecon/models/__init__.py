from .catalog import Vendor, Product, WholesaleCatalogItem
from .invoices import Invoice, InvoiceLine
from .pricing import PriceLedgerEntry

__all__ = [
    'Vendor', 'Product', 'WholesaleCatalogItem',
    'Invoice', 'InvoiceLine',
    'PriceLedgerEntry',
]
