from .catalog import Product, StockLevel, normalize_sku
from .movements import StockMovement, MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUST, MOVEMENT_KINDS
from .documents import (
    Document,
    DocumentLine,
    DOCUMENT_TYPE_SALE,
    DOCUMENT_TYPE_TRANSFER,
    DOCUMENT_TYPE_REFUND,
    DOCUMENT_TYPES,
    DOCUMENT_STATUS_ISSUED,
    DOCUMENT_STATUS_CANCELLED,
    normalize_document_number,
)
from .customers import Customer

__all__ = [
    'Product', 'StockLevel', 'normalize_sku',
    'StockMovement', 'MOVEMENT_IN', 'MOVEMENT_OUT', 'MOVEMENT_ADJUST', 'MOVEMENT_KINDS',
    'Document', 'DocumentLine',
    'DOCUMENT_TYPE_SALE', 'DOCUMENT_TYPE_TRANSFER', 'DOCUMENT_TYPE_REFUND', 'DOCUMENT_TYPES',
    'DOCUMENT_STATUS_ISSUED', 'DOCUMENT_STATUS_CANCELLED', 'normalize_document_number',
    'Customer',
]
