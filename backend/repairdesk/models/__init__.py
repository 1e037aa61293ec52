from .tenancy import Store, StoreConfig
from .documents import DocumentSequence
from .customers import Customer
from .inventory import InventoryItem
from .tickets import RepairTicket, TicketImage, Expense, TICKET_STATUSES, TICKET_PRIORITIES
from .warranties import Warranty, WarrantyClaim, WARRANTY_TYPES, WARRANTY_STATUSES, CLAIM_STATUSES

__all__ = [
    'Store', 'StoreConfig', 'DocumentSequence',
    'Customer',
    'InventoryItem',
    'RepairTicket', 'TicketImage', 'Expense',
    'Warranty', 'WarrantyClaim',
    'TICKET_STATUSES', 'TICKET_PRIORITIES',
    'WARRANTY_TYPES', 'WARRANTY_STATUSES', 'CLAIM_STATUSES',
]
