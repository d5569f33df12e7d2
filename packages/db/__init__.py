"""Database models and utilities."""

from .models import TicketActivityTable, TicketAttachmentTable, TicketTable

__all__ = [
    "TicketActivityTable",
    "TicketAttachmentTable",
    "TicketTable",
]
