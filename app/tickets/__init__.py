"""Incident ticket domain: listing rules, lifecycle, stores and views."""

from .criteria import AgeBucket, SortOrder, TicketCriteria
from .errors import (
    AttachmentNotFoundError,
    BackendUnavailableError,
    EmptyInputError,
    InvalidCriteriaError,
    InvalidStatusError,
    TicketNotFoundError,
    TicketServiceError,
)
from .memory import InMemoryTicketRepository
from .models import (
    ActivityKind,
    AttachmentUpload,
    DashboardStats,
    Ticket,
    TicketActivity,
    TicketAttachment,
    TicketPage,
    TicketUpdateResult,
    TimelineEntry,
)
from .repository import TicketRepository
from .service import TicketService
from .sql import SqlTicketRepository
from .state import TicketStateMachine, TicketStatus
from .views import PendingAction, PendingUrgency, TicketViews

__all__ = [
    "ActivityKind",
    "AgeBucket",
    "AttachmentNotFoundError",
    "AttachmentUpload",
    "BackendUnavailableError",
    "DashboardStats",
    "EmptyInputError",
    "InMemoryTicketRepository",
    "InvalidCriteriaError",
    "InvalidStatusError",
    "PendingAction",
    "PendingUrgency",
    "SortOrder",
    "SqlTicketRepository",
    "Ticket",
    "TicketActivity",
    "TicketAttachment",
    "TicketCriteria",
    "TicketNotFoundError",
    "TicketPage",
    "TicketRepository",
    "TicketService",
    "TicketServiceError",
    "TicketStateMachine",
    "TicketStatus",
    "TicketUpdateResult",
    "TicketViews",
    "TimelineEntry",
]
