from .client import Client, ClientRead
from .project import Project, ProjectRead, ProjectStatus
from .time_entry import TimeEntry, TimeEntryRead
from .invoice import (
    Invoice,
    InvoiceLineItem,
    InvoiceLineItemRead,
    InvoiceRead,
    InvoiceStatus,
)
from .setting import Setting

__all__ = [
    "Client", "ClientRead",
    "Project", "ProjectRead", "ProjectStatus",
    "TimeEntry", "TimeEntryRead",
    "Invoice", "InvoiceRead", "InvoiceStatus",
    "InvoiceLineItem", "InvoiceLineItemRead",
    "Setting",
]
