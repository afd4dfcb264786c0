from typing import Any, Dict, List, Optional

from sqlmodel import Session

from flowforge.api.router import CommandRouter
from flowforge.repositories import invoices as repo

router = CommandRouter()


@router.command(write=True)
def create_invoice(db: Session, data: Dict[str, Any], line_items: Optional[List[Dict[str, Any]]] = None):
    return repo.create_invoice(db, data, line_items or ())


@router.command(write=True)
def create_invoice_from_entries(
    db: Session,
    client_id: str,
    entry_ids: List[str],
    invoice_number: Optional[str] = None,
    issue_date: Optional[str] = None,
    due_date: Optional[str] = None,
    tax_rate: Optional[str] = None,
    notes: Optional[str] = None,
):
    """
    Create a draft invoice from unbilled time entries.

    Each entry becomes a line item at the client's hourly rate and is billed
    on the new invoice in the same transaction.

    Args:
        db: Write session supplied by the dispatcher
        client_id: Client being invoiced
        entry_ids: Completed, unbilled entries of that client
        invoice_number: Explicit number; the next INV-YYYY-NNNN when omitted

    Returns:
        Invoice: The new draft invoice

    Raises:
        NotFound: If the client or an entry doesn't exist
        Conflict: If an entry is running, billed or belongs to another client
    """
    return repo.create_invoice_from_entries(
        db,
        client_id,
        entry_ids,
        invoice_number=invoice_number,
        issue_date=issue_date,
        due_date=due_date,
        tax_rate=tax_rate,
        notes=notes,
    )


@router.command()
def next_invoice_number(db: Session, year: Optional[int] = None) -> str:
    return repo.next_invoice_number(db, year)


@router.command()
def get_invoice(db: Session, invoice_id: str):
    """Invoice with client fields, line items and totals."""
    return repo.get_invoice_details(db, invoice_id)


@router.command()
def list_invoices(db: Session, client_id: Optional[str] = None, status: Optional[str] = None):
    return repo.list_invoices(db, client_id=client_id, status=status)


@router.command()
def list_overdue_invoices(db: Session, today: Optional[str] = None):
    return repo.list_overdue_invoices(db, today)


@router.command(write=True)
def update_invoice(db: Session, invoice_id: str, changes: Dict[str, Any]):
    return repo.update_invoice(db, invoice_id, changes)


@router.command(write=True)
def transition_invoice(db: Session, invoice_id: str, status: str):
    return repo.transition_invoice(db, invoice_id, status)


@router.command(write=True)
def delete_invoice(db: Session, invoice_id: str) -> None:
    repo.delete_invoice(db, invoice_id)


@router.command()
def compute_invoice_total(db: Session, invoice_id: str):
    return repo.compute_invoice_total(db, invoice_id)


@router.command()
def list_line_items(db: Session, invoice_id: str):
    return repo.list_line_items(db, invoice_id)


@router.command(write=True)
def add_line_item(db: Session, invoice_id: str, data: Dict[str, Any]):
    return repo.add_line_item(db, invoice_id, data)


@router.command(write=True)
def update_line_item(db: Session, item_id: str, changes: Dict[str, Any]):
    return repo.update_line_item(db, item_id, changes)


@router.command(write=True)
def delete_line_item(db: Session, item_id: str) -> None:
    repo.delete_line_item(db, item_id)


@router.command(write=True)
def replace_line_items(db: Session, invoice_id: str, line_items: List[Dict[str, Any]]):
    return repo.replace_line_items(db, invoice_id, line_items)
