"""
Released schema migrations.

Append only. Once a migration has shipped its statements must never change:
the ledger stores a checksum of each applied migration and startup fails on
a mismatch. Fixes go into a new migration at the end of the list.
"""
from flowforge.db.migrations import Migration

MIGRATIONS = [
    Migration(
        version=1,
        description="create_initial_tables",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS clients (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT,
                address TEXT,
                phone TEXT,
                hourly_rate REAL,
                notes TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                client_id TEXT,
                name TEXT NOT NULL,
                description TEXT,
                status TEXT DEFAULT 'active',
                color TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (client_id) REFERENCES clients(id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS time_entries (
                id TEXT PRIMARY KEY,
                project_id TEXT,
                start_time TEXT NOT NULL,
                end_time TEXT,
                pause_duration INTEGER DEFAULT 0,
                notes TEXT,
                is_billable INTEGER DEFAULT 1,
                is_billed INTEGER DEFAULT 0,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (project_id) REFERENCES projects(id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS invoices (
                id TEXT PRIMARY KEY,
                client_id TEXT,
                invoice_number TEXT NOT NULL,
                issue_date TEXT,
                due_date TEXT,
                status TEXT DEFAULT 'draft',
                notes TEXT,
                tax_rate REAL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (client_id) REFERENCES clients(id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS invoice_line_items (
                id TEXT PRIMARY KEY,
                invoice_id TEXT,
                description TEXT NOT NULL,
                quantity REAL,
                unit_price REAL,
                FOREIGN KEY (invoice_id) REFERENCES invoices(id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
            """,
        ),
    ),
    Migration(
        version=2,
        description="add_vat_number_to_clients",
        statements=("ALTER TABLE clients ADD COLUMN vat_number TEXT",),
    ),
    Migration(
        version=3,
        description="add_query_indexes",
        statements=(
            "CREATE INDEX IF NOT EXISTS idx_projects_client_id ON projects(client_id)",
            "CREATE INDEX IF NOT EXISTS idx_time_entries_project_id ON time_entries(project_id)",
            "CREATE INDEX IF NOT EXISTS idx_time_entries_start_time ON time_entries(start_time)",
            "CREATE INDEX IF NOT EXISTS idx_invoices_client_id ON invoices(client_id)",
            "CREATE INDEX IF NOT EXISTS idx_invoice_line_items_invoice_id ON invoice_line_items(invoice_id)",
        ),
    ),
    Migration(
        version=4,
        description="add_invoice_number_unique_per_client",
        statements=(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS ux_invoices_client_number
            ON invoices(client_id, invoice_number)
            """,
        ),
    ),
    Migration(
        version=5,
        description="link_time_entries_to_invoices",
        statements=(
            "ALTER TABLE time_entries ADD COLUMN invoice_id TEXT REFERENCES invoices(id)",
            "CREATE INDEX IF NOT EXISTS idx_time_entries_invoice_id ON time_entries(invoice_id)",
        ),
    ),
    Migration(
        version=6,
        description="normalize_invoice_statuses",
        statements=(
            "UPDATE invoices SET status = 'void' WHERE status = 'cancelled'",
            "UPDATE invoices SET status = 'sent' WHERE status = 'overdue'",
            "UPDATE invoices SET status = 'draft' WHERE status IS NULL",
        ),
    ),
    Migration(
        version=7,
        description="track_recreated_time_entries",
        statements=(
            "ALTER TABLE time_entries ADD COLUMN recreated_from TEXT REFERENCES time_entries(id) ON DELETE SET NULL",
            """
            CREATE UNIQUE INDEX IF NOT EXISTS ux_time_entries_recreated_from
            ON time_entries(recreated_from)
            """,
        ),
    ),
]

LATEST_VERSION = MIGRATIONS[-1].version
