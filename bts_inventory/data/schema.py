"""Built-in schema, one migration per release of the local database layout."""
from bts_inventory.data.migrations import Migration

# Sync metadata carried by every tracked table
_SYNC_COLUMNS = """
    sync_status TEXT NOT NULL DEFAULT 'pending',
    is_dirty INTEGER NOT NULL DEFAULT 1,
    last_modified TEXT NOT NULL,
    last_synced_at TEXT,
    deleted_at TEXT
"""

V1_CORE_TABLES = f"""
CREATE TABLE employees (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    phone TEXT NOT NULL DEFAULT '',
    department TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'employee',
    status TEXT NOT NULL DEFAULT 'active',
    password_hash TEXT NOT NULL DEFAULT '',
    password_salt TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    location TEXT NOT NULL DEFAULT '',
    two_factor_enabled INTEGER NOT NULL DEFAULT 0,
    email_notifications INTEGER NOT NULL DEFAULT 0,
    low_stock_alerts INTEGER NOT NULL DEFAULT 0,
    language TEXT NOT NULL DEFAULT 'English',
    {_SYNC_COLUMNS}
);

CREATE TABLE products (
    id TEXT PRIMARY KEY,
    value_category TEXT NOT NULL DEFAULT 'LV',
    article TEXT NOT NULL,
    date TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    par_control_number TEXT NOT NULL DEFAULT '',
    property_number TEXT NOT NULL DEFAULT '',
    unit TEXT NOT NULL DEFAULT '',
    unit_value REAL NOT NULL DEFAULT 0,
    balance_per_card INTEGER NOT NULL DEFAULT 0,
    on_hand_per_count INTEGER NOT NULL DEFAULT 0,
    total REAL NOT NULL DEFAULT 0,
    remarks TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    assigned_to_employee_id TEXT,
    status TEXT NOT NULL DEFAULT 'available',
    {_SYNC_COLUMNS}
);
"""

V2_RETURNS = f"""
CREATE TABLE returns (
    id TEXT PRIMARY KEY,
    rrsp_number TEXT NOT NULL,
    product_id TEXT NOT NULL,
    return_date TEXT NOT NULL,
    quantity INTEGER NOT NULL DEFAULT 1,
    condition TEXT NOT NULL DEFAULT 'functional',
    remarks TEXT NOT NULL DEFAULT '',
    returned_by_employee_id TEXT NOT NULL,
    returned_by_position TEXT NOT NULL DEFAULT 'employee',
    received_date TEXT,
    location TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    processed_by_employee_id TEXT,
    processed_date TEXT,
    processing_notes TEXT,
    {_SYNC_COLUMNS}
);

CREATE TABLE return_receivers (
    return_id TEXT NOT NULL REFERENCES returns(id) ON DELETE CASCADE,
    employee_id TEXT NOT NULL,
    position TEXT NOT NULL DEFAULT 'employee',
    received_date TEXT,
    location TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (return_id, employee_id)
);
"""

V3_ACTIVITY_AND_SETTINGS = f"""
CREATE TABLE activity_logs (
    id TEXT PRIMARY KEY,
    action TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    performed_by_employee_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'success',
    ip_address TEXT NOT NULL DEFAULT 'offline',
    {_SYNC_COLUMNS}
);

CREATE TABLE settings (
    id TEXT PRIMARY KEY,
    system_name TEXT NOT NULL,
    company_name TEXT NOT NULL DEFAULT '',
    time_zone TEXT NOT NULL DEFAULT 'UTC',
    date_format TEXT NOT NULL DEFAULT 'YYYY-MM-DD',
    maintenance_mode INTEGER NOT NULL DEFAULT 0,
    notifications_low_stock INTEGER NOT NULL DEFAULT 0,
    notifications_new_return INTEGER NOT NULL DEFAULT 0,
    notifications_return_approved INTEGER NOT NULL DEFAULT 0,
    notifications_employee_added INTEGER NOT NULL DEFAULT 0,
    notifications_system_updates INTEGER NOT NULL DEFAULT 0,
    password_policy TEXT NOT NULL DEFAULT 'medium',
    session_timeout_minutes INTEGER NOT NULL DEFAULT 30,
    max_login_attempts INTEGER NOT NULL DEFAULT 5,
    require_two_factor INTEGER NOT NULL DEFAULT 0,
    ip_whitelist_enabled INTEGER NOT NULL DEFAULT 0,
    backup_frequency TEXT NOT NULL DEFAULT 'monthly',
    last_backup_at TEXT NOT NULL DEFAULT '',
    smtp_server TEXT NOT NULL DEFAULT '',
    smtp_port TEXT NOT NULL DEFAULT '',
    smtp_encryption TEXT NOT NULL DEFAULT 'TLS',
    smtp_from_email TEXT NOT NULL DEFAULT '',
    api_key TEXT NOT NULL DEFAULT '',
    api_rate_limit INTEGER NOT NULL DEFAULT 100,
    api_enabled INTEGER NOT NULL DEFAULT 0,
    {_SYNC_COLUMNS}
);
"""

V4_OUTBOX = """
CREATE TABLE sync_outbox (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    operation TEXT NOT NULL CHECK (operation IN ('upsert', 'delete')),
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    next_retry_at TEXT
);

CREATE INDEX idx_sync_outbox_entity ON sync_outbox (entity_type, entity_id);
"""

V5_META_AND_INDEXES = """
CREATE TABLE sys_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX idx_sync_outbox_next_retry ON sync_outbox (next_retry_at);
CREATE INDEX idx_employees_deleted ON employees (deleted_at);
CREATE INDEX idx_products_deleted ON products (deleted_at);
CREATE INDEX idx_products_property_number ON products (property_number);
CREATE INDEX idx_returns_deleted ON returns (deleted_at);
CREATE INDEX idx_activity_logs_timestamp ON activity_logs (timestamp);
"""

MIGRATIONS = [
    Migration(1, V1_CORE_TABLES),
    Migration(2, V2_RETURNS),
    Migration(3, V3_ACTIVITY_AND_SETTINGS),
    Migration(4, V4_OUTBOX),
    Migration(5, V5_META_AND_INDEXES),
]
