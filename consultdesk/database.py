"""
Database connection and document storage.
Supports both SQLite (local development) and PostgreSQL (production).

Accounts, services, leads and wallets are stored as JSON documents with a few
indexed columns beside them. Customer orders live inside the customer
document; the order_index table mirrors (order_id, customer, service,
employee, status) so orders can be found without scanning every customer.
"""
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, date

from consultdesk.config import DATABASE_PATH, DATABASE_URL, USE_POSTGRES
from consultdesk.errors import NotFound, ConcurrentModification

# PostgreSQL support
if USE_POSTGRES:
    import psycopg2
    from psycopg2.extras import RealDictCursor


# Indexed columns kept beside each document table's JSON body
DOCUMENT_TABLES = {
    "accounts": ("role", "email", "is_active"),
    "services": ("is_active",),
    "leads": ("email", "status", "assigned_to"),
    "wallets": (),
    "messages": ("sender", "recipient", "service_id", "order_id", "is_read"),
}


class DictRow:
    """Wrapper to make psycopg2 results behave like sqlite3.Row"""
    def __init__(self, data):
        self._data = data
        self._keys = list(data.keys()) if data else []

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._data[self._keys[key]]
        return self._data[key]

    def __iter__(self):
        return iter(self._data.values())

    def keys(self):
        return self._keys


def get_db_connection():
    """Create a database connection with row factory."""
    if USE_POSTGRES:
        conn = psycopg2.connect(DATABASE_URL)
        return conn
    else:
        conn = sqlite3.connect(str(DATABASE_PATH), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn


class PostgresCursorWrapper:
    """Wrapper to make PostgreSQL cursor behave like SQLite cursor"""
    def __init__(self, cursor, conn=None):
        self._cursor = cursor
        self._conn = conn

    def execute(self, query, params=None):
        # Convert SQLite ? placeholders to PostgreSQL %s
        query = query.replace('?', '%s')
        # Convert INSERT OR IGNORE to INSERT ... ON CONFLICT DO NOTHING
        if 'INSERT OR IGNORE' in query.upper():
            query = query.replace('INSERT OR IGNORE', 'INSERT')
            query = query.replace('insert or ignore', 'INSERT')
            query = query.rstrip().rstrip(';') + ' ON CONFLICT DO NOTHING'
        # Convert SQLite PRAGMA (ignore in PostgreSQL)
        if query.strip().upper().startswith('PRAGMA'):
            return self
        if params:
            self._cursor.execute(query, params)
        else:
            self._cursor.execute(query)
        return self

    def executemany(self, query, params_list):
        query = query.replace('?', '%s')
        for params in params_list:
            self._cursor.execute(query, params)
        return self

    def fetchone(self):
        row = self._cursor.fetchone()
        return DictRow(row) if row else None

    def fetchall(self):
        rows = self._cursor.fetchall()
        return [DictRow(row) for row in rows]

    @property
    def rowcount(self):
        return self._cursor.rowcount


class PostgresConnection:
    """Connection facade exposing the sqlite3 connection methods we use."""
    def __init__(self, conn, cursor):
        self._conn = conn
        self._cursor = PostgresCursorWrapper(cursor, conn)

    def cursor(self):
        return self._cursor

    def execute(self, *args, **kwargs):
        return self._cursor.execute(*args, **kwargs)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = get_db_connection()
    try:
        if USE_POSTGRES:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            yield PostgresConnection(conn, cursor)
        else:
            yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def _use_connection(conn=None):
    """Reuse the caller's connection or open a short-lived one."""
    if conn is not None:
        yield conn
    else:
        with get_db() as own:
            yield own


def init_database():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        # Per-prefix counters for human-readable ids
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sequences (
                prefix TEXT PRIMARY KEY,
                seq INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                role TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                is_active INTEGER DEFAULT 0,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS services (
                id TEXT PRIMARY KEY,
                is_active INTEGER DEFAULT 1,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS leads (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'new',
                assigned_to TEXT,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS wallets (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                sender TEXT NOT NULL,
                recipient TEXT NOT NULL,
                service_id TEXT NOT NULL,
                order_id TEXT,
                is_read INTEGER DEFAULT 0,
                data TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Lookup of orders embedded in customer documents
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS order_index (
                order_id TEXT PRIMARY KEY,
                customer_id TEXT NOT NULL,
                service_id TEXT,
                employee_id TEXT,
                status TEXT
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_order_index_service ON order_index (service_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_order_index_customer ON order_index (customer_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_leads_status ON leads (status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_recipient ON messages (recipient)")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)


def reset_database():
    """Drop all tables and reinitialize (for development only)."""
    if not USE_POSTGRES and DATABASE_PATH.exists():
        DATABASE_PATH.unlink()
    elif USE_POSTGRES:
        with get_db() as conn:
            cursor = conn.cursor()
            for table in ["sessions", "order_index", "messages", "wallets", "leads", "services", "accounts", "sequences"]:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
    init_database()
    print("Database reset complete!")


# ============================================================
# Document helpers
# ============================================================

def json_serial(obj):
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


def _encode(doc: dict) -> str:
    body = {k: v for k, v in doc.items() if k != "version"}
    return json.dumps(body, default=json_serial)


def _decode(row) -> dict:
    doc = json.loads(row['data'])
    doc['version'] = row['version']
    return doc


def _column_values(table: str, columns: dict) -> dict:
    allowed = DOCUMENT_TABLES[table]
    unknown = set(columns) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown columns for {table}: {sorted(unknown)}")
    return {k: columns[k] for k in allowed if k in columns}


def insert_document(table: str, doc: dict, conn=None, **columns) -> dict:
    """Insert a new document; its '_id' becomes the row id."""
    values = _column_values(table, columns)
    names = ["id", "data"] + list(values)
    params = [doc["_id"], _encode(doc)] + list(values.values())
    placeholders = ", ".join("?" for _ in names)

    with _use_connection(conn) as c:
        cursor = c.cursor()
        cursor.execute(
            f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
            tuple(params)
        )
    doc["version"] = 1
    return doc


def update_document(table: str, doc: dict, conn=None, **columns) -> dict:
    """
    Write a document back, guarded by its version.
    Raises ConcurrentModification if another writer saved it first.
    """
    values = _column_values(table, columns)
    expected = doc.get("version", 1)
    assignments = ["data = ?", "version = version + 1", "updated_at = CURRENT_TIMESTAMP"]
    assignments += [f"{name} = ?" for name in values]
    params = [_encode(doc)] + list(values.values()) + [doc["_id"], expected]

    with _use_connection(conn) as c:
        cursor = c.cursor()
        cursor.execute(
            f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ? AND version = ?",
            tuple(params)
        )
        if cursor.rowcount == 0:
            cursor.execute(f"SELECT version FROM {table} WHERE id = ?", (doc["_id"],))
            row = cursor.fetchone()
            if not row:
                raise NotFound(f"{table[:-1].capitalize()} {doc['_id']} not found")
            raise ConcurrentModification(
                f"{table[:-1].capitalize()} {doc['_id']} was modified concurrently "
                f"(expected version {expected}, found {row['version']})"
            )
    doc["version"] = expected + 1
    return doc


def load_document(table: str, doc_id: str, conn=None):
    """Point lookup by id. Returns None when absent."""
    if not doc_id:
        return None
    with _use_connection(conn) as c:
        cursor = c.cursor()
        cursor.execute(f"SELECT data, version FROM {table} WHERE id = ?", (doc_id,))
        row = cursor.fetchone()
    return _decode(row) if row else None


def find_documents(table: str, where: str = "", params: tuple = (), order_by: str = "id", conn=None) -> list:
    """Bulk find by indexed columns."""
    query = f"SELECT data, version FROM {table}"
    if where:
        query += f" WHERE {where}"
    if order_by:
        query += f" ORDER BY {order_by}"
    with _use_connection(conn) as c:
        cursor = c.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
    return [_decode(row) for row in rows]


# ============================================================
# Order index
# ============================================================

def index_customer_orders(customer: dict, conn=None):
    """Rebuild the order_index rows for one customer document."""
    with _use_connection(conn) as c:
        cursor = c.cursor()
        cursor.execute("DELETE FROM order_index WHERE customer_id = ?", (customer["_id"],))
        for order in customer.get("services", []):
            if not order.get("orderId"):
                continue
            cursor.execute("""
                INSERT INTO order_index (order_id, customer_id, service_id, employee_id, status)
                VALUES (?, ?, ?, ?, ?)
            """, (
                order["orderId"],
                customer["_id"],
                order.get("serviceId"),
                order.get("employeeId"),
                order.get("status"),
            ))


def find_customer_id_for_order(order_id: str):
    """Resolve the customer owning an order id."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT customer_id FROM order_index WHERE order_id = ?", (order_id,))
        row = cursor.fetchone()
    return row['customer_id'] if row else None


def find_order_entries(service_id: str = None, unassigned: bool = False,
                       exclude_statuses: list = None, employee_id: str = None) -> list:
    """Query the order index. Returns plain dicts."""
    conditions = []
    params = []
    if service_id:
        conditions.append("service_id = ?")
        params.append(service_id)
    if unassigned:
        conditions.append("(employee_id IS NULL OR employee_id = '')")
    if employee_id:
        conditions.append("employee_id = ?")
        params.append(employee_id)
    if exclude_statuses:
        conditions.append(f"status NOT IN ({', '.join('?' for _ in exclude_statuses)})")
        params.extend(exclude_statuses)

    query = "SELECT order_id, customer_id, service_id, employee_id, status FROM order_index"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY customer_id, order_id"

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(query, tuple(params))
        return [dict(zip(row.keys(), row)) for row in cursor.fetchall()]
