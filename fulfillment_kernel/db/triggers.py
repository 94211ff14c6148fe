"""
Module: fulfillment_kernel.db.triggers
Responsibility: Loading, installing and verifying the database triggers that
    back the ORM listeners in db/immutability.py (Layer 2 of 2).
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced (per dialect, one directory under sql/):
    - orders: status writes must follow the lifecycle edge table and satisfy
      the payment/address/tracking preconditions of the target status.
    - orders: no DELETE.
    - customer_trust_history: no UPDATE, no DELETE.

Failure modes:
    - The database raises on any violation; SQLAlchemy surfaces it as a
      DBAPIError (IntegrityError on SQLite, InternalError/RaiseException on
      PostgreSQL) carrying only the trigger's message text.
    - FileNotFoundError if an SQL file is missing.
    - ValueError for a dialect without trigger definitions.

Trigger messages are a contract with domain/error_translator.py.  Change
them together.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

SUPPORTED_DIALECTS = ("postgresql", "sqlite")

TRIGGER_FILES = [
    "01_order_status.sql",
    "02_order_delete.sql",
    "03_trust_history.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_order_status_guard",
    "trg_order_no_delete",
    "trg_trust_history_no_update",
    "trg_trust_history_no_delete",
]


def _sql_dir(dialect: str) -> Path:
    if dialect not in SUPPORTED_DIALECTS:
        raise ValueError(f"No trigger definitions for dialect '{dialect}'")
    return SQL_DIR / dialect


def _load_sql_file(dialect: str, filename: str) -> str:
    return (_sql_dir(dialect) / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql(dialect: str) -> str:
    """Concatenate the trigger files for ``dialect`` in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(dialect, filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def _execute_script(engine: Engine, sql_content: str) -> None:
    if engine.dialect.name == "sqlite":
        # pysqlite runs one statement per execute(); trigger bodies contain
        # semicolons, so the script goes through executescript().
        raw = engine.raw_connection()
        try:
            raw.driver_connection.executescript(sql_content)
            raw.commit()
        finally:
            raw.close()
        return

    with engine.connect() as conn:
        conn.execute(text(sql_content))
        conn.commit()


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the order and trust history triggers.

    Preconditions: tables exist (call after create_all).
    Postconditions: every trigger in ALL_TRIGGER_NAMES is installed.
        Re-running is safe (CREATE OR REPLACE / IF NOT EXISTS).
    """
    _execute_script(engine, _load_all_trigger_sql(engine.dialect.name))


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Remove the triggers.  Only for tests and controlled migrations."""
    _execute_script(engine, _load_sql_file(engine.dialect.name, DROP_FILE))


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names from ALL_TRIGGER_NAMES that are present in the database."""
    names = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    if engine.dialect.name == "sqlite":
        check_sql = (
            "SELECT name FROM sqlite_master "
            f"WHERE type = 'trigger' AND name IN ({names}) ORDER BY name"
        )
    else:
        check_sql = (
            f"SELECT tgname FROM pg_trigger WHERE tgname IN ({names}) ORDER BY tgname"
        )

    with engine.connect() as conn:
        return [row[0] for row in conn.execute(text(check_sql))]


def triggers_installed(engine: Engine) -> bool:
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)


def get_missing_triggers(engine: Engine) -> list[str]:
    installed = set(get_installed_triggers(engine))
    return sorted(set(ALL_TRIGGER_NAMES) - installed)
