"""
Tables used by the cadence engine.

Architecture:
    ::

        CADENCE_TABLES:
        ┌────────────────────────────────────────────────────────────┐
        │ rules        → cadence_schedule_rules   (one per task)     │
        │ plans        → cadence_execution_plans  (one per slot)     │
        │ holidays     → cadence_holidays         (civil date key)   │
        │ targets      → cadence_task_targets     (delivery info)    │
        │ locks        → cadence_locks            (TTL locks)        │
        └────────────────────────────────────────────────────────────┘

        Plan identity:
        ┌────────────────────────────────────────────────────────────┐
        │ UNIQUE (task_id, scheduled_date, scheduled_time)           │
        │                                                            │
        │ The materializer inserts with INSERT-or-ignore against     │
        │ this key, so concurrent regenerations cannot duplicate.    │
        └────────────────────────────────────────────────────────────┘

    Civil timestamps (``due_at``, ``claimed_at``, ``generated_at``) are
    naive ISO strings in the configured zone; lock timestamps are UTC.

Examples:
    >>> from cadence.core.schema import CADENCE_TABLES, create_tables
    >>> CADENCE_TABLES["plans"]
    'cadence_execution_plans'
    >>> create_tables(conn)

Tags:
    schema, ddl, tables, cadence, database
"""

CADENCE_TABLES = {
    "rules": "cadence_schedule_rules",
    "plans": "cadence_execution_plans",
    "holidays": "cadence_holidays",
    "targets": "cadence_task_targets",
    "locks": "cadence_locks",
}


CADENCE_DDL = {
    # =========================================================================
    # Compiled recurrence rules, stored as canonical JSON (ScheduleRule.to_dict)
    # =========================================================================
    "rules": """
        CREATE TABLE IF NOT EXISTS cadence_schedule_rules (
            task_id TEXT PRIMARY KEY,
            rule_type TEXT NOT NULL,
            rule_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    # =========================================================================
    # Execution plans: one row per (task, date, time) slot
    # =========================================================================
    "plans": """
        CREATE TABLE IF NOT EXISTS cadence_execution_plans (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL,
            scheduled_date TEXT NOT NULL,
            scheduled_time TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            due_at TEXT NOT NULL,
            generated_at TEXT NOT NULL,
            actual_execution_time TEXT,
            error_message TEXT,
            retry_count INTEGER NOT NULL DEFAULT 0,
            priority_override INTEGER,
            cancelled INTEGER NOT NULL DEFAULT 0,
            claimed_by TEXT,
            claimed_at TEXT,
            updated_at TEXT NOT NULL,
            UNIQUE (task_id, scheduled_date, scheduled_time)
        )
    """,
    "plans_idx_due": """
        CREATE INDEX IF NOT EXISTS idx_cadence_plans_due
        ON cadence_execution_plans(status, cancelled, due_at)
    """,
    "plans_idx_task_date": """
        CREATE INDEX IF NOT EXISTS idx_cadence_plans_task_date
        ON cadence_execution_plans(task_id, scheduled_date)
    """,
    # =========================================================================
    # Holiday calendar: statutory holidays, adjusted workdays, custom entries
    # =========================================================================
    "holidays": """
        CREATE TABLE IF NOT EXISTS cadence_holidays (
            holiday_date TEXT PRIMARY KEY,
            year INTEGER NOT NULL,
            is_holiday INTEGER NOT NULL DEFAULT 1,
            is_adjusted_workday INTEGER NOT NULL DEFAULT 0,
            name TEXT,
            source TEXT NOT NULL DEFAULT 'static'
        )
    """,
    "holidays_idx_year": """
        CREATE INDEX IF NOT EXISTS idx_cadence_holidays_year
        ON cadence_holidays(year)
    """,
    # =========================================================================
    # Task targets: what the scheduler needs to deliver a reminder
    # =========================================================================
    "targets": """
        CREATE TABLE IF NOT EXISTS cadence_task_targets (
            task_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            destination TEXT NOT NULL,
            message_template TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    # =========================================================================
    # TTL locks (regeneration serialization across replicas)
    # =========================================================================
    "locks": """
        CREATE TABLE IF NOT EXISTS cadence_locks (
            lock_key TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            acquired_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
    """,
    "locks_idx_expires": """
        CREATE INDEX IF NOT EXISTS idx_cadence_locks_expires
        ON cadence_locks(expires_at)
    """,
}


def create_tables(conn) -> None:
    """
    Create all cadence tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in CADENCE_DDL.items():
        conn.execute(ddl)
    conn.commit()
