"""
guestbot Database Schema Management.

Lightweight migration system:
- Tracks current schema version in a `schema_version` table
- Only runs migrations that haven't been applied yet
- Each migration is a (version, description, SQL) tuple
- Safe for concurrent startup (uses advisory lock)

Usage:
    db = Database(dsn="postgresql://...")
    await db.initialize()
    await ensure_schema(db)
"""

import logging
from typing import List, Tuple

from .database import Database

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────
# Migration registry
#
# Append-only. Never modify or delete existing entries.
# Each entry: (version, description, sql)
# ──────────────────────────────────────────────────────────────
MIGRATIONS: List[Tuple[int, str, str]] = [
    (
        1,
        "Create events, venues and FAQ tables",
        """
        CREATE TABLE IF NOT EXISTS events (
            id                  TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            organization_id     TEXT NOT NULL,
            name                TEXT NOT NULL,
            date                TIMESTAMPTZ NOT NULL,
            start_time          TEXT,
            end_time            TEXT,
            timezone            TEXT,
            person1             TEXT NOT NULL,
            person2             TEXT NOT NULL,
            is_active           BOOLEAN NOT NULL DEFAULT TRUE,
            has_chatbot_enabled BOOLEAN NOT NULL DEFAULT FALSE,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS venues (
            id          TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id    TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            name        TEXT NOT NULL,
            address     TEXT,
            purpose     TEXT NOT NULL DEFAULT 'MAIN'
        );

        CREATE TABLE IF NOT EXISTS event_questions (
            id          TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id    TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            question    TEXT NOT NULL,
            answer      TEXT NOT NULL,
            status      TEXT NOT NULL DEFAULT 'ACTIVE',
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        2,
        "Create guest groups and guests tables",
        """
        CREATE TABLE IF NOT EXISTS guest_groups (
            id          TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id    TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS guests (
            id                   TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id             TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            guest_group_id       TEXT REFERENCES guest_groups(id) ON DELETE SET NULL,
            name                 TEXT NOT NULL,
            phone                TEXT,
            status               TEXT NOT NULL DEFAULT 'PENDING',
            dietary_restrictions TEXT,
            notes                TEXT,
            table_name           TEXT,
            category             TEXT,
            inviter              TEXT,
            is_primary_guest     BOOLEAN NOT NULL DEFAULT TRUE,
            has_multiple_guests  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_guests_phone ON guests(phone);
        CREATE INDEX IF NOT EXISTS idx_guests_group ON guests(guest_group_id);
        """,
    ),
    (
        3,
        "Create guest confirmation tables",
        """
        CREATE TABLE IF NOT EXISTS event_required_guest_confirmations (
            id              TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id        TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            label           TEXT NOT NULL,
            best_way_to_ask TEXT NOT NULL DEFAULT '',
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS event_required_guest_confirmation_options (
            id              TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            question_id     TEXT NOT NULL
                REFERENCES event_required_guest_confirmations(id) ON DELETE CASCADE,
            label           TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS guest_confirmation_responses (
            id                  TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            guest_id            TEXT NOT NULL REFERENCES guests(id) ON DELETE CASCADE,
            question_id         TEXT NOT NULL
                REFERENCES event_required_guest_confirmations(id) ON DELETE CASCADE,
            selected_option_id  TEXT
                REFERENCES event_required_guest_confirmation_options(id) ON DELETE SET NULL,
            custom_response     TEXT,
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (guest_id, question_id)
        );
        """,
    ),
    (
        4,
        "Create guest requests table",
        """
        CREATE TABLE IF NOT EXISTS guest_requests (
            id           TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            guest_id     TEXT NOT NULL REFERENCES guests(id) ON DELETE CASCADE,
            event_id     TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            request_text TEXT NOT NULL,
            status       TEXT NOT NULL DEFAULT 'PENDING',
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        5,
        "Create chat sessions and messages tables",
        """
        CREATE TABLE IF NOT EXISTS chat_sessions (
            id               TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            phone            TEXT NOT NULL,
            organization_id  TEXT NOT NULL,
            guest_id         TEXT,
            is_active        BOOLEAN NOT NULL DEFAULT TRUE,
            is_test          BOOLEAN NOT NULL DEFAULT FALSE,
            last_message_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            next_reply_at    TIMESTAMPTZ,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_chat_sessions_phone
            ON chat_sessions(phone, organization_id);

        CREATE TABLE IF NOT EXISTS chat_messages (
            id                  TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            session_id          TEXT NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
            direction           TEXT NOT NULL,
            content             TEXT NOT NULL,
            agent_execution_id  TEXT,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_chat_messages_session
            ON chat_messages(session_id, created_at);
        """,
    ),
    (
        6,
        "Create agent ledger tables",
        """
        CREATE TABLE IF NOT EXISTS agents (
            id             TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            name           TEXT NOT NULL,
            description    TEXT,
            type           TEXT NOT NULL,
            system_prompt  TEXT,
            model          TEXT,
            max_tokens     INTEGER,
            temperature    DOUBLE PRECISION,
            is_active      BOOLEAN NOT NULL DEFAULT TRUE,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS agent_executions (
            id                        TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            session_id                TEXT NOT NULL,
            agent_id                  TEXT NOT NULL REFERENCES agents(id),
            status                    TEXT NOT NULL,
            system_prompt             TEXT,
            user_message              TEXT,
            final_response            TEXT,
            input_tokens              INTEGER NOT NULL DEFAULT 0,
            output_tokens             INTEGER NOT NULL DEFAULT 0,
            cache_creation_tokens     INTEGER NOT NULL DEFAULT 0,
            cache_read_tokens         INTEGER NOT NULL DEFAULT 0,
            execution_time_ms         INTEGER,
            parent_execution_id       TEXT REFERENCES agent_executions(id),
            parent_loop_iteration_id  TEXT,
            started_at                TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at              TIMESTAMPTZ
        );
        CREATE INDEX IF NOT EXISTS idx_agent_executions_session
            ON agent_executions(session_id);

        CREATE TABLE IF NOT EXISTS agent_loop_iterations (
            id                 TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            execution_id       TEXT NOT NULL REFERENCES agent_executions(id) ON DELETE CASCADE,
            iteration_number   INTEGER NOT NULL,
            status             TEXT NOT NULL,
            input_prompt       TEXT,
            output_content     TEXT,
            tool_calls         JSONB,
            tool_results       JSONB,
            iteration_time_ms  INTEGER,
            started_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at       TIMESTAMPTZ,
            UNIQUE (execution_id, iteration_number)
        );

        CREATE TABLE IF NOT EXISTS chatbot_api_calls (
            id                     TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            message_id             TEXT,
            session_id             TEXT NOT NULL,
            role                   TEXT,
            model                  TEXT,
            content                JSONB,
            stop_reason            TEXT,
            stop_sequence          TEXT,
            input_tokens           INTEGER NOT NULL DEFAULT 0,
            output_tokens          INTEGER NOT NULL DEFAULT 0,
            cache_creation_tokens  INTEGER NOT NULL DEFAULT 0,
            cache_read_tokens      INTEGER NOT NULL DEFAULT 0,
            agent_execution_id     TEXT REFERENCES agent_executions(id) ON DELETE CASCADE,
            loop_iteration_id      TEXT REFERENCES agent_loop_iterations(id) ON DELETE SET NULL,
            created_at             TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_chatbot_api_calls_execution
            ON chatbot_api_calls(agent_execution_id);
        """,
    ),
    (
        7,
        "Create bulk message delivery tables",
        """
        CREATE TABLE IF NOT EXISTS bulk_messages (
            id             TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            event_id       TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            name           TEXT,
            template_sid   TEXT,
            template_body  TEXT,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS message_deliveries (
            id               TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            bulk_message_id  TEXT NOT NULL REFERENCES bulk_messages(id) ON DELETE CASCADE,
            guest_id         TEXT NOT NULL REFERENCES guests(id) ON DELETE CASCADE,
            status           TEXT NOT NULL DEFAULT 'PENDING',
            variables        JSONB,
            sent_at          TIMESTAMPTZ,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_message_deliveries_guest
            ON message_deliveries(guest_id, sent_at);
        """,
    ),
]


# ──────────────────────────────────────────────────────────────
# Schema management
# ──────────────────────────────────────────────────────────────

_BOOTSTRAP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

# PostgreSQL advisory lock ID, unique to this app
_LOCK_ID = 4_7781_2207


async def ensure_schema(db: Database) -> None:
    """Apply any pending migrations.

    - Creates the ``schema_version`` tracking table if needed
    - Uses a PostgreSQL advisory lock to prevent concurrent migration runs
    - Each migration runs in its own transaction

    Args:
        db: Initialized Database instance.
    """
    async with db.connection() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", _LOCK_ID)
        try:
            await conn.execute(_BOOTSTRAP_SQL)

            row = await conn.fetchrow(
                "SELECT COALESCE(MAX(version), 0) AS v FROM schema_version"
            )
            current = row["v"]

            pending = [(v, d, s) for v, d, s in MIGRATIONS if v > current]
            if not pending:
                logger.debug(f"Schema up to date (version {current})")
                return

            for version, description, sql in pending:
                async with conn.transaction():
                    await conn.execute(sql)
                    await conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES ($1, $2)",
                        version,
                        description,
                    )
                logger.info(f"Migration {version}: {description}")

            logger.info(
                f"Schema migrated {current} -> {pending[-1][0]} "
                f"({len(pending)} migration(s))"
            )
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", _LOCK_ID)
