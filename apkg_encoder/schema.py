"""
Legacy Anki 2 collection schema.

The schema is fixed: five tables (col, notes, cards, revlog, graves) followed
by seven indexes. It matches what Anki 2.0/2.1 writes for ``collection.anki2``.
"""

import logging
import sqlite3

from apkg_encoder.errors import SchemaError

logger = logging.getLogger(__name__)

TABLE_STATEMENTS = (
    """
    CREATE TABLE col (
        id INTEGER PRIMARY KEY,
        crt INTEGER NOT NULL,
        mod INTEGER NOT NULL,
        scm INTEGER NOT NULL,
        ver INTEGER NOT NULL,
        dty INTEGER NOT NULL,
        usn INTEGER NOT NULL,
        ls INTEGER NOT NULL,
        conf TEXT NOT NULL,
        models TEXT NOT NULL,
        decks TEXT NOT NULL,
        dconf TEXT NOT NULL,
        tags TEXT NOT NULL
    )
    """,
    # sfld is INTEGER so numeric sort fields sort numerically
    """
    CREATE TABLE notes (
        id INTEGER PRIMARY KEY,
        guid TEXT NOT NULL,
        mid INTEGER NOT NULL,
        mod INTEGER NOT NULL,
        usn INTEGER NOT NULL,
        tags TEXT NOT NULL,
        flds TEXT NOT NULL,
        sfld INTEGER NOT NULL,
        csum INTEGER NOT NULL,
        flags INTEGER NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE cards (
        id INTEGER PRIMARY KEY,
        nid INTEGER NOT NULL,
        did INTEGER NOT NULL,
        ord INTEGER NOT NULL,
        mod INTEGER NOT NULL,
        usn INTEGER NOT NULL,
        type INTEGER NOT NULL,
        queue INTEGER NOT NULL,
        due INTEGER NOT NULL,
        ivl INTEGER NOT NULL,
        factor INTEGER NOT NULL,
        reps INTEGER NOT NULL,
        lapses INTEGER NOT NULL,
        left INTEGER NOT NULL,
        odue INTEGER NOT NULL,
        odid INTEGER NOT NULL,
        flags INTEGER NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE revlog (
        id INTEGER PRIMARY KEY,
        cid INTEGER NOT NULL,
        usn INTEGER NOT NULL,
        ease INTEGER NOT NULL,
        ivl INTEGER NOT NULL,
        lastIvl INTEGER NOT NULL,
        factor INTEGER NOT NULL,
        time INTEGER NOT NULL,
        type INTEGER NOT NULL
    )
    """,
    # Deleted objects awaiting sync
    """
    CREATE TABLE graves (
        usn INTEGER NOT NULL,
        oid INTEGER NOT NULL,
        type INTEGER NOT NULL
    )
    """,
)

INDEX_STATEMENTS = (
    "CREATE INDEX ix_notes_usn ON notes (usn)",
    "CREATE INDEX ix_cards_usn ON cards (usn)",
    "CREATE INDEX ix_revlog_usn ON revlog (usn)",
    "CREATE INDEX ix_cards_nid ON cards (nid)",
    "CREATE INDEX ix_cards_sched ON cards (did, queue, due)",
    "CREATE INDEX ix_revlog_cid ON revlog (cid)",
    "CREATE INDEX ix_notes_csum ON notes (csum)",
)

TABLE_NAMES = ("col", "notes", "cards", "revlog", "graves")
INDEX_NAMES = (
    "ix_notes_usn",
    "ix_cards_usn",
    "ix_revlog_usn",
    "ix_cards_nid",
    "ix_cards_sched",
    "ix_revlog_cid",
    "ix_notes_csum",
)


class SchemaBuilder:
    """Create the collection tables and indexes on a fresh database."""

    def statements(self) -> list[str]:
        """All statements in execution order: tables first, then indexes."""
        return list(TABLE_STATEMENTS) + list(INDEX_STATEMENTS)

    def create(self, conn: sqlite3.Connection) -> None:
        """
        Run every schema statement in order.

        :param conn: Open connection to an empty database.
        :raises SchemaError: On the first failing statement; later statements
            are not run.
        """
        cursor = conn.cursor()
        for ordinal, statement in enumerate(self.statements(), start=1):
            try:
                cursor.execute(statement)
            except sqlite3.Error as e:
                raise SchemaError(
                    f"Failed to execute schema statement {ordinal}: {e}", ordinal
                ) from e
        conn.commit()
        logger.debug(
            "Created %d tables and %d indexes",
            len(TABLE_STATEMENTS),
            len(INDEX_STATEMENTS),
        )
