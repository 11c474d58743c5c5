"""
Populate a legacy ``collection.anki2`` database for one build.

Ids
---
All ids come from one seed: the current Unix time in whole **seconds**.
Milliseconds plus per-row offsets would still fit in SQLite's 64-bit
INTEGER, but Anki clients treat ids as JavaScript-safe numbers, so seconds
keep every derived id far below 2**53.

    deck id   = seed + DECK_ID_OFFSET + set index
    model id  = seed + MODEL_ID_OFFSET
    note id   = seed + NOTE_ID_OFFSET + card position
    card id   = seed + CARD_ID_OFFSET + card position

Card position is the card's index in the build, flattened across sets, so
ids are unique within a build.
"""

import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Callable

import genanki

from apkg_encoder.collection import (
    DEFAULT_DECK_ID,
    LEGACY_CREATION_TIME,
    CollectionConfig,
    Deck,
    DeckOptions,
    DeckTree,
    NoteModel,
    dumps,
)
from apkg_encoder.errors import DatabaseError
from apkg_encoder.media import MediaMapping
from apkg_encoder.models import Card, DeckBuildConfig
from apkg_encoder.orientation import Orientation
from apkg_encoder.schema import SchemaBuilder

logger = logging.getLogger(__name__)

DECK_ID_OFFSET = 1000
MODEL_ID_OFFSET = 2000
NOTE_ID_OFFSET = 100
CARD_ID_OFFSET = 200

# Keeps ``due`` small; new cards only need a stable relative order
DUE_MODULUS = 1000

COLLECTION_VERSION = 11
FIELD_SEPARATOR = "\x1f"

INSERT_COLLECTION = """
    INSERT INTO col (id, crt, mod, scm, ver, dty, usn, ls, conf, models, decks, dconf, tags)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_NOTE = """
    INSERT INTO notes (id, guid, mid, mod, usn, tags, flds, sfld, csum, flags, data)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_CARD = """
    INSERT INTO cards (id, nid, did, ord, mod, usn, type, queue, due, ivl, factor,
                       reps, lapses, left, odue, odid, flags, data)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


@dataclass(frozen=True)
class CardPlacement:
    """A card with its position in the build, its set and its orientation."""

    position: int
    set_index: int
    card: Card
    orientation: Orientation


@dataclass(frozen=True)
class BuildIds:
    seed: int

    @property
    def model_id(self) -> int:
        return self.seed + MODEL_ID_OFFSET

    def deck_id(self, set_index: int) -> int:
        return self.seed + DECK_ID_OFFSET + set_index

    def note_id(self, position: int) -> int:
        return self.seed + NOTE_ID_OFFSET + position

    def card_id(self, position: int) -> int:
        return self.seed + CARD_ID_OFFSET + position


class DatabaseService:
    """
    Write the collection row, notes and cards for one build.

    :param schema_builder: Builder used by :meth:`create_database`.
    :param clock: Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        schema_builder: SchemaBuilder | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.schema_builder = schema_builder or SchemaBuilder()
        self.clock = clock

    def create_database(
        self,
        db_path: str,
        config: DeckBuildConfig,
        placements: list[CardPlacement],
        media: MediaMapping,
    ) -> dict:
        """
        Create the schema at ``db_path`` and fill it.

        :returns: Summary dict, see :meth:`populate`.
        :raises SchemaError: If a schema statement fails.
        :raises DatabaseError: If the database cannot be opened or written.
        """
        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to create SQLite database: {e}") from e

        try:
            logger.debug("Creating collection schema in %s", db_path)
            self.schema_builder.create(conn)
            return self.populate(conn, config, placements, media)
        finally:
            conn.close()

    def populate(
        self,
        conn: sqlite3.Connection,
        config: DeckBuildConfig,
        placements: list[CardPlacement],
        media: MediaMapping,
    ) -> dict:
        """
        Insert the collection row and one note plus one card per placement.

        Everything is written in a single transaction: either every row is
        committed or none is.

        :param conn: Connection to a database that already has the schema.
        :param config: Build config, used for deck names.
        :param placements: Cards in build order.
        :param media: Media indices shared with the archive step.
        :returns: Dict with keys ``model_id``, ``deck_ids``, ``notes``, ``cards``.
        :raises DatabaseError: Naming the insert that failed.
        """
        now = self.clock()
        ids = BuildIds(int(now))
        now_ms = int(now * 1000)

        deck_ids = [ids.deck_id(i) for i in range(len(config.sets))]
        collection_row = self._collection_row(config, ids, now_ms)
        note_rows = []
        card_rows = []
        for placement in placements:
            note_row, card_row = self._note_and_card_rows(placement, ids, media)
            note_rows.append(note_row)
            card_rows.append(card_row)

        try:
            with conn:
                self._execute(conn, "collection", INSERT_COLLECTION, [collection_row])
                self._execute(conn, "note", INSERT_NOTE, note_rows)
                self._execute(conn, "card", INSERT_CARD, card_rows)
        except sqlite3.Error as e:
            # Anything not already wrapped by _execute, e.g. the commit itself
            raise DatabaseError(f"Failed to commit collection data: {e}") from e

        logger.debug(
            "Inserted %d notes and %d cards into %d decks",
            len(note_rows),
            len(card_rows),
            len(deck_ids),
        )
        return {
            "model_id": ids.model_id,
            "deck_ids": deck_ids,
            "notes": len(note_rows),
            "cards": len(card_rows),
        }

    def _execute(
        self, conn: sqlite3.Connection, what: str, sql: str, rows: list[tuple]
    ) -> None:
        if not rows:
            return
        try:
            conn.executemany(sql, rows)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to insert {what}: {e}") from e

    def _collection_row(
        self, config: DeckBuildConfig, ids: BuildIds, now_ms: int
    ) -> tuple:
        tree = DeckTree()
        for set_index, deck_set in enumerate(config.sets):
            tree.add(Deck(ids.deck_id(set_index), config.deck_name_for(deck_set)))

        first_deck_id = ids.deck_id(0) if config.sets else DEFAULT_DECK_ID
        model = NoteModel.basic(ids.model_id, first_deck_id)
        conf = CollectionConfig(current_model=ids.model_id)
        options = DeckOptions()

        return (
            1,
            LEGACY_CREATION_TIME,
            now_ms,
            now_ms,
            COLLECTION_VERSION,
            0,
            0,
            0,
            dumps(conf.to_dict()),
            dumps({str(model.id): model.to_dict()}),
            dumps(tree.to_dict()),
            dumps({str(options.id): options.to_dict()}),
            dumps({}),
        )

    def _note_and_card_rows(
        self, placement: CardPlacement, ids: BuildIds, media: MediaMapping
    ) -> tuple[tuple, tuple]:
        position = placement.position
        card = placement.card
        front, back = placement.orientation.fields(card, position, media)

        note_id = ids.note_id(position)
        card_id = ids.card_id(position)

        note_row = (
            note_id,
            genanki.guid_for(note_id, front, back),
            ids.model_id,
            ids.seed,
            0,
            "",
            f"{front}{FIELD_SEPARATOR}{back}",
            0,
            # Not a real checksum: Anki's importer only needs an integer here
            len(card.target),
            0,
            "",
        )
        card_row = (
            card_id,
            note_id,
            ids.deck_id(placement.set_index),
            0,
            ids.seed,
            0,
            0,
            0,
            card_id % DUE_MODULUS,
            0,
            2500,
            0,
            0,
            1,
            0,
            0,
            0,
            "",
        )
        return note_row, card_row
