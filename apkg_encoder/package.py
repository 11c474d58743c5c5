"""
Read Anki package (.apkg) files produced by this library.

APKG Layout
-----------
An .apkg file is a ZIP archive containing:

- collection.anki2 (SQLite database, legacy Anki 2 schema)
- media (JSON object mapping file ID strings to filenames)
- 0, 1, 2, ... (media files named by numeric ID)

Only the legacy layout is read: decks and note models live as JSON in the
single ``col`` row, notes store their fields separated by ``\\x1f``.
"""

import io
import json
import os
import re
import shutil
import sqlite3
import tempfile
import zipfile
from pathlib import Path

AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg")
SOUND_PATTERN = re.compile(r"\[sound:(.*?)\]")


class AnkiPackage:
    """
    Read-only view of an .apkg package.

    Accepts a path or the raw package bytes. Use as a context manager so the
    extracted files are removed afterwards::

        with AnkiPackage(data) as pkg:
            for card in pkg.get_cards():
                print(pkg.parse_card(card, pkg.get_models(), pkg.get_decks()))
    """

    def __init__(self, source: str | Path | bytes) -> None:
        """
        :param source: Path to an .apkg file, or its contents as bytes.
        """
        self.source = source
        self.temp_dir: str | None = None
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "AnkiPackage":
        """Extract the archive to a temp directory and open the database."""
        self.temp_dir = tempfile.mkdtemp(prefix="apkg-read-")
        archive = (
            io.BytesIO(self.source) if isinstance(self.source, bytes) else self.source
        )
        try:
            with zipfile.ZipFile(archive, "r") as zip_ref:
                zip_ref.extractall(self.temp_dir)

            db_path = os.path.join(self.temp_dir, "collection.anki2")
            if not os.path.exists(db_path):
                raise FileNotFoundError("collection.anki2 not found in package")
            self.conn = sqlite3.connect(db_path)
            self.conn.row_factory = sqlite3.Row
        except BaseException:
            self.__exit__(None, None, None)
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection and remove the extracted files."""
        if self.conn:
            self.conn.close()
            self.conn = None
        if self.temp_dir:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None

    def _col_json(self, column: str) -> dict:
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {column} FROM col")
        return json.loads(cursor.fetchone()[0])

    def get_config(self) -> dict:
        """Global collection config (``col.conf``)."""
        return self._col_json("conf")

    def get_decks(self) -> dict[str, dict]:
        """
        Get all decks in the collection.

        :returns: Dict mapping deck ID (string) to deck info dict with ``'name'`` key.
        """
        return self._col_json("decks")

    def get_models(self) -> dict[str, dict]:
        """
        Get all note models.

        :returns: Dict mapping model ID (string) to model info with ``'name'``,
            ``'flds'`` and ``'tmpls'`` keys.
        """
        return self._col_json("models")

    def get_deck_options(self) -> dict[str, dict]:
        return self._col_json("dconf")

    def get_notes(self) -> list[sqlite3.Row]:
        """
        Get all notes from the collection.

        :returns: List of note rows with ``id``, ``guid``, ``mid``, ``flds``,
            ``csum``, ``tags`` columns.
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, guid, mid, flds, csum, tags FROM notes ORDER BY id")
        return cursor.fetchall()

    def get_cards(self) -> list[sqlite3.Row]:
        """
        Get all cards with their note information, in note order.

        :returns: List of card rows with ``id``, ``nid``, ``did``, ``ord``,
            ``due``, ``queue``, ``type``, ``flds``, ``tags``, ``mid`` columns.
        """
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT cards.id, cards.nid, cards.did, cards.ord, cards.due,
                   cards.queue, cards.type,
                   notes.flds, notes.tags, notes.mid
            FROM cards
            JOIN notes ON cards.nid = notes.id
            ORDER BY notes.id
        """)
        return cursor.fetchall()

    def get_fields(self) -> list[list[str]]:
        """Field values of every note, split on the ``\\x1f`` separator."""
        return [note["flds"].split("\x1f") for note in self.get_notes()]

    def parse_card(self, card: sqlite3.Row, models: dict, decks: dict) -> dict:
        """
        Parse a card into a readable format.

        :param card: Card row from :meth:`get_cards`.
        :param models: Models dict from :meth:`get_models`.
        :param decks: Decks dict from :meth:`get_decks`.
        :returns: Dict with ``card_id``, ``note_id``, ``deck``, ``model``,
            ``fields``, ``tags`` keys.
        """
        model = models.get(str(card["mid"]), {})
        field_names = [f["name"] for f in model.get("flds", [])]
        field_values = card["flds"].split("\x1f")
        deck = decks.get(str(card["did"]), {})

        return {
            "card_id": card["id"],
            "note_id": card["nid"],
            "deck": deck.get("name", "Unknown"),
            "model": model.get("name", "Unknown"),
            "fields": dict(zip(field_names, field_values)),
            "tags": card["tags"],
        }

    def get_schema_objects(self) -> dict[str, list[str]]:
        """
        Names of the tables and indexes in the database.

        :returns: Dict with ``tables`` and ``indexes`` lists, sorted by name.
            SQLite's automatic indexes are excluded.
        """
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT type, name FROM sqlite_master "
            "WHERE type IN ('table', 'index') AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name"
        )
        objects = {"tables": [], "indexes": []}
        for row in cursor.fetchall():
            key = "tables" if row["type"] == "table" else "indexes"
            objects[key].append(row["name"])
        return objects

    def get_media_mapping(self) -> dict[str, str]:
        """
        Get mapping of file IDs to filenames from the media file.

        :returns: Dict mapping numeric file IDs (as strings) to filenames,
            e.g. ``{"0": "0.mp3"}``. Empty if the package has no manifest.
        """
        media_path = os.path.join(self.temp_dir, "media")
        if not os.path.exists(media_path):
            return {}
        with open(media_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def read_media(self, file_id: str) -> bytes:
        """
        Raw bytes of media entry ``file_id``.

        :raises FileNotFoundError: If the entry is not in the package.
        """
        path = os.path.join(self.temp_dir, file_id)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Media entry not found: {file_id}")
        with open(path, "rb") as f:
            return f.read()

    def get_audio_for_card(self, card: sqlite3.Row) -> list[str]:
        """
        Audio filenames referenced in a card's fields.

        :param card: Card or note row with a ``flds`` column.
        :returns: e.g. ``['0.mp3', '3.mp3']`` in field order.
        """
        audio_files = []
        for value in card["flds"].split("\x1f"):
            audio_files.extend(SOUND_PATTERN.findall(value))
        return audio_files

    def get_audio_statistics(self) -> dict:
        """
        Get statistics about media in the package.

        :returns: Dict with keys ``total_media_files``, ``audio_files``,
            ``referenced_audio``, ``missing_audio``.
        """
        mapping = self.get_media_mapping()
        audio = {v for v in mapping.values() if v.endswith(AUDIO_EXTENSIONS)}
        referenced = set()
        for note in self.get_notes():
            referenced.update(self.get_audio_for_card(note))

        return {
            "total_media_files": len(mapping),
            "audio_files": len(audio),
            "referenced_audio": len(referenced),
            "missing_audio": sorted(referenced - audio),
        }
