"""
Public entry point: turn a :class:`DeckBuildConfig` into .apkg bytes.

Example::

    from apkg_encoder import Card, DeckBuildConfig, DeckSet, build_deck

    config = DeckBuildConfig(
        parent_name="Spanish",
        sets=[DeckSet("Unit 1", [Card("hello", "hola", source_audio=mp3)])],
    )
    data = build_deck(config)
"""

import logging
import os
import sqlite3
import tempfile
from typing import Sequence

from apkg_encoder.database import CardPlacement, DatabaseService
from apkg_encoder.errors import ApkgEncoderError, ConfigValidationError, DeckBuildError
from apkg_encoder.media import MediaMapping
from apkg_encoder.models import Card, DeckBuildConfig, DeckSet
from apkg_encoder.orientation import resolve_orientation
from apkg_encoder.packaging import PackageBuilder

logger = logging.getLogger(__name__)

DATABASE_FILENAME = "collection.anki2"


def validate_config(config: DeckBuildConfig) -> None:
    """
    Check the build config invariants.

    :raises ConfigValidationError: On the first violated invariant.
    """
    if not config.parent_name or not config.parent_name.strip():
        raise ConfigValidationError("parent deck name is required")
    if not config.sets:
        raise ConfigValidationError("at least one set is required")

    for number, deck_set in enumerate(config.sets, start=1):
        if not deck_set.name or not deck_set.name.strip():
            raise ConfigValidationError(f"set {number} must have a name")
        if not isinstance(deck_set.cards, (list, tuple)):
            raise ConfigValidationError(f"set {number} cards must be a list")
        if not all(isinstance(card, Card) for card in deck_set.cards):
            raise ConfigValidationError(f"set {number} cards must be Card objects")

    names = [deck_set.name for deck_set in config.sets]
    if len(set(names)) != len(names):
        raise ConfigValidationError("all set names must be unique")


def place_cards(config: DeckBuildConfig) -> list[CardPlacement]:
    """
    Flatten the cards of all sets, keeping each card's set and orientation.

    The orientation strategy is resolved once per set.
    """
    placements = []
    for set_index, deck_set in enumerate(config.sets):
        orientation = resolve_orientation(deck_set, config.defaults)
        logger.debug("Set %r uses %r", deck_set.name, orientation)
        for card in deck_set.cards:
            placements.append(
                CardPlacement(len(placements), set_index, card, orientation)
            )
    return placements


class DeckPackageService:
    """
    Validate, build the database in a private temp directory, archive it.

    :param database_service: Writes the collection database.
    :param package_builder: Writes the zip archive.
    """

    def __init__(
        self,
        database_service: DatabaseService | None = None,
        package_builder: PackageBuilder | None = None,
    ) -> None:
        self.database_service = database_service or DatabaseService()
        self.package_builder = package_builder or PackageBuilder()

    def build(self, config: DeckBuildConfig) -> bytes:
        """
        Build an .apkg package.

        :param config: Deck build configuration.
        :returns: The .apkg file contents.
        :raises ConfigValidationError: If the config is invalid (not wrapped).
        :raises DeckBuildError: For any failure after validation; the
            original error is chained as ``__cause__``.
        """
        validate_config(config)

        placements = place_cards(config)
        media = MediaMapping.from_cards([p.card for p in placements])

        try:
            with tempfile.TemporaryDirectory(prefix="apkg-") as temp_dir:
                db_path = os.path.join(temp_dir, DATABASE_FILENAME)
                stats = self.database_service.create_database(
                    db_path, config, placements, media
                )
                data = self.package_builder.build(db_path, media)
        except (ApkgEncoderError, sqlite3.Error, OSError) as e:
            logger.error("Deck build for %r failed: %s", config.parent_name, e)
            raise DeckBuildError(f"deck build failed: {e}") from e

        logger.info(
            "Built %r: %d sets, %d notes, %d media files, %d bytes",
            config.parent_name,
            len(config.sets),
            stats["notes"],
            len(media),
            len(data),
        )
        return data

    def build_single_set(
        self,
        cards: Sequence[Card],
        deck_name: str,
        front_language: str | None = None,
        back_language: str | None = None,
        source_language: str | None = None,
        target_language: str | None = None,
    ) -> bytes:
        """
        Build a one-deck package from a flat card list.

        The deck is named ``deck_name``; this is the same as calling
        :meth:`build` with a single set of that name.
        """
        config = DeckBuildConfig(
            parent_name=deck_name,
            sets=[
                DeckSet(
                    name=deck_name,
                    cards=list(cards),
                    source_language=source_language,
                    target_language=target_language,
                    front_language=front_language,
                    back_language=back_language,
                )
            ],
        )
        return self.build(config)


def build_deck(config: DeckBuildConfig) -> bytes:
    """Build a package with the default services. See :meth:`DeckPackageService.build`."""
    return DeckPackageService().build(config)


def build_single_set_deck(cards: Sequence[Card], deck_name: str, **languages) -> bytes:
    """Single-set variant of :func:`build_deck`."""
    return DeckPackageService().build_single_set(cards, deck_name, **languages)
