"""
apkg-encoder - build Anki packages (.apkg) from source/target word pairs.

Core classes:
    DeckPackageService - Validate a build config and produce .apkg bytes
    AnkiPackage        - Read a built .apkg back

Modules:
    models      - Card, DeckSet, DeckBuildConfig input types
    media       - Media numbering and the ``media`` manifest
    orientation - Front/back layout strategies
    schema      - Legacy collection.anki2 schema
    collection  - JSON documents stored in the collection row
    database    - Collection, note and card rows
    packaging   - Zip archive writer
    service     - Build entry points
    package     - Package reader
    audio       - gTTS audio generation
    cli         - Command-line interface
"""

from apkg_encoder.errors import (
    ApkgEncoderError,
    ArchiveError,
    ArchiveTimeoutError,
    ConfigValidationError,
    DatabaseError,
    DeckBuildError,
    InvalidDatabaseFileError,
    SchemaError,
)
from apkg_encoder.media import MediaMapping
from apkg_encoder.models import Card, DeckBuildConfig, DeckSet, LanguageDefaults
from apkg_encoder.package import AnkiPackage
from apkg_encoder.service import (
    DeckPackageService,
    build_deck,
    build_single_set_deck,
    validate_config,
)

__all__ = [
    "AnkiPackage",
    "Card",
    "DeckSet",
    "DeckBuildConfig",
    "LanguageDefaults",
    "MediaMapping",
    "DeckPackageService",
    "build_deck",
    "build_single_set_deck",
    "validate_config",
    "ApkgEncoderError",
    "ConfigValidationError",
    "SchemaError",
    "DatabaseError",
    "InvalidDatabaseFileError",
    "ArchiveError",
    "ArchiveTimeoutError",
    "DeckBuildError",
]
