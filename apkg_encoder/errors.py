"""
Exceptions raised while building a package.

Hierarchy::

    ApkgEncoderError
    ├── ConfigValidationError     bad DeckBuildConfig, raised before any work
    ├── SchemaError               a CREATE statement failed
    ├── DatabaseError             writing collection/notes/cards failed
    ├── InvalidDatabaseFileError  database file missing or empty before archiving
    ├── ArchiveError              the zip writer failed
    ├── ArchiveTimeoutError       archiving ran past its time limit
    └── DeckBuildError            wraps any of the above except validation
"""


class ApkgEncoderError(Exception):
    """Base class for all package build errors."""


class ConfigValidationError(ApkgEncoderError, ValueError):
    """The build configuration breaks one of its invariants."""


class SchemaError(ApkgEncoderError):
    """A schema statement failed.

    :param message: Description including the failing statement's ordinal.
    :param ordinal: 1-based position of the failing statement.
    """

    def __init__(self, message: str, ordinal: int) -> None:
        super().__init__(message)
        self.ordinal = ordinal


class DatabaseError(ApkgEncoderError):
    """Populating the collection database failed."""


class InvalidDatabaseFileError(ApkgEncoderError):
    """The database file is not a non-empty regular file."""


class ArchiveError(ApkgEncoderError):
    """The zip archive could not be written."""


class ArchiveTimeoutError(ApkgEncoderError):
    """Archive creation exceeded its time limit."""


class DeckBuildError(ApkgEncoderError):
    """Top-level failure of a deck build."""
