"""
Numbering of audio blobs inside a package.

Media entries in an .apkg are stored as files named ``0``, ``1``, ``2``, ...
and listed in the ``media`` manifest, which maps each number (as a string) to
the filename that note fields reference with ``[sound:<filename>]``.

Numbers are assigned in two passes over the flattened card list: first every
card with target audio, then every card with source audio. Note fields and
archive entries are both derived from the same :class:`MediaMapping`, so the
numbers in ``[sound:N.mp3]`` always match the archive.
"""

from dataclasses import dataclass, field
from typing import Iterator, Sequence

from apkg_encoder.models import Card


def media_filename(index: int) -> str:
    return f"{index}.mp3"


def sound_marker(index: int) -> str:
    """Anki audio reference for media entry ``index``, e.g. ``[sound:3.mp3]``."""
    return f"[sound:{media_filename(index)}]"


@dataclass(frozen=True)
class MediaFile:
    index: int
    filename: str
    data: bytes


@dataclass
class MediaMapping:
    """
    Media indices for one build.

    :ivar target_audio: Card position -> media index for target audio.
    :ivar source_audio: Card position -> media index for source audio.
    """

    cards: Sequence[Card]
    target_audio: dict[int, int] = field(default_factory=dict)
    source_audio: dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_cards(cls, cards: Sequence[Card]) -> "MediaMapping":
        """
        Assign contiguous indices starting at 0, target audio before source audio.

        :param cards: All cards of the build, flattened across sets.
        :returns: The mapping for these cards.
        """
        mapping = cls(cards=list(cards))
        next_index = 0
        for position, card in enumerate(mapping.cards):
            if card.has_target_audio:
                mapping.target_audio[position] = next_index
                next_index += 1
        for position, card in enumerate(mapping.cards):
            if card.has_source_audio:
                mapping.source_audio[position] = next_index
                next_index += 1
        return mapping

    def __len__(self) -> int:
        return len(self.target_audio) + len(self.source_audio)

    def files(self) -> Iterator[MediaFile]:
        """Yield media files in index order (all target audio, then all source audio)."""
        for position, index in self.target_audio.items():
            yield MediaFile(index, media_filename(index), self.cards[position].target_audio)
        for position, index in self.source_audio.items():
            yield MediaFile(index, media_filename(index), self.cards[position].source_audio)

    def manifest(self) -> dict[str, str]:
        """
        Contents of the ``media`` archive entry.

        :returns: e.g. ``{"0": "0.mp3", "1": "1.mp3"}``.
        """
        return {str(f.index): f.filename for f in self.files()}

    def source_marker(self, position: int) -> str:
        return sound_marker(self.source_audio[position])

    def target_marker(self, position: int) -> str:
        return sound_marker(self.target_audio[position])
