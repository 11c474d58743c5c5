"""
Which text and audio go on the front and back of each note.

Two strategies exist, chosen once per set by :func:`resolve_orientation`:

- :class:`ExplicitLanguageOrientation` when the set (or the build defaults)
  names front, back, source and target languages.
- :class:`LegacyAudioOrientation` otherwise; the layout then depends only on
  which audio the card carries.
"""

from apkg_encoder.media import MediaMapping
from apkg_encoder.models import Card, DeckSet, LanguageDefaults


class Orientation:
    """Base strategy. ``fields`` returns exactly ``(front, back)``."""

    def fields(self, card: Card, position: int, media: MediaMapping) -> tuple[str, str]:
        raise NotImplementedError


class ExplicitLanguageOrientation(Orientation):
    """Place content by comparing each side's language with source/target."""

    def __init__(
        self,
        front_language: str,
        back_language: str,
        source_language: str,
        target_language: str,
    ) -> None:
        self.front_language = front_language
        self.back_language = back_language
        self.source_language = source_language
        self.target_language = target_language

    def _side(self, language: str, card: Card, position: int, media: MediaMapping) -> str:
        text = card.source if language == self.source_language else card.target
        if language == self.source_language and card.has_source_audio:
            return text + media.source_marker(position)
        if language == self.target_language and card.has_target_audio:
            return text + media.target_marker(position)
        return text

    def fields(self, card: Card, position: int, media: MediaMapping) -> tuple[str, str]:
        return (
            self._side(self.front_language, card, position, media),
            self._side(self.back_language, card, position, media),
        )

    def __repr__(self) -> str:
        return (
            f"ExplicitLanguageOrientation(front={self.front_language!r}, "
            f"back={self.back_language!r}, source={self.source_language!r}, "
            f"target={self.target_language!r})"
        )


class LegacyAudioOrientation(Orientation):
    """
    Audio-driven layout kept for requests without language preferences.

    ============  ============  ======================  ======================
    source audio  target audio  front                   back
    ============  ============  ======================  ======================
    yes           no            source + source audio   target
    no            yes           target + target audio   source
    yes           yes           target + target audio   source + source audio
    no            no            target                  source
    ============  ============  ======================  ======================
    """

    def fields(self, card: Card, position: int, media: MediaMapping) -> tuple[str, str]:
        if card.has_source_audio and not card.has_target_audio:
            return card.source + media.source_marker(position), card.target
        if card.has_target_audio and not card.has_source_audio:
            return card.target + media.target_marker(position), card.source
        if card.has_source_audio and card.has_target_audio:
            return (
                card.target + media.target_marker(position),
                card.source + media.source_marker(position),
            )
        return card.target, card.source

    def __repr__(self) -> str:
        return "LegacyAudioOrientation()"


def resolve_orientation(
    deck_set: DeckSet, defaults: LanguageDefaults | None = None
) -> Orientation:
    """
    Pick the orientation strategy for a set.

    :param deck_set: The set whose cards will be laid out.
    :param defaults: Build-level languages, used where the set leaves one unset.
    :returns: Explicit strategy if all four languages are known, else legacy.
    """
    langs = deck_set.languages(defaults)
    if (
        langs.front_language
        and langs.back_language
        and langs.source_language
        and langs.target_language
    ):
        return ExplicitLanguageOrientation(
            langs.front_language,
            langs.back_language,
            langs.source_language,
            langs.target_language,
        )
    return LegacyAudioOrientation()
