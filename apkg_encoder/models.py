"""
Input data for a deck build.

A build is described by a :class:`DeckBuildConfig`: a parent deck name and one
or more :class:`DeckSet` objects, each holding the :class:`Card` pairs that
end up as notes in one child deck.
"""

from dataclasses import dataclass, field


@dataclass
class Card:
    """One source/target pair with optional audio for either side."""

    source: str
    target: str
    source_audio: bytes | None = None
    target_audio: bytes | None = None

    @property
    def has_source_audio(self) -> bool:
        return bool(self.source_audio)

    @property
    def has_target_audio(self) -> bool:
        return bool(self.target_audio)

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        """Build a card from the upstream JSON shape (camelCase audio keys)."""
        return cls(
            source=data.get("source", ""),
            target=data.get("target", ""),
            source_audio=data.get("sourceAudio", data.get("source_audio")),
            target_audio=data.get("targetAudio", data.get("target_audio")),
        )


@dataclass
class LanguageDefaults:
    """Deck-wide language settings, overridden per set."""

    source_language: str | None = None
    target_language: str | None = None
    front_language: str | None = None
    back_language: str | None = None


@dataclass
class DeckSet:
    """A named group of cards mapped onto one deck."""

    name: str
    cards: list[Card] = field(default_factory=list)
    source_language: str | None = None
    target_language: str | None = None
    front_language: str | None = None
    back_language: str | None = None

    def languages(self, defaults: LanguageDefaults | None = None) -> LanguageDefaults:
        """Resolve this set's languages, falling back to ``defaults`` per field.

        :param defaults: Build-level defaults, may be None.
        :returns: Effective languages for this set.
        """
        defaults = defaults or LanguageDefaults()
        return LanguageDefaults(
            source_language=self.source_language or defaults.source_language,
            target_language=self.target_language or defaults.target_language,
            front_language=self.front_language or defaults.front_language,
            back_language=self.back_language or defaults.back_language,
        )


@dataclass
class DeckBuildConfig:
    """Everything needed to build one package."""

    parent_name: str
    sets: list[DeckSet] = field(default_factory=list)
    defaults: LanguageDefaults | None = None

    @property
    def is_multi_set(self) -> bool:
        return len(self.sets) > 1

    def deck_name_for(self, deck_set: DeckSet) -> str:
        """Deck name for a set: the parent itself, or ``parent::set`` when nested."""
        if not self.is_multi_set:
            return self.parent_name
        return f"{self.parent_name}::{deck_set.name}"

    def all_cards(self) -> list[Card]:
        return [card for deck_set in self.sets for card in deck_set.cards]

    @classmethod
    def from_dict(cls, data: dict) -> "DeckBuildConfig":
        """
        Build a config from the upstream JSON request shape.

        Expected keys: ``parentDeckName``, ``sets`` (each with ``name``,
        ``cards`` and optional language keys) and optional ``globalSettings``.
        Card entries that are not dicts, and a non-list ``cards`` value, are
        passed through untouched so that validation can report them.
        """
        settings = data.get("globalSettings") or {}
        defaults = LanguageDefaults(
            source_language=settings.get("sourceLanguage"),
            target_language=settings.get("targetLanguage"),
            front_language=settings.get("frontLanguage"),
            back_language=settings.get("backLanguage"),
        )
        sets = []
        for raw in data.get("sets") or []:
            cards = raw.get("cards")
            if isinstance(cards, list):
                cards = [Card.from_dict(c) if isinstance(c, dict) else c for c in cards]
            sets.append(
                DeckSet(
                    name=raw.get("name", ""),
                    cards=cards,
                    source_language=raw.get("sourceLanguage"),
                    target_language=raw.get("targetLanguage"),
                    front_language=raw.get("frontLanguage"),
                    back_language=raw.get("backLanguage"),
                )
            )
        return cls(
            parent_name=data.get("parentDeckName", ""),
            sets=sets,
            defaults=defaults,
        )
