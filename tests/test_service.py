"""
End-to-end tests for DeckPackageService: validation, builds, cleanup.
"""

import io
import re
import tempfile
import zipfile
from concurrent.futures import ThreadPoolExecutor

import pytest

from apkg_encoder import (
    Card,
    ConfigValidationError,
    DeckBuildConfig,
    DeckBuildError,
    DeckPackageService,
    DeckSet,
    LanguageDefaults,
    build_deck,
    build_single_set_deck,
)
from apkg_encoder.errors import DatabaseError
from apkg_encoder.packaging import PackageBuilder


class TestValidation:
    """Each invariant has its own error message."""

    def test_empty_parent_name(self, card_factory):
        """Test that an empty parent name is rejected."""
        config = DeckBuildConfig("", [DeckSet("Test Set", [card_factory("a", "b")])])
        with pytest.raises(ConfigValidationError, match="parent deck name is required"):
            build_deck(config)

    def test_no_sets(self):
        """Test that a config without sets is rejected."""
        with pytest.raises(ConfigValidationError, match="at least one set is required"):
            build_deck(DeckBuildConfig("Test Deck", []))

    def test_duplicate_set_names(self, card_factory):
        """Test that duplicate set names are rejected."""
        config = DeckBuildConfig(
            "Test Deck",
            [
                DeckSet("Unit 1", [card_factory("hello", "hola")]),
                DeckSet("Unit 1", [card_factory("world", "mundo")]),
            ],
        )
        with pytest.raises(ConfigValidationError, match="all set names must be unique"):
            build_deck(config)

    def test_set_without_name(self, card_factory):
        """Test that the unnamed set is reported by number."""
        config = DeckBuildConfig(
            "Test Deck",
            [DeckSet("Unit 1", []), DeckSet("", [card_factory("a", "b")])],
        )
        with pytest.raises(ConfigValidationError, match="set 2 must have a name"):
            build_deck(config)

    def test_cards_not_a_list(self):
        """Test that non-list cards are rejected."""
        config = DeckBuildConfig("Test Deck", [DeckSet("Unit 1", cards=None)])
        with pytest.raises(ConfigValidationError, match="set 1 cards must be a list"):
            build_deck(config)

    def test_validation_errors_are_value_errors(self):
        """Test that validation errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            build_deck(DeckBuildConfig("Test Deck", []))


class TestBuild:
    """Package contents for typical builds."""

    def test_source_audio_only_legacy(self, card_factory, open_package):
        """Test a card with only source audio in the legacy layout."""
        data = build_single_set_deck(
            [card_factory("hello", "hola", source_audio=True)], "Spanish"
        )
        pkg = open_package(data)

        assert pkg.get_fields() == [["hello[sound:0.mp3]", "hola"]]
        assert pkg.get_media_mapping() == {"0": "0.mp3"}
        assert pkg.read_media("0") == b"fake-source-hello"

    def test_dual_audio_legacy(self, card_factory, open_package):
        """Test a card with both audio clips in the legacy layout."""
        data = build_single_set_deck(
            [card_factory("water", "nước", source_audio=True, target_audio=True)],
            "Vietnamese",
        )
        pkg = open_package(data)

        assert pkg.get_fields() == [["nước[sound:0.mp3]", "water[sound:1.mp3]"]]
        assert pkg.read_media("0") == "fake-target-nước".encode()
        assert pkg.read_media("1") == b"fake-source-water"

    def test_manifest_matches_audio_count(self, card_factory, open_package):
        """Manifest keys are 0..M-1 where M counts all non-empty audio."""
        cards = [
            card_factory("a", "A", source_audio=True, target_audio=True),
            card_factory("b", "B"),
            card_factory("c", "C", target_audio=True),
        ]
        more = [card_factory("d", "D", source_audio=True)]
        config = DeckBuildConfig("Course", [DeckSet("One", cards), DeckSet("Two", more)])
        pkg = open_package(build_deck(config))

        mapping = pkg.get_media_mapping()
        assert sorted(int(k) for k in mapping) == [0, 1, 2, 3]
        assert set(mapping.values()) == {"0.mp3", "1.mp3", "2.mp3", "3.mp3"}
        stats = pkg.get_audio_statistics()
        assert stats["referenced_audio"] == 4
        assert stats["missing_audio"] == []

    def test_target_indices_below_source_indices(self, card_factory, open_package):
        """Test that all target audio is numbered before source audio."""
        cards = [
            card_factory("one", "uno", source_audio=True),
            card_factory("two", "dos", source_audio=True, target_audio=True),
            card_factory("three", "tres", target_audio=True),
        ]
        defaults = LanguageDefaults("en", "es", "es", "en")
        config = DeckBuildConfig("Spanish", [DeckSet("Unit 1", cards)], defaults)
        pkg = open_package(build_deck(config))

        assert pkg.get_fields() == [
            ["uno", "one[sound:2.mp3]"],
            ["dos[sound:0.mp3]", "two[sound:3.mp3]"],
            ["tres[sound:1.mp3]", "three"],
        ]

    def test_zero_cards(self, open_package):
        """Test that a set with no cards builds an empty package."""
        data = build_deck(DeckBuildConfig("Empty", [DeckSet("Nothing", [])]))

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["collection.anki2", "media"]
        pkg = open_package(data)
        assert pkg.get_media_mapping() == {}
        assert pkg.get_notes() == []
        assert pkg.get_cards() == []

    def test_multi_set_hierarchy(self, card_factory, open_package):
        """Test that each set gets its own sub-deck with its cards."""
        config = DeckBuildConfig(
            "Spanish Course",
            [
                DeckSet("Unit 1", [card_factory("hello", "hola"), card_factory("bye", "adiós")]),
                DeckSet("Unit 2", [card_factory("cat", "gato")]),
            ],
        )
        pkg = open_package(build_deck(config))
        decks = pkg.get_decks()
        models = pkg.get_models()

        assert {d["name"] for d in decks.values()} == {
            "Default",
            "Spanish Course::Unit 1",
            "Spanish Course::Unit 2",
        }
        by_deck = {}
        for card in pkg.get_cards():
            parsed = pkg.parse_card(card, models, decks)
            by_deck.setdefault(parsed["deck"], []).append(parsed["fields"]["Back"])
        assert by_deck == {
            "Spanish Course::Unit 1": ["hello", "bye"],
            "Spanish Course::Unit 2": ["cat"],
        }

    def test_per_set_languages(self, card_factory, open_package):
        """Test that each set uses its own front/back languages."""
        config = DeckBuildConfig(
            "Course",
            [
                DeckSet("Recognition", [card_factory("hello", "hola")],
                        front_language="es", back_language="en"),
                DeckSet("Production", [card_factory("hello", "hola")],
                        front_language="en", back_language="es"),
            ],
            defaults=LanguageDefaults(source_language="en", target_language="es"),
        )
        pkg = open_package(build_deck(config))
        assert pkg.get_fields() == [["hola", "hello"], ["hello", "hola"]]

    def test_one_card_per_note(self, card_factory, open_package):
        """Test that every note has exactly one card."""
        cards = [card_factory(f"w{i}", f"p{i}") for i in range(5)]
        pkg = open_package(build_single_set_deck(cards, "Words"))

        assert len(pkg.get_notes()) == 5
        assert len(pkg.get_cards()) == 5
        assert {card["ord"] for card in pkg.get_cards()} == {0}

    def test_same_input_same_structure(self, card_factory, open_package):
        """Test that the same input builds the same structure."""
        cards = [card_factory("hello", "hola", source_audio=True)]
        first = open_package(build_single_set_deck(cards, "Spanish"))
        second = open_package(build_single_set_deck(cards, "Spanish"))

        assert first.get_schema_objects() == second.get_schema_objects()
        assert [len(f) for f in first.get_fields()] == [len(f) for f in second.get_fields()]
        assert first.get_fields() == second.get_fields()


class TestLegacyEntryPoint:
    """build_single_set adapts onto the multi-set path."""

    def test_equivalent_to_single_set_config(self, card_factory, open_package):
        """Test that the single-set entry point matches a one-set config."""
        cards = [
            card_factory("hello", "hola", source_audio=True, target_audio=True),
            card_factory("world", "mundo", source_audio=True, target_audio=True),
        ]
        service = DeckPackageService()
        legacy = open_package(
            service.build_single_set(cards, "Legacy Test", "en", "es", "en", "es")
        )
        config = DeckBuildConfig(
            "Legacy Test",
            [DeckSet("Legacy Test", cards, "en", "es", "en", "es")],
        )
        multi = open_package(service.build(config))

        assert legacy.get_fields() == multi.get_fields()
        assert legacy.get_media_mapping() == multi.get_media_mapping()
        assert sorted(d["name"] for d in legacy.get_decks().values()) == [
            "Default",
            "Legacy Test",
        ]

    def test_validates_deck_name(self, card_factory):
        """Test that the single-set entry point validates the deck name."""
        with pytest.raises(ConfigValidationError, match="parent deck name is required"):
            DeckPackageService().build_single_set([card_factory("a", "b")], "")


class TestFromDict:
    """Upstream JSON request shape."""

    def test_from_dict(self, open_package):
        """Test building from the JSON request shape."""
        config = DeckBuildConfig.from_dict({
            "parentDeckName": "Test Single Set",
            "sets": [{
                "name": "Unit 1",
                "cards": [{"source": "hello", "target": "hola", "sourceAudio": b"mp3"}],
            }],
            "globalSettings": {"sourceLanguage": "en", "targetLanguage": "es"},
        })
        assert config.defaults.source_language == "en"
        assert isinstance(config.sets[0].cards[0], Card)

        pkg = open_package(build_deck(config))
        assert pkg.get_fields() == [["hello[sound:0.mp3]", "hola"]]

    def test_non_list_cards_rejected(self):
        """Test that non-list cards from JSON are rejected."""
        config = DeckBuildConfig.from_dict({
            "parentDeckName": "Deck",
            "sets": [{"name": "Unit 1", "cards": "nope"}],
        })
        with pytest.raises(ConfigValidationError, match="cards must be a list"):
            build_deck(config)

    def test_non_dict_card_entries_rejected(self):
        """Test that card entries that are not objects fail validation."""
        config = DeckBuildConfig.from_dict({
            "parentDeckName": "Deck",
            "sets": [
                {"name": "Unit 1", "cards": [{"source": "a", "target": "b"}]},
                {"name": "Unit 2", "cards": [None]},
            ],
        })
        with pytest.raises(ConfigValidationError, match="set 2 cards must be Card objects"):
            build_deck(config)


class TestCleanup:
    """The temporary directory never outlives the build."""

    @pytest.fixture
    def temp_root(self, tmp_path, monkeypatch):
        root = tmp_path / "tmp"
        root.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(root))
        return root

    def test_removed_after_success(self, temp_root, card_factory):
        """Test that the temp directory is removed after a build."""
        build_single_set_deck([card_factory("a", "b", source_audio=True)], "Deck")
        assert list(temp_root.iterdir()) == []

    def test_removed_after_failure(self, temp_root, card_factory, monkeypatch):
        """Test that the temp directory is removed after a failed build."""
        def broken(self, db_path, media):
            raise DatabaseError("boom")

        monkeypatch.setattr(PackageBuilder, "build", broken)
        with pytest.raises(DeckBuildError, match="deck build failed: boom") as excinfo:
            build_single_set_deck([card_factory("a", "b")], "Deck")

        assert isinstance(excinfo.value.__cause__, DatabaseError)
        assert list(temp_root.iterdir()) == []

    def test_timeout_is_wrapped(self, temp_root, card_factory, monkeypatch):
        """Test that an archive timeout is wrapped in DeckBuildError."""
        def slow(self, db_path, media, cancel):
            cancel.wait(1.0)
            return b""

        monkeypatch.setattr(PackageBuilder, "_write_archive", slow)
        service = DeckPackageService(package_builder=PackageBuilder(timeout=0.05))
        with pytest.raises(DeckBuildError, match="timed out"):
            service.build_single_set([card_factory("a", "b")], "Deck")
        assert list(temp_root.iterdir()) == []


class TestConcurrency:
    """Builds running at the same time do not share state."""

    @pytest.fixture
    def temp_root(self, tmp_path, monkeypatch):
        root = tmp_path / "tmp"
        root.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(root))
        return root

    def _config(self, build, card_factory):
        sets = []
        for set_index in range(1 + build % 3):
            cards = [
                card_factory(
                    f"b{build}-s{set_index}-w{i}",
                    f"b{build}-s{set_index}-t{i}",
                    source_audio=i % 2 == 0,
                    target_audio=i % 3 == 0,
                )
                for i in range(5 + build)
            ]
            sets.append(DeckSet(f"Set {set_index}", cards))
        return DeckBuildConfig(f"Build {build}", sets)

    def test_parallel_builds_are_isolated(self, temp_root, card_factory, open_package):
        """Test that parallel builds each contain only their own cards and media."""
        configs = [self._config(build, card_factory) for build in range(12)]

        with ThreadPoolExecutor(max_workers=6) as executor:
            results = list(executor.map(build_deck, configs))
        assert list(temp_root.iterdir()) == []

        for config, data in zip(configs, results):
            pkg = open_package(data)
            cards = config.all_cards()
            expected_audio = sum(
                card.has_source_audio + card.has_target_audio for card in cards
            )

            texts = sorted(
                re.sub(r"\[sound:[^\]]+\]", "", field)
                for fields in pkg.get_fields()
                for field in fields
            )
            assert texts == sorted([c.source for c in cards] + [c.target for c in cards])
            mapping = pkg.get_media_mapping()
            assert sorted(int(k) for k in mapping) == list(range(expected_audio))
            assert pkg.get_audio_statistics()["missing_audio"] == []
            deck_names = {d["name"] for d in pkg.get_decks().values()}
            assert {config.deck_name_for(s) for s in config.sets} <= deck_names
