"""
CLI for building and inspecting Anki packages (.apkg).

Commands:
    build   - Build an .apkg from one CSV file per set
    inspect - Diagnostic tools to inspect .apkg files
"""

import csv
import logging
import re
from pathlib import Path

import cyclopts

from apkg_encoder.audio import generate_audio_batch
from apkg_encoder.errors import ApkgEncoderError
from apkg_encoder.models import Card, DeckBuildConfig, DeckSet, LanguageDefaults
from apkg_encoder.package import AnkiPackage
from apkg_encoder.packaging import ARCHIVE_TIMEOUT_SECONDS, PackageBuilder
from apkg_encoder.service import DeckPackageService

app = cyclopts.App(help="Build and inspect Anki package (.apkg) files")


# =============================================================================
# Build command - CSV word lists to .apkg
# =============================================================================


def _read_audio(value: str | None, base_dir: Path) -> bytes | None:
    if not value or not value.strip():
        return None
    path = Path(value.strip())
    if not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        print(f"Warning: Audio file not found: {path}")
        return None
    return path.read_bytes()


def read_cards_csv(csv_path: Path) -> list[Card]:
    """Read cards from a CSV file.

    Required columns: ``source``, ``target``. Optional ``source_audio`` and
    ``target_audio`` hold audio file paths, relative to the CSV file.

    :param csv_path: Path to the CSV file.
    :returns: One card per row with non-empty source or target.
    :raises ValueError: If a required column is missing.
    """
    base_dir = csv_path.parent
    cards = []
    with open(csv_path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        columns = set(reader.fieldnames or [])
        missing = {"source", "target"} - columns
        if missing:
            raise ValueError(
                f"{csv_path}: missing column(s): {', '.join(sorted(missing))}"
            )
        for row in reader:
            source = (row.get("source") or "").strip()
            target = (row.get("target") or "").strip()
            if not source and not target:
                continue
            cards.append(
                Card(
                    source=source,
                    target=target,
                    source_audio=_read_audio(row.get("source_audio"), base_dir),
                    target_audio=_read_audio(row.get("target_audio"), base_dir),
                )
            )
    return cards


def _fill_missing_audio(cards: list[Card], source_language: str, target_language: str) -> int:
    """Generate TTS audio for cards that have none. Returns number of clips added."""
    added = 0
    missing_source = [c for c in cards if not c.has_source_audio]
    for card, audio in zip(
        missing_source,
        generate_audio_batch([c.source for c in missing_source], source_language),
    ):
        card.source_audio = audio
        added += bool(audio)

    missing_target = [c for c in cards if not c.has_target_audio]
    for card, audio in zip(
        missing_target,
        generate_audio_batch([c.target for c in missing_target], target_language),
    ):
        card.target_audio = audio
        added += bool(audio)
    return added


@app.command
def build(
    csv_paths: list[Path],
    *,
    parent_name: str | None = None,
    output: Path | None = None,
    source_language: str | None = None,
    target_language: str | None = None,
    front_language: str | None = None,
    back_language: str | None = None,
    tts: bool = False,
    timeout: float = ARCHIVE_TIMEOUT_SECONDS,
    verbose: bool = False,
):
    """Build an .apkg from CSV word lists, one set per file.

    With one CSV the deck is named after the parent; with several, each file
    becomes a sub-deck ``<parent>::<file stem>``.

    :param csv_paths: CSV files with source,target[,source_audio,target_audio] columns.
    :param parent_name: Parent deck name (default: first CSV file stem).
    :param output: Output .apkg file (default: <parent name>.apkg).
    :param source_language: Source language for all sets.
    :param target_language: Target language for all sets.
    :param front_language: Language shown on the card front.
    :param back_language: Language shown on the card back.
    :param tts: If True, generate missing audio with gTTS (needs both languages).
    :param timeout: Seconds allowed for writing the archive.
    :param verbose: If True, show debug logging.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    parent_name = parent_name or csv_paths[0].stem
    if output is None:
        safe_name = re.sub(r"[^\w\-]+", "_", parent_name).strip("_") or "deck"
        output = Path(f"{safe_name}.apkg")

    sets = []
    for csv_path in csv_paths:
        if not csv_path.exists():
            print(f"Error: File not found: {csv_path}")
            return 1
        cards = read_cards_csv(csv_path)
        print(f"Loaded {len(cards)} cards from {csv_path}")
        sets.append(DeckSet(name=csv_path.stem, cards=cards))

    if tts:
        if not (source_language and target_language):
            print("Error: --tts needs --source-language and --target-language")
            return 1
        print("Generating audio with gTTS...")
        for deck_set in sets:
            added = _fill_missing_audio(deck_set.cards, source_language, target_language)
            print(f"  {deck_set.name}: {added} clips")

    config = DeckBuildConfig(
        parent_name=parent_name,
        sets=sets,
        defaults=LanguageDefaults(
            source_language=source_language,
            target_language=target_language,
            front_language=front_language,
            back_language=back_language,
        ),
    )

    service = DeckPackageService(package_builder=PackageBuilder(timeout=timeout))
    try:
        data = service.build(config)
    except ApkgEncoderError as e:
        print(f"Error: {e}")
        return 1

    output.write_bytes(data)
    print(f"\nCreated: {output} ({len(data) / 1024:.1f} KB)")
    return 0


# =============================================================================
# Inspect commands - diagnostic tools for .apkg files
# =============================================================================

inspect_app = cyclopts.App(name="inspect", help="Inspect Anki package (.apkg) files")
app.command(inspect_app)


@inspect_app.command
def cards(apkg_path: Path, *, limit: int = 10):
    """List cards in the deck.

    :param apkg_path: Path to .apkg file.
    :param limit: Maximum cards to show (0 for all).
    """
    with AnkiPackage(apkg_path) as pkg:
        cards = pkg.get_cards()
        models = pkg.get_models()
        decks = pkg.get_decks()

        print(f"Total cards: {len(cards)}\n")

        for i, card in enumerate(cards):
            if limit and i >= limit:
                print(f"... and {len(cards) - limit} more cards")
                break
            parsed = pkg.parse_card(card, models, decks)
            print(f"Card {i}:")
            print(f"  Deck: {parsed['deck']}")
            for name, value in parsed["fields"].items():
                value = re.sub(r"<[^>]+>", "", str(value))
                print(f"  {name}: {value[:100]}")
            print()


@inspect_app.command
def decks(apkg_path: Path):
    """List all decks in the package.

    :param apkg_path: Path to .apkg file.
    """
    with AnkiPackage(apkg_path) as pkg:
        decks = pkg.get_decks()
        cards = pkg.get_cards()

        print(f"Decks ({len(decks)}):\n")

        for deck_id, deck_info in decks.items():
            card_count = len([c for c in cards if str(c["did"]) == deck_id])
            print(f"  {deck_info.get('name', 'Unknown')}")
            print(f"    ID: {deck_id}")
            print(f"    Cards: {card_count}")
            print()


@inspect_app.command
def media(apkg_path: Path):
    """Show the media manifest and audio references.

    :param apkg_path: Path to .apkg file.
    """
    with AnkiPackage(apkg_path) as pkg:
        stats = pkg.get_audio_statistics()
        print("Media Statistics:")
        print(f"  Total files: {stats['total_media_files']}")
        print(f"  Audio files: {stats['audio_files']}")
        print(f"  Referenced:  {stats['referenced_audio']}")
        if stats["missing_audio"]:
            print(f"  Missing:     {', '.join(stats['missing_audio'])}")
        print()
        for file_id, filename in sorted(
            pkg.get_media_mapping().items(), key=lambda kv: int(kv[0])
        ):
            print(f"  {file_id}: {filename}")


@inspect_app.command
def schema(apkg_path: Path):
    """List tables and indexes of the collection database.

    :param apkg_path: Path to .apkg file.
    """
    with AnkiPackage(apkg_path) as pkg:
        objects = pkg.get_schema_objects()
        print(f"Tables ({len(objects['tables'])}): {', '.join(objects['tables'])}")
        print(f"Indexes ({len(objects['indexes'])}): {', '.join(objects['indexes'])}")


def main() -> None:
    """Main entry point. Invokes the cyclopts app."""
    app()


if __name__ == "__main__":
    main()
