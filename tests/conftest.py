"""
Shared pytest fixtures for all tests.
"""

import pytest

from apkg_encoder.models import Card
from apkg_encoder.package import AnkiPackage


def make_card(source, target, source_audio=False, target_audio=False):
    """Card with fake audio bytes; missing audio is empty bytes, not None."""
    return Card(
        source=source,
        target=target,
        source_audio=f"fake-source-{source}".encode() if source_audio else b"",
        target_audio=f"fake-target-{target}".encode() if target_audio else b"",
    )


@pytest.fixture
def card_factory():
    """Factory for cards with optional fake audio."""
    return make_card


@pytest.fixture
def open_package():
    """Open package bytes with AnkiPackage; closed after the test."""
    opened = []

    def _open(data: bytes) -> AnkiPackage:
        pkg = AnkiPackage(data).__enter__()
        opened.append(pkg)
        return pkg

    yield _open
    for pkg in opened:
        pkg.__exit__(None, None, None)


@pytest.fixture
def fixed_clock():
    """Clock returning a fixed Unix time with a fractional part."""
    return lambda: 1_700_000_000.75
