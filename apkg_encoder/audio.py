"""
Text-to-speech for card audio using gTTS.

The deck builder only needs "some bytes or nothing" per word: failures are
logged and return ``b""``, which the builder treats as "no audio".
"""

import io
import logging
import re
import time

from gtts import gTTS, gTTSError

logger = logging.getLogger(__name__)

GTTS_LANG = {
    "arabic": "ar",
    "cantonese": "yue",
    "english": "en",
    "french": "fr",
    "german": "de",
    "greek": "el",
    "hindi": "hi",
    "italian": "it",
    "japanese": "ja",
    "korean": "ko",
    "mandarin": "zh-cn",
    "portuguese": "pt",
    "spanish": "es",
    "vietnamese": "vi",
}


def gtts_language(language: str) -> str:
    """Map a language name (``"spanish"``) or code (``"es"``) to a gTTS code."""
    key = language.lower().strip()
    return GTTS_LANG.get(key, key)


def _clean_text_for_audio(text: str) -> str:
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\[sound:[^\]]*\]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def generate_audio(text: str, language: str) -> bytes:
    """
    Speak ``text`` in ``language`` and return MP3 bytes.

    :param text: Word or phrase; HTML tags and sound markers are stripped.
    :param language: Language name or gTTS code.
    :returns: MP3 data, or ``b""`` if the text is empty or TTS fails.
    """
    text = _clean_text_for_audio(text)
    if not text:
        return b""
    buffer = io.BytesIO()
    try:
        gTTS(text=text, lang=gtts_language(language), slow=False).write_to_fp(buffer)
    except (gTTSError, ValueError, AssertionError) as e:
        logger.warning("TTS failed for %r (%s): %s", text, language, e)
        return b""
    return buffer.getvalue()


def generate_audio_batch(
    texts: list[str], language: str, delay_seconds: float = 0.5
) -> list[bytes]:
    """
    Generate audio for each text, one request at a time.

    :param texts: Words to speak.
    :param language: Language name or gTTS code.
    :param delay_seconds: Pause between requests to stay under rate limits.
    :returns: One entry per text, ``b""`` where generation failed.
    """
    results = []
    for i, text in enumerate(texts):
        results.append(generate_audio(text, language))
        if delay_seconds > 0 and i < len(texts) - 1:
            time.sleep(delay_seconds)
    return results
