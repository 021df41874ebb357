"""
Free translation path: Google Translate through deep-translator (no API key).

Used when no OpenRouter model is selected. Same contract as the OpenRouter
path: None on failure, never a partially translated map.
"""

import time
import logging
from typing import Optional

from deep_translator import GoogleTranslator

from .languages import normalize_code

logger = logging.getLogger(__name__)

# Google Translate has a ~5000 character limit per request
MAX_CHUNK_SIZE = 4500

# Language codes Google Translate spells differently
_GOOGLE_CODES = {
    'zh': 'zh-CN',
    'zh-tw': 'zh-TW',
}


def google_code(language: str) -> str:
    key = (language or '').strip().lower()
    if key in _GOOGLE_CODES:
        return _GOOGLE_CODES[key]
    code = normalize_code(language)
    return _GOOGLE_CODES.get(code, code)


def translate_text(text: str, source: str = 'en', target: str = 'ja') -> Optional[str]:
    """
    Translate a text string from source to target language.

    Text longer than the request limit is rejected; sentence maps are
    translated one sentence per request instead.
    """
    text = (text or '').strip()
    if not text:
        return ''
    if len(text) > MAX_CHUNK_SIZE:
        logger.error(f'Text of {len(text)} characters exceeds the {MAX_CHUNK_SIZE} limit')
        return None
    return _translate_with_retry(text, google_code(source), google_code(target))


def translate_sentence_map_free(
    sentences: list[str],
    source: str = 'en',
    target: str = 'ja',
) -> Optional[dict[str, str]]:
    """
    Translate sentences one by one via Google Translate.

    Returns {sentence: translation} in input order, or None if any sentence
    could not be translated.
    """
    source, target = google_code(source), google_code(target)
    translations = {}
    for i, sentence in enumerate(sentences):
        translation = _translate_with_retry(sentence, source, target)
        if translation is None:
            return None
        translations[sentence] = translation
        if i < len(sentences) - 1:
            time.sleep(0.3)
    return translations


def _translate_with_retry(
    text: str, source: str, target: str, max_retries: int = 3
) -> Optional[str]:
    """Translate with exponential backoff retry."""
    for attempt in range(max_retries):
        try:
            result = GoogleTranslator(source=source, target=target).translate(text)
            return result or ''
        except Exception as e:
            if attempt < max_retries - 1:
                wait = 2 ** (attempt + 1)
                logger.warning(
                    f'Translation attempt {attempt + 1} failed: {e}. '
                    f'Retrying in {wait}s...'
                )
                time.sleep(wait)
            else:
                logger.error(f'Translation failed after {max_retries} attempts: {e}')
    return None
