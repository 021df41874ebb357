"""
Word dictionaries: coverage reports and entry generation.

A dictionary is a JSON object {word: {"reading", "meaning", "type"}} keyed by
lookup-mode words, so a word tapped in the reader is found by the same
normalization that produced the key. Missing words are found with the
lookup-mode tokenizer, and new entries come from an LLM in batches; entries
that are malformed or still contain prompt placeholders are dropped.
"""

import json
import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path

from pypinyin import pinyin, Style

from . import llm_translator
from .languages import HANGUL, language_name, normalize_code, resolve_language
from .story_files import StoryFileError, save_json_atomic
from .tokenizer import lookup_words, to_lookup
from .tokens import LOOKUP, TokenStream

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
ENTRY_FIELDS = ('reading', 'meaning', 'type')

_JAPANESE_CHARS = re.compile(r'[぀-ゟ゠-ヿ一-龯]')
_PLACEHOLDERS = ('pronunciation', 'カタカナ', '品詞', 'part of speech', 'translation or short explanation')

_kakasi = None


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def load_dictionary(path) -> dict:
    path = Path(path)
    if not path.exists():
        raise StoryFileError(f'Dictionary not found: {path}')
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StoryFileError(f'Invalid JSON in {path}: {e}') from e
    if not isinstance(data, dict):
        raise StoryFileError(f'Dictionary root is not an object: {path}')
    return data


def save_dictionary(dictionary: dict, path) -> None:
    save_json_atomic(dictionary, path)


def read_word_list(path) -> list[str]:
    """One word per line; blank lines ignored."""
    text = Path(path).read_text(encoding='utf-8')
    return [w.strip() for w in text.splitlines() if w.strip()]


def write_word_list(words, path) -> None:
    Path(path).write_text('\n'.join(words) + ('\n' if words else ''), encoding='utf-8')


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------

@dataclass
class MissingWordsReport:
    words: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def coverage(self) -> float:
        """Percentage of unique words present in the dictionary."""
        if not self.words:
            return 100.0
        return round((len(self.words) - len(self.missing)) / len(self.words) * 100, 1)


def _fold(word: str, language: str) -> str:
    word = unicodedata.normalize('NFC', word)
    if resolve_language(language).family == HANGUL:
        return word
    return word.lower()


def check_missing_words(dictionary: dict, source, language: str) -> MissingWordsReport:
    """
    Unique lookup-mode words of source that are not dictionary keys.

    source is raw text or a TokenStream (preserve-mode streams are folded to
    lookup mode first). Words keep first-occurrence order.
    """
    if isinstance(source, TokenStream):
        stream = source if source.mode == LOOKUP else to_lookup(source)
        words = stream.texts
    else:
        words = lookup_words(source, language)

    unique = list(dict.fromkeys(words))
    known = {_fold(key, language) for key in dictionary}
    missing = [w for w in unique if w not in known]
    logger.info(f'{len(unique)} unique words, {len(missing)} missing from dictionary')
    return MissingWordsReport(words=unique, missing=missing)


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------

def pinyin_reading(word: str) -> str:
    """Tone-marked pinyin, one syllable per character, space separated."""
    return ' '.join(p[0] for p in pinyin(word, style=Style.TONE))


def kana_reading(word: str) -> str:
    """Hiragana reading via pykakasi."""
    global _kakasi
    if _kakasi is None:
        import pykakasi
        _kakasi = pykakasi.kakasi()
    return ''.join(item['hira'] for item in _kakasi.convert(word))


def deterministic_reading(word: str, language: str) -> str | None:
    """Reading computed without an LLM, for Chinese and Japanese words only."""
    code = normalize_code(language)
    if code == 'zh':
        return pinyin_reading(word)
    if code == 'ja':
        return kana_reading(word)
    return None


# ---------------------------------------------------------------------------
# Entry generation
# ---------------------------------------------------------------------------

def _is_placeholder(value: str) -> bool:
    return any(p in value for p in _PLACEHOLDERS)


def validate_entry(word: str, entry, source: str, target: str) -> dict | None:
    """
    Normalize one generated entry, or return None if it is unusable.

    Accepts the flat form {"reading", "meaning", "type"} and the nested form
    {"word": {...}} that models sometimes copy from the prompt. A missing
    reading is filled deterministically for Chinese and Japanese source
    words. Japanese targets must have a reading in Japanese script and no
    placeholder text.
    """
    if not isinstance(entry, dict):
        return None
    if isinstance(entry.get('word'), dict):
        entry = entry['word']

    values = {}
    for name in ENTRY_FIELDS:
        value = entry.get(name)
        values[name] = value.strip() if isinstance(value, str) else ''

    if not values['reading']:
        values['reading'] = deterministic_reading(word, source) or ''

    if not all(values.values()):
        return None
    if _is_placeholder(values['meaning']) or _is_placeholder(values['type']):
        return None
    if normalize_code(target) == 'ja' and not _JAPANESE_CHARS.search(values['reading']):
        return None
    return values


def _prompt(words: list[str], source: str, target: str) -> tuple[str, str]:
    source_name = language_name(source)
    target_name = language_name(target)
    reading_hint = 'カタカナ' if normalize_code(target) == 'ja' else 'pronunciation'
    type_hint = '品詞 (like 名詞, 動詞, etc.)' if normalize_code(target) == 'ja' else 'part of speech'
    system_prompt = (
        f"You're a multilingual dictionary assistant. For each {source_name} word, "
        f"generate a {target_name} dictionary entry. Only return a single JSON object "
        f"containing all entries, keyed by the word exactly as given."
    )
    user_prompt = f"""Format:
{{
  "word": {{
    "reading": "{reading_hint}",
    "meaning": "{target_name} translation or short explanation",
    "type": "{type_hint}"
  }}
}}

Words: {', '.join(words)}"""
    return system_prompt, user_prompt


def generate_dictionary_entries(
    words: list[str],
    source: str = 'en',
    target: str = 'ja',
    model: str | None = None,
    batch_size: int = BATCH_SIZE,
) -> dict:
    """
    Generate dictionary entries for words through the LLM, in batches.

    Batches whose request or JSON parse fails are skipped with an error;
    invalid entries and entries for words that were not asked for are
    skipped with a warning. Returns {word: entry} for the valid entries.
    """
    requested = set(words)
    results = {}
    total_batches = (len(words) + batch_size - 1) // batch_size

    for i in range(0, len(words), batch_size):
        batch = words[i:i + batch_size]
        batch_no = i // batch_size + 1
        logger.info(f'Processing batch {batch_no}/{total_batches}: {len(batch)} words')

        system_prompt, user_prompt = _prompt(batch, source, target)
        raw = llm_translator.complete(system_prompt, user_prompt, model, max_tokens=len(batch) * 80 + 512)
        parsed = llm_translator.parse_json_response(raw)
        if parsed is None:
            logger.error(f'Skipping batch {batch_no} due to error')
            continue

        valid = invalid = 0
        for word, entry in parsed.items():
            if word not in requested:
                logger.warning(f'Skipping entry for unrequested word {word!r}')
                invalid += 1
                continue
            cleaned = validate_entry(word, entry, source, target)
            if cleaned is None:
                logger.warning(f'Skipping invalid entry for {word!r}: {entry!r}')
                invalid += 1
                continue
            results[word] = cleaned
            valid += 1
        logger.info(f'Valid entries: {valid}, invalid entries: {invalid}')

        if i + batch_size < len(words):
            time.sleep(1)

    return results


def merge_dictionary(master: dict, entries: dict, overwrite: bool = False) -> tuple[dict, int]:
    """
    Merge entries into a copy of master.

    Existing words are kept unless overwrite is set. Returns the merged
    dictionary and the number of words added or replaced.
    """
    merged = dict(master)
    changed = 0
    for word, entry in entries.items():
        if word in merged and not overwrite:
            continue
        merged[word] = entry
        changed += 1
    return merged, changed
