"""
Story translation: new episodes into lang/<code>.json, and whole language
files replicated into another target language.

Sentence keys always come from split_sentences() over the story text, so
they match the token streams in structure.json exactly. Translations come
from OpenRouter, or from Google Translate when free=True.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import llm_translator, translator
from .llm_translator import needs_translation
from .sentences import split_sentences
from .story_files import (
    EPISODES_DIR,
    LANG_DIR,
    STRUCTURE_FILE,
    UNIT_TYPES,
    ContentUnit,
    LanguageFile,
    StoryFileError,
    load_language_file,
    load_structure,
    save_content_file,
)
from .tokenizer import AUTO

logger = logging.getLogger(__name__)


def _translate_map(sentences, source, target, model, free) -> Optional[dict]:
    if free:
        return translator.translate_sentence_map_free(sentences, source, target)
    return llm_translator.translate_sentence_map(sentences, source, target, model)


def _translate_short(text, source, target, model, free) -> Optional[str]:
    if not text:
        return ''
    if free:
        return translator.translate_text(text, source, target)
    return llm_translator.translate_text_llm(text, source, target, model)


def _upsert_unit(lang_file: LanguageFile, unit: ContentUnit) -> None:
    for i, existing in enumerate(lang_file.units):
        if existing.id == unit.id:
            lang_file.units[i] = unit
            return
    lang_file.units.append(unit)


# ---------------------------------------------------------------------------
# Episodes
# ---------------------------------------------------------------------------

def translate_episode(
    story_dir,
    episode: int,
    source: str = 'en',
    target: str = 'ja',
    model: Optional[str] = None,
    free: bool = False,
    segmenter=AUTO,
) -> Optional[ContentUnit]:
    """
    Translate episodes/episode_<n>.txt into chapter ch<n> of lang/<target>.json.

    The chapter is replaced if it already exists and appended otherwise.
    Title and description are taken from structure.json when the chapter is
    there. Returns the written chapter, or None if translation failed (the
    language file is then left untouched).
    """
    story_dir = Path(story_dir)
    episode_path = story_dir / EPISODES_DIR / f'episode_{episode}.txt'
    if not episode_path.exists():
        raise StoryFileError(f'Episode file not found: {episode_path}')

    unit_id = f'ch{episode}'
    text = episode_path.read_text(encoding='utf-8')
    sentences = list(dict.fromkeys(split_sentences(text, source, segmenter=segmenter)))
    logger.info(f'Found {len(sentences)} sentences in {episode_path.name}')

    structure_path = story_dir / STRUCTURE_FILE
    structure = load_structure(structure_path) if structure_path.exists() else None
    source_unit = structure.find(unit_id) if structure else None
    unit_type = UNIT_TYPES[structure.unit_key] if structure else UNIT_TYPES['chapters']

    translations = _translate_map(sentences, source, target, model, free)
    if translations is None:
        logger.error(f'Translation of {unit_id} failed; {target}.json not modified')
        return None
    dropped = len(sentences) - len(translations)
    if dropped:
        logger.warning(f'{dropped} sentence(s) of {unit_id} came back without a translation')

    title = _translate_short(source_unit.title if source_unit else '', source, target, model, free)
    description = _translate_short(source_unit.description if source_unit else '', source, target, model, free)
    if title is None or description is None:
        logger.error(f'Title/description translation of {unit_id} failed; {target}.json not modified')
        return None

    lang_path = story_dir / LANG_DIR / f'{target}.json'
    if lang_path.exists():
        lang_file = load_language_file(lang_path)
    else:
        lang_file = LanguageFile(unit_key=structure.unit_key if structure else 'chapters')
        if structure:
            lang_file.title = _translate_short(structure.title, source, target, model, free) or structure.title
            lang_file.description = (
                _translate_short(structure.description, source, target, model, free)
                or structure.description
            )

    unit = unit_type(id=unit_id, title=title, description=description, sentences=translations)
    _upsert_unit(lang_file, unit)
    save_content_file(lang_file, lang_path)
    logger.info(f'Wrote {unit_id} ({len(translations)} sentences) to {lang_path}')
    return unit


# ---------------------------------------------------------------------------
# Replication
# ---------------------------------------------------------------------------

@dataclass
class ReplicationReport:
    reused: list[str] = field(default_factory=list)
    translated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    output_path: Optional[str] = None

    @property
    def has_issues(self) -> bool:
        return bool(self.failed)


def untranslated_keys(source_unit: ContentUnit, target_unit: Optional[ContentUnit]) -> list[str]:
    """Sentence keys of source_unit with no usable translation in target_unit."""
    existing = (target_unit.sentences or {}) if target_unit else {}
    return [
        key for key in (source_unit.sentences or {})
        if needs_translation(key, existing.get(key))
    ]


def is_translated(source_unit: ContentUnit, target_unit: Optional[ContentUnit]) -> bool:
    """
    True when target_unit can be reused as is.

    Every sentence key needs a translation that differs from the key, and a
    title or description present in the source must be present in the
    target and differ from the source text.
    """
    if target_unit is None:
        return False
    if untranslated_keys(source_unit, target_unit):
        return False
    for source_text, target_text in (
        (source_unit.title, target_unit.title),
        (source_unit.description, target_unit.description),
    ):
        if source_text and needs_translation(source_text, target_text):
            return False
    return True


def replicate_language(
    story_dir,
    story_language: str,
    source_code: str,
    target: str,
    model: Optional[str] = None,
    free: bool = False,
    force: bool = False,
) -> ReplicationReport:
    """
    Build lang/<target>.json from lang/<source_code>.json.

    Sentence keys (story_language text) are translated into target; titles
    and descriptions are translated from source_code. Chapters already
    translated in an existing target file are reused unless force is set;
    stale ones are re-translated. A chapter whose translation fails keeps
    its previous target content, if any, and is reported as failed.
    """
    story_dir = Path(story_dir)
    source_path = story_dir / LANG_DIR / f'{source_code}.json'
    target_path = story_dir / LANG_DIR / f'{target}.json'
    source_file = load_language_file(source_path)
    previous = load_language_file(target_path) if target_path.exists() else None

    report = ReplicationReport()
    result = LanguageFile(
        title=previous.title if previous else '',
        description=previous.description if previous else '',
        unit_key=source_file.unit_key,
        extra=dict(source_file.extra),
    )

    for field_name in ('title', 'description'):
        source_text = getattr(source_file, field_name)
        if source_text and (force or needs_translation(source_text, getattr(result, field_name))):
            translated = _translate_short(source_text, source_code, target, model, free)
            if translated:
                setattr(result, field_name, translated)

    unit_type = UNIT_TYPES[source_file.unit_key]
    for source_unit in source_file.units:
        existing = previous.find(source_unit.id) if previous else None
        if not force and is_translated(source_unit, existing):
            logger.info(f'Reusing translated {source_unit.label}')
            result.units.append(existing)
            report.reused.append(source_unit.id)
            continue
        if existing is not None:
            stale = untranslated_keys(source_unit, existing)
            logger.warning(f'{source_unit.label} is stale ({len(stale)} untranslated sentence(s)); re-translating')

        unit = _replicate_unit(source_unit, existing, unit_type, story_language, source_code, target, model, free)
        if unit is None:
            logger.error(f'Translation of {source_unit.label} failed')
            report.failed.append(source_unit.id)
            if existing is not None:
                result.units.append(existing)
            continue
        result.units.append(unit)
        report.translated.append(source_unit.id)

    save_content_file(result, target_path)
    report.output_path = str(target_path)
    return report


def _replicate_unit(source_unit, existing, unit_type, story_language, source_code, target, model, free):
    keys = list(source_unit.sentences or {})
    translations = _translate_map(keys, story_language, target, model, free)
    if translations is None:
        return None

    previous_sentences = (existing.sentences or {}) if existing else {}
    sentences = {}
    for key in keys:
        if key in translations and not needs_translation(key, translations[key]):
            sentences[key] = translations[key]
        elif not needs_translation(key, previous_sentences.get(key)):
            sentences[key] = previous_sentences[key]
        else:
            logger.warning(f'{source_unit.label}: no translation for {key!r}')

    title = _translate_short(source_unit.title, source_code, target, model, free)
    description = _translate_short(source_unit.description, source_code, target, model, free)
    if title is None or description is None:
        return None
    return unit_type(
        id=source_unit.id,
        title=title,
        description=description,
        sentences=sentences,
        extra=dict(source_unit.extra),
    )
