"""
Story files: token streams in structure.json, translations in lang/<code>.json.

A story directory looks like:

    <story>/structure.json        title, description, chapters[].content ("tok|tok|...")
    <story>/lang/<code>.json      title, description, chapters[].sentences {source: translation}
    <story>/episodes/episode_<n>.txt

Lesson-style files carry "pages" instead of "chapters"; which one a file
uses is decided once when it is loaded.

Batch operations (tokenize_story, check_story, fix_story) treat each chapter
independently: a chapter whose stream is corrupt is reported and left as it
was on disk, and the rest of the story is still processed.
"""

import json
import logging
import os
import re
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from .reconciler import ReconcileConfig, ReconciliationResult, reconcile
from .sentences import reconstruct_sentences, walk_sentence_keys
from .tokenizer import AUTO, tokenize
from .tokens import StructuralCorruptionError, TapReaderError, TokenStream

logger = logging.getLogger(__name__)

STRUCTURE_FILE = 'structure.json'
LANG_DIR = 'lang'
EPISODES_DIR = 'episodes'

_EPISODE_FILE = re.compile(r'^episode_(\d+)\.txt$')
_UNIT_FIELDS = ('id', 'title', 'description', 'content', 'sentences')


class StoryFileError(TapReaderError):
    """A story file is missing or not in the expected shape."""


# ---------------------------------------------------------------------------
# Content model
# ---------------------------------------------------------------------------

@dataclass
class ContentUnit:
    """
    One chapter or page. Structure files fill content (a serialized token
    stream), language files fill sentences. Unknown keys ride along in extra
    so saving a file never drops data.
    """
    id: str = ''
    title: str = ''
    description: str = ''
    content: str | None = None
    sentences: dict[str, str] | None = None
    extra: dict = field(default_factory=dict)

    kind = 'unit'

    @classmethod
    def from_dict(cls, data: dict) -> 'ContentUnit':
        if not isinstance(data, dict):
            raise StoryFileError(f'{cls.kind} entry is not an object: {data!r}')
        sentences = data.get('sentences')
        if sentences is not None and not isinstance(sentences, dict):
            raise StoryFileError(f"{cls.kind} {data.get('id')!r}: sentences is not an object")
        content = data.get('content')
        if content is not None and not isinstance(content, str):
            raise StoryFileError(f"{cls.kind} {data.get('id')!r}: content is not a string")
        return cls(
            id=str(data.get('id') or ''),
            title=data.get('title') or '',
            description=data.get('description') or '',
            content=content,
            sentences=dict(sentences) if sentences is not None else None,
            extra={k: v for k, v in data.items() if k not in _UNIT_FIELDS},
        )

    def to_dict(self) -> dict:
        data = {'id': self.id, 'title': self.title, 'description': self.description}
        if self.content is not None:
            data['content'] = self.content
        if self.sentences is not None:
            data['sentences'] = self.sentences
        data.update(self.extra)
        return data

    @property
    def label(self) -> str:
        return f'{self.kind} {self.id}' if self.id else self.kind


class Chapter(ContentUnit):
    kind = 'chapter'


class Page(ContentUnit):
    kind = 'page'


UNIT_TYPES = {'chapters': Chapter, 'pages': Page}


@dataclass
class ContentFile:
    """A structure.json or lang/<code>.json file."""
    title: str = ''
    description: str = ''
    units: list[ContentUnit] = field(default_factory=list)
    unit_key: str = 'chapters'
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> 'ContentFile':
        if not isinstance(data, dict):
            raise StoryFileError('Story file root is not an object')
        unit_key = next((key for key in UNIT_TYPES if key in data), 'chapters')
        raw_units = data.get(unit_key) or []
        if not isinstance(raw_units, list):
            raise StoryFileError(f'{unit_key} is not a list')
        unit_type = UNIT_TYPES[unit_key]
        return cls(
            title=data.get('title') or '',
            description=data.get('description') or '',
            units=[unit_type.from_dict(u) for u in raw_units],
            unit_key=unit_key,
            extra={k: v for k, v in data.items() if k not in ('title', 'description', unit_key)},
        )

    def to_dict(self) -> dict:
        data = {'title': self.title, 'description': self.description}
        data.update(self.extra)
        data[self.unit_key] = [u.to_dict() for u in self.units]
        return data

    def find(self, unit_id: str) -> ContentUnit | None:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None


class StoryStructure(ContentFile):
    """structure.json: units carry serialized token streams."""


class LanguageFile(ContentFile):
    """lang/<code>.json: units carry sentence -> translation maps."""


def load_content_file(path, file_type=ContentFile) -> ContentFile:
    path = Path(path)
    if not path.exists():
        raise StoryFileError(f'File not found: {path}')
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StoryFileError(f'Invalid JSON in {path}: {e}') from e
    return file_type.from_dict(data)


def load_structure(path) -> StoryStructure:
    return load_content_file(path, StoryStructure)


def load_language_file(path) -> LanguageFile:
    return load_content_file(path, LanguageFile)


def save_json_atomic(data, path) -> None:
    """Write JSON through a temp file in the same directory, then rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write('\n')
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def save_content_file(content: ContentFile, path) -> None:
    save_json_atomic(content.to_dict(), path)


def pair_units(structure: ContentFile, lang_file: ContentFile):
    """
    Yield (lang_unit, structure_unit) pairs.

    Units are paired by id; a language unit without an id, or whose id is
    not in the structure, falls back to the structure unit at the same
    position. structure_unit is None when neither exists.
    """
    for position, lang_unit in enumerate(lang_file.units):
        structure_unit = structure.find(lang_unit.id) if lang_unit.id else None
        if structure_unit is None and position < len(structure.units):
            structure_unit = structure.units[position]
        yield lang_unit, structure_unit


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@dataclass
class ChapterReport:
    unit_id: str
    title: str = ''
    tokens: int = 0
    expected: int = 0
    found: int = 0
    matched: int = 0
    repaired: int = 0
    unresolved: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def has_issues(self) -> bool:
        return bool(self.unresolved) or self.error is not None


@dataclass
class StoryReport:
    story_id: str
    language: str = ''
    chapters: list[ChapterReport] = field(default_factory=list)
    error: str | None = None
    output_path: str | None = None

    @property
    def expected(self) -> int:
        return sum(c.expected for c in self.chapters)

    @property
    def found(self) -> int:
        return sum(c.found for c in self.chapters)

    @property
    def success_rate(self) -> float:
        return round(self.found / self.expected * 100, 1) if self.expected else 0.0

    @property
    def issue_count(self) -> int:
        """Unresolved keys plus chapters that failed outright."""
        count = sum(len(c.unresolved) + (1 if c.error else 0) for c in self.chapters)
        return count + (1 if self.error else 0)

    @property
    def has_issues(self) -> bool:
        return self.issue_count > 0


def format_report(report: StoryReport, max_unresolved: int = 50) -> str:
    """Human-readable per-chapter summary; unresolved keys are capped per chapter."""
    lines = [f'Story: {report.story_id} ({report.language})']
    if report.error:
        lines.append(f'  ERROR: {report.error}')
        return '\n'.join(lines)
    for c in report.chapters:
        if c.error:
            lines.append(f'  {c.unit_id or "?"}: ERROR {c.error}')
            continue
        if c.expected:
            lines.append(
                f'  {c.unit_id}: found {c.found}/{c.expected}, '
                f'matched {c.matched}, repaired {c.repaired}, unresolved {len(c.unresolved)}'
            )
        else:
            lines.append(f'  {c.unit_id}: {c.tokens} tokens')
        shown = c.unresolved[:max_unresolved] if max_unresolved > 0 else []
        for key in shown:
            lines.append(f'      unresolved: {key!r}')
        hidden = len(c.unresolved) - len(shown)
        if hidden > 0:
            lines.append(f'      ... and {hidden} more')
    if report.expected:
        lines.append(
            f'  Total: {report.found}/{report.expected} sentences reachable '
            f'({report.success_rate}%), {report.issue_count} issue(s)'
        )
    if report.output_path:
        lines.append(f'  Written: {report.output_path}')
    return '\n'.join(lines)


# ---------------------------------------------------------------------------
# Tokenization
# ---------------------------------------------------------------------------

def tokenize_text_file(input_path, output_path, language: str, segmenter=AUTO) -> int:
    """Tokenize one text file into {"content": "tok|tok|..."}. Returns the token count."""
    text = Path(input_path).read_text(encoding='utf-8')
    stream = tokenize(text, language, segmenter=segmenter)
    stream.verify_round_trip(text)
    save_json_atomic({'content': stream.serialize()}, output_path)
    logger.info(f'Tokenized {input_path} -> {output_path} ({len(stream)} tokens)')
    return len(stream)


def _episode_files(story_dir: Path) -> list[tuple[int, Path]]:
    episodes_dir = story_dir / EPISODES_DIR
    if not episodes_dir.is_dir():
        raise StoryFileError(f'Episodes directory not found: {episodes_dir}')
    episodes = []
    for path in episodes_dir.iterdir():
        m = _EPISODE_FILE.match(path.name)
        if m:
            episodes.append((int(m.group(1)), path))
    return sorted(episodes)


def tokenize_story(story_dir, language: str, segmenter=AUTO) -> StoryReport:
    """
    Re-tokenize every episode text into its structure.json chapter (ch<n>).

    A chapter whose tokens do not rebuild the episode text, or contain the
    reserved delimiter, keeps its previous content and is reported.
    """
    story_dir = Path(story_dir)
    structure_path = story_dir / STRUCTURE_FILE
    structure = load_structure(structure_path)
    report = StoryReport(story_id=story_dir.name, language=language)

    episodes = _episode_files(story_dir)
    logger.info(f'Found {len(episodes)} episodes in {story_dir.name}')

    for number, path in episodes:
        unit_id = f'ch{number}'
        chapter_report = ChapterReport(unit_id=unit_id)
        report.chapters.append(chapter_report)

        unit = structure.find(unit_id)
        if unit is None:
            logger.warning(f'Chapter {unit_id} not found in {structure_path}')
            chapter_report.error = f'not found in {STRUCTURE_FILE}'
            continue
        chapter_report.title = unit.title

        text = path.read_text(encoding='utf-8')
        try:
            stream = tokenize(text, language, segmenter=segmenter)
            stream.verify_round_trip(text)
            content = stream.serialize()
        except StructuralCorruptionError as e:
            logger.error(f'{unit_id}: {e}; keeping existing content')
            chapter_report.error = str(e)
            continue
        unit.content = content
        chapter_report.tokens = len(stream)
        logger.info(f'Updated {unit_id} with {len(stream)} tokens')

    save_content_file(structure, structure_path)
    report.output_path = str(structure_path)
    return report


# ---------------------------------------------------------------------------
# Checking and repairing translation keys
# ---------------------------------------------------------------------------

def reconcile_unit(
    lang_unit: ContentUnit,
    structure_unit: ContentUnit | None,
    language: str,
    config: ReconcileConfig,
) -> tuple[ChapterReport, ReconciliationResult]:
    """Reconcile one unit's sentence keys against its token stream."""
    report = ChapterReport(unit_id=lang_unit.id, title=lang_unit.title)
    sentences = lang_unit.sentences or {}
    report.expected = len(sentences)

    if structure_unit is None or not structure_unit.content:
        raise StructuralCorruptionError(f'No token stream for {lang_unit.label}')

    stream = TokenStream.deserialize(structure_unit.content, language)
    report.tokens = len(stream)
    report.found = len({c.text for c in walk_sentence_keys(stream, sentences)})

    candidates = reconstruct_sentences(
        stream, exhaustive=config.exhaustive, max_span=config.max_span,
    )
    result = reconcile(list(sentences), candidates, sentences, config)
    report.matched = len(result.matched)
    report.repaired = len(result.repaired)
    report.unresolved = list(result.unresolved)
    return report, result


def _load_story(story_dir: Path, lang_code: str) -> tuple[StoryStructure, LanguageFile, Path]:
    lang_path = story_dir / LANG_DIR / f'{lang_code}.json'
    structure = load_structure(story_dir / STRUCTURE_FILE)
    lang_file = load_language_file(lang_path)
    return structure, lang_file, lang_path


def _run_units(structure, lang_file, language, config, report, apply: bool) -> None:
    for lang_unit, structure_unit in pair_units(structure, lang_file):
        try:
            chapter_report, result = reconcile_unit(lang_unit, structure_unit, language, config)
        except StructuralCorruptionError as e:
            logger.error(f'{report.story_id} {lang_unit.label}: {e}')
            report.chapters.append(ChapterReport(
                unit_id=lang_unit.id, title=lang_unit.title,
                expected=len(lang_unit.sentences or {}), error=str(e),
            ))
            continue
        report.chapters.append(chapter_report)
        if apply and result.repaired:
            lang_unit.sentences = result.rewritten_translations


def check_story(
    story_dir,
    language: str,
    lang_code: str = 'en',
    config: ReconcileConfig | None = None,
) -> StoryReport:
    """Report matched/repairable/unresolved keys per chapter without writing."""
    config = config or ReconcileConfig()
    story_dir = Path(story_dir)
    report = StoryReport(story_id=story_dir.name, language=language)
    try:
        structure, lang_file, _ = _load_story(story_dir, lang_code)
    except StoryFileError as e:
        report.error = str(e)
        return report
    _run_units(structure, lang_file, language, config, report, apply=False)
    return report


def fix_story(
    story_dir,
    language: str,
    lang_code: str = 'en',
    output_path=None,
    in_place: bool = False,
    config: ReconcileConfig | None = None,
) -> StoryReport:
    """
    Repair sentence keys of lang/<code>.json against structure.json.

    Writes lang/<code>-fixed.json unless output_path or in_place says
    otherwise. Unresolved keys and chapters with corrupt streams are written
    back unchanged.
    """
    config = config or ReconcileConfig()
    story_dir = Path(story_dir)
    report = StoryReport(story_id=story_dir.name, language=language)
    structure, lang_file, lang_path = _load_story(story_dir, lang_code)

    _run_units(structure, lang_file, language, config, report, apply=True)

    if in_place:
        target = lang_path
    elif output_path:
        target = Path(output_path)
    else:
        target = lang_path.with_name(f'{lang_code}-fixed.json')
    save_content_file(lang_file, target)
    report.output_path = str(target)
    logger.info(f'Fixed language file written to: {target}')
    return report


def find_stories(stories_dir, lang_code: str = 'en') -> list[Path]:
    """Story directories that have both structure.json and lang/<code>.json."""
    stories_dir = Path(stories_dir)
    stories = []
    for path in sorted(p for p in stories_dir.iterdir() if p.is_dir()):
        if (path / STRUCTURE_FILE).exists() and (path / LANG_DIR / f'{lang_code}.json').exists():
            stories.append(path)
        else:
            logger.info(f'Skipping {path.name}: missing {STRUCTURE_FILE} or {LANG_DIR}/{lang_code}.json')
    return stories


def check_stories(
    stories_dir,
    language: str,
    lang_code: str = 'en',
    config: ReconcileConfig | None = None,
    max_workers: int = 4,
) -> list[StoryReport]:
    """Check every story in a directory; stories are processed in parallel."""
    stories = find_stories(stories_dir, lang_code)
    reports = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(check_story, story, language, lang_code, config): story
            for story in stories
        }
        for future in as_completed(futures):
            story = futures[future]
            reports[story.name] = future.result()
    return [reports[story.name] for story in stories]
