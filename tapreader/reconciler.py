"""
Sentence-key reconciliation.

Translation files are keyed by source sentences written by hand or by an
LLM. The reading UI can only show a translation when its key equals a
sentence rebuilt from the chapter's token stream. reconcile() matches every
expected key against the candidate sentences and rewrites keys that are
close enough, moving their translations to the exact candidate text.

Matching order (first hit wins):
  1. exact
  2. whitespace-insensitive
  3. punctuation normalization (quote styles, full-width forms, spacing
     around brackets and quotes)
  4. fuzzy: similarity above the threshold, best candidate wins
  5. unresolved: key and translation kept untouched

Nothing here raises for mismatches; results are counted and returned.
"""

import logging
import os
import re
import unicodedata
from dataclasses import dataclass, field

from .sentences import CandidateSentence
from .similarity import bounded_levenshtein, similarity

logger = logging.getLogger(__name__)

EXACT = 'exact'
WHITESPACE = 'whitespace'
PUNCTUATION = 'punctuation'
FUZZY = 'fuzzy'

DEFAULT_THRESHOLD = 0.8

_WHITESPACE = re.compile(r'\s+')

# Adjacency fixes for keys whose quotes and brackets picked up stray spaces
_SPACING_FIXES = (
    (re.compile(r'」\s+'), '」'),
    (re.compile(r'\s+"'), '"'),
    (re.compile(r'([(\[「『（【“‘])\s+'), r'\1'),
    (re.compile(r'\s+([)\]」』）】”’,.!?;:。、！？])'), r'\1'),
)

_QUOTE_STYLES = str.maketrans({
    '“': '"',
    '”': '"',
    '„': '"',
    '«': '"',
    '»': '"',
    '‘': "'",
    '’': "'",
    '`': "'",
})


def _default_threshold() -> float:
    value = os.environ.get('TAPREADER_FUZZY_THRESHOLD')
    if not value:
        return DEFAULT_THRESHOLD
    try:
        return float(value)
    except ValueError:
        logger.warning(f'Ignoring invalid TAPREADER_FUZZY_THRESHOLD={value!r}')
        return DEFAULT_THRESHOLD


@dataclass
class ReconcileConfig:
    """Options for reconciliation runs (no I/O involvement)."""
    threshold: float = field(default_factory=_default_threshold)
    exhaustive: bool = True            # search windows from every start token
    max_span: int | None = 3           # closed sentences per exhaustive window
    max_unresolved_report: int = 50    # unresolved keys listed per chapter


@dataclass(frozen=True)
class Repair:
    old: str
    new: str
    rule: str
    similarity: float = 1.0
    distance: int = 0
    start: int | None = None
    end: int | None = None


@dataclass
class ReconciliationResult:
    matched: list[str] = field(default_factory=list)
    repaired: list[Repair] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    rewritten_translations: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.repaired) + len(self.unresolved)

    @property
    def has_issues(self) -> bool:
        return bool(self.unresolved)

    def counts(self) -> dict[str, int]:
        return {
            'matched': len(self.matched),
            'repaired': len(self.repaired),
            'unresolved': len(self.unresolved),
        }


def strip_whitespace(text: str) -> str:
    return _WHITESPACE.sub('', text)


def normalize_punctuation(text: str) -> str:
    """
    Canonical form for punctuation-insensitive comparison.

    Applies the spacing fixes, folds full-width ASCII forms (NFKC) and
    curly quotes, then drops whitespace.
    """
    for pattern, replacement in _SPACING_FIXES:
        text = pattern.sub(replacement, text)
    text = unicodedata.normalize('NFKC', text).translate(_QUOTE_STYLES)
    return strip_whitespace(text)


class _CandidateIndex:
    """Lookup tables over candidate texts, first occurrence wins."""

    def __init__(self, candidates: list[CandidateSentence]):
        self.by_text: dict[str, CandidateSentence] = {}
        self.by_squashed: dict[str, CandidateSentence] = {}
        self.by_normalized: dict[str, CandidateSentence] = {}
        for candidate in candidates:
            self.by_text.setdefault(candidate.text, candidate)
            self.by_squashed.setdefault(strip_whitespace(candidate.text), candidate)
            self.by_normalized.setdefault(normalize_punctuation(candidate.text), candidate)
        self.unique = list(self.by_text.values())

    def best_fuzzy(self, key: str, threshold: float, claimed: set[str]):
        """Best unclaimed candidate with similarity strictly above threshold."""
        best = None
        best_score = threshold
        best_distance = 0
        key_len = len(key)
        for candidate in self.unique:
            if candidate.text in claimed:
                continue
            cand_len = len(candidate.text)
            longer = max(key_len, cand_len)
            if longer == 0:
                continue
            # similarity can never exceed shorter / longer
            if min(key_len, cand_len) / longer <= best_score:
                continue
            limit = int((1.0 - best_score) * longer)
            distance = bounded_levenshtein(key, candidate.text, limit)
            if distance > limit:
                continue
            score = similarity(key, candidate.text, distance)
            if score > best_score:
                best, best_score, best_distance = candidate, score, distance
        if best is None:
            return None
        return best, best_score, best_distance


def reconcile(
    expected_keys,
    candidates: list[CandidateSentence],
    existing_translations: dict[str, str],
    config: ReconcileConfig | None = None,
) -> ReconciliationResult:
    """
    Align expected sentence keys with candidate sentences.

    Args:
        expected_keys: Sentence keys from the translation file.
        candidates: Candidate sentences rebuilt from the token stream.
        existing_translations: Current key -> translation map. Not modified.
        config: Threshold and reporting options.

    Returns:
        ReconciliationResult. matched + repaired + unresolved always equals
        the number of expected keys, and every translation survives in
        rewritten_translations (under its repaired key when repaired).

    A repair whose target is already used by another key (an exact match,
    an earlier repair, or an unrelated entry of the map) is not applied;
    the next rule is tried and the key ends up unresolved if none fits.
    """
    config = config or ReconcileConfig()
    expected_keys = list(expected_keys)
    index = _CandidateIndex(candidates)
    result = ReconciliationResult()

    expected_set = set(expected_keys)
    claimed = {key for key in existing_translations if key not in expected_set}
    pending = []
    for key in expected_keys:
        if key in index.by_text:
            result.matched.append(key)
            claimed.add(key)
        else:
            pending.append(key)

    for key in pending:
        repair = _find_repair(key, index, config, claimed)
        if repair is None:
            result.unresolved.append(key)
            continue
        claimed.add(repair.new)
        result.repaired.append(repair)
        if repair.rule == FUZZY:
            logger.info(
                f'Fuzzy repair (similarity {repair.similarity:.2f}, distance {repair.distance}): '
                f'{repair.old!r} -> {repair.new!r}'
            )
        else:
            logger.debug(f'{repair.rule} repair: {repair.old!r} -> {repair.new!r}')

    # Build the new map in one pass so the caller sees all repairs or none
    renames = {r.old: r.new for r in result.repaired}
    result.rewritten_translations = {
        renames.get(key, key): value for key, value in existing_translations.items()
    }
    return result


def _find_repair(key: str, index: _CandidateIndex, config: ReconcileConfig, claimed: set[str]):
    lookups = (
        (WHITESPACE, index.by_squashed, strip_whitespace(key)),
        (PUNCTUATION, index.by_normalized, normalize_punctuation(key)),
    )
    for rule, table, probe in lookups:
        candidate = table.get(probe)
        if candidate is not None and candidate.text not in claimed:
            return Repair(key, candidate.text, rule, 1.0, 0, candidate.start, candidate.end)

    found = index.best_fuzzy(key, config.threshold, claimed)
    if found is None:
        return None
    candidate, score, distance = found
    return Repair(key, candidate.text, FUZZY, score, distance, candidate.start, candidate.end)
