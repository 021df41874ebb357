"""
Per-language tokenization rules.

Every source language belongs to one script family. The family decides how
word boundaries are found, which punctuation marks become standalone tokens,
which of those close a sentence, and whether rendered sentences put spaces
between words.

Unknown language codes degrade to the Latin-script rules with a warning so a
batch run is never stopped by a bad code.
"""

import logging
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

LATIN = 'latin'
CJK = 'cjk'
HANGUL = 'hangul'

# Opening marks never have a space after them, closing marks never have a
# space before them. Straight quotes are decided by parity at render time.
OPENING_PUNCTUATION = frozenset('([{“‘¿¡「『【（《〈')
CLOSING_PUNCTUATION = frozenset(')]}”’」』】）》〉')
STRAIGHT_QUOTES = frozenset('"\'')


@dataclass(frozen=True)
class LanguageRules:
    """Tokenization policy for one language."""
    code: str
    family: str
    standalone: frozenset
    terminators: frozenset
    spaced: bool
    segmenter: str | None = None

    @property
    def is_cjk(self) -> bool:
        return self.family == CJK


_LATIN_STANDALONE = frozenset('.!?;:,"\'()“”‘’…¿¡[]')
_LATIN_TERMINATORS = frozenset('.!?…')

_CJK_STANDALONE = frozenset('。！？、；：「」『』【】（），…“”《》')
_CJK_TERMINATORS = frozenset('。！？')

_HANGUL_STANDALONE = frozenset('.!?。！？,，"\'()“”‘’…')
_HANGUL_TERMINATORS = frozenset('.!?。！？')


def _latin(code: str) -> LanguageRules:
    return LanguageRules(
        code=code,
        family=LATIN,
        standalone=_LATIN_STANDALONE,
        terminators=_LATIN_TERMINATORS,
        spaced=True,
    )


RULES = {
    'en': _latin('en'),
    'es': _latin('es'),
    'vi': _latin('vi'),
    'de': _latin('de'),
    'fr': _latin('fr'),
    'it': _latin('it'),
    'pt': _latin('pt'),
    'ja': LanguageRules(
        code='ja',
        family=CJK,
        standalone=_CJK_STANDALONE,
        terminators=_CJK_TERMINATORS,
        spaced=False,
        segmenter='janome',
    ),
    'zh': LanguageRules(
        code='zh',
        family=CJK,
        standalone=_CJK_STANDALONE,
        terminators=_CJK_TERMINATORS,
        spaced=False,
        segmenter='jieba',
    ),
    'ko': LanguageRules(
        code='ko',
        family=HANGUL,
        standalone=_HANGUL_STANDALONE,
        terminators=_HANGUL_TERMINATORS,
        spaced=True,
    ),
}

SUPPORTED_LANGUAGES = tuple(RULES)

# Human-readable names used in LLM prompts
LANGUAGE_NAMES = {
    'zh-cn': 'Chinese (Simplified)',
    'zh-tw': 'Chinese (Traditional)',
    'zh': 'Chinese',
    'en': 'English',
    'ja': 'Japanese',
    'ko': 'Korean',
    'fr': 'French',
    'de': 'German',
    'es': 'Spanish',
    'it': 'Italian',
    'pt': 'Portuguese',
    'vi': 'Vietnamese',
}

_warned_codes: set[str] = set()


def normalize_code(language: str) -> str:
    """Lowercase a language tag and drop its region ('zh-CN' -> 'zh')."""
    code = (language or '').strip().lower().replace('_', '-')
    return code.split('-', 1)[0]


def resolve_language(language: str) -> LanguageRules:
    """
    Return the rules for a language code.

    Unsupported codes get the Latin-script rules. The warning is logged once
    per code to keep batch logs readable.
    """
    code = normalize_code(language)
    rules = RULES.get(code)
    if rules is not None:
        return rules
    if code not in _warned_codes:
        _warned_codes.add(code)
        logger.warning(f"Unsupported language '{language}', using Latin-script rules")
    return replace(RULES['en'], code=code or 'en')


def language_name(language: str) -> str:
    """Normalize language codes to human-readable names for LLM prompts."""
    key = (language or '').strip().lower()
    if key in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[key]
    return LANGUAGE_NAMES.get(normalize_code(language), language)
