"""
Multi-language tokenizer for the word-tap reader.

tokenize() turns raw prose into a TokenStream in one of two modes:

  - preserve: case and punctuation kept, every punctuation mark a separate
    token. This is the only mode that may be persisted; sentence keys are
    rebuilt from it.
  - lookup: words only, case folded. Used for dictionary coverage reports.

Japanese and Chinese are segmented with janome and jieba. If a segmenter
cannot be built, raises, or returns text that does not rebuild the input,
a deterministic script-transition heuristic is used instead. Korean and
Latin-script languages split with a regex. Input is NFC-normalized first,
so decomposed accents stay inside their words and token offsets index the
normalized text.
"""

import logging
import os
import re
import unicodedata

from .languages import CJK, HANGUL, LanguageRules, resolve_language
from .tokens import (
    LOOKUP,
    PRESERVE,
    Token,
    TokenKind,
    TokenStream,
    classify_token,
    is_punctuation_char,
    squash_whitespace,
)

logger = logging.getLogger(__name__)

AUTO = 'auto'

# Decimal numbers and times stay whole, words keep internal apostrophes,
# hyphens and combining marks, every other non-space character is its own
# token.
_MARKS = "\u0300-\u036f\u1ab0-\u1aff\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f"
_WORD = rf"[\w{_MARKS}]"
_SPACED_TOKEN = re.compile(
    rf"\d+(?:[.,:]\d+)+|{_WORD}+(?:['’-]{_WORD}+)*|[^\w\s{_MARKS}]"
)
_HANGUL_RUN = re.compile(r'[가-힣ᄀ-ᇿ㄰-㆏]+')

_segmenters: dict = {}
_unavailable: set[str] = set()


# ---------------------------------------------------------------------------
# Segmenter backends
# ---------------------------------------------------------------------------

def _build_segmenter(name: str):
    if name == 'jieba':
        import jieba
        jieba.setLogLevel(logging.WARNING)
        jieba.initialize()
        return lambda text: list(jieba.cut(text))
    if name == 'janome':
        from janome.tokenizer import Tokenizer
        tokenizer = Tokenizer()
        return lambda text: list(tokenizer.tokenize(text, wakati=True))
    raise ValueError(f'Unknown segmenter: {name}')


def get_segmenter(rules: LanguageRules):
    """
    Return the cached segmenter callable for a language, or None.

    None means the rule-based tokenizer should be used: the language has no
    segmenter, TAPREADER_SEGMENTER=fallback is set, or the backend failed to
    initialize earlier in this process.
    """
    name = rules.segmenter
    if not name:
        return None
    if os.environ.get('TAPREADER_SEGMENTER', AUTO).strip().lower() == 'fallback':
        return None
    if name in _unavailable:
        return None
    if name not in _segmenters:
        try:
            _segmenters[name] = _build_segmenter(name)
        except Exception as e:
            logger.warning(f'{name} segmenter unavailable ({e}); using rule-based fallback')
            _unavailable.add(name)
            return None
    return _segmenters[name]


# ---------------------------------------------------------------------------
# Rule-based tokenizers
# ---------------------------------------------------------------------------

def is_han_char(char: str) -> bool:
    """Check if a character is a CJK unified ideograph."""
    cp = ord(char)
    return (
        (0x4E00 <= cp <= 0x9FFF)
        or (0x3400 <= cp <= 0x4DBF)
        or (0x20000 <= cp <= 0x2A6DF)
        or (0x2A700 <= cp <= 0x2B73F)
        or (0x2B740 <= cp <= 0x2B81F)
        or (0x2B820 <= cp <= 0x2CEAF)
        or (0xF900 <= cp <= 0xFAFF)
        or (0x2F800 <= cp <= 0x2FA1F)
    )


def _script_of(char: str) -> str:
    cp = ord(char)
    if 0x3040 <= cp <= 0x309F:
        return 'hiragana'
    if 0x30A0 <= cp <= 0x30FF or 0x31F0 <= cp <= 0x31FF or 0xFF66 <= cp <= 0xFF9F:
        return 'katakana'
    if is_han_char(char) or char in '々〆〇':
        return 'han'
    if _HANGUL_RUN.match(char):
        return 'hangul'
    return 'other'


def _script_transition_split(text: str, rules: LanguageRules) -> list[str]:
    """
    Greedy CJK fallback: a new token starts wherever the script changes.

    Punctuation is always a single-character token; whitespace only
    separates. The long vowel mark continues a kana run.
    """
    pieces = []
    run = []
    run_script = None

    def flush():
        nonlocal run_script
        if run:
            pieces.append(''.join(run))
            run.clear()
        run_script = None

    for ch in text:
        if ch.isspace():
            flush()
            continue
        if ch in rules.standalone or is_punctuation_char(ch):
            flush()
            pieces.append(ch)
            continue
        script = _script_of(ch)
        if ch == 'ー' and run_script in ('hiragana', 'katakana'):
            script = run_script
        if run and script != run_script:
            flush()
        run.append(ch)
        run_script = script
    flush()
    return pieces


def _split_out_punctuation(raw_pieces, rules: LanguageRules) -> list[str]:
    """Normalize segmenter output: drop whitespace, isolate punctuation marks."""
    pieces = []
    for raw in raw_pieces:
        run = []
        for ch in raw:
            if ch.isspace() or ch in rules.standalone or is_punctuation_char(ch):
                if run:
                    pieces.append(''.join(run))
                    run = []
                if not ch.isspace():
                    pieces.append(ch)
            else:
                run.append(ch)
        if run:
            pieces.append(''.join(run))
    return pieces


def _segment_cjk(text: str, rules: LanguageRules, segmenter) -> list[str]:
    if segmenter is AUTO:
        segmenter = get_segmenter(rules)
    if segmenter is not None:
        try:
            pieces = _split_out_punctuation(segmenter(text), rules)
        except Exception as e:
            logger.warning(f'{rules.code} segmenter failed ({e}); using rule-based fallback')
        else:
            if ''.join(pieces) == squash_whitespace(text):
                return pieces
            logger.warning(
                f'{rules.code} segmenter output does not reproduce the input; '
                f'using rule-based fallback'
            )
    return _script_transition_split(text, rules)


def _with_offsets(text: str, pieces: list[str]) -> list[tuple[str, int | None]]:
    located = []
    cursor = 0
    for piece in pieces:
        pos = text.find(piece, cursor)
        if pos < 0:
            located.append((piece, None))
        else:
            located.append((piece, pos))
            cursor = pos + len(piece)
    return located


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def tokenize(
    text: str,
    language: str,
    mode: str = PRESERVE,
    segmenter=AUTO,
) -> TokenStream:
    """
    Tokenize text for a language.

    Args:
        text: Raw prose. Line breaks and runs of whitespace only separate.
        language: Language code ('en', 'ja', 'zh-CN', ...). Unsupported codes
            use the Latin-script rules.
        mode: 'preserve' or 'lookup'.
        segmenter: 'auto' to use the language's segmenter backend, None to
            force the rule-based tokenizer, or a callable returning a list
            of token strings.

    Returns:
        A TokenStream. Identical input always gives an identical stream.
    """
    if mode not in (PRESERVE, LOOKUP):
        raise ValueError(f"mode must be '{PRESERVE}' or '{LOOKUP}', got {mode!r}")

    rules = resolve_language(language)
    text = unicodedata.normalize('NFC', (text or '').replace('\r\n', '\n'))

    if rules.family == CJK:
        located = _with_offsets(text, _segment_cjk(text, rules, segmenter))
    else:
        located = [(m.group(), m.start()) for m in _SPACED_TOKEN.finditer(text)]

    tokens = [
        Token(piece, classify_token(piece, rules), offset)
        for piece, offset in located
    ]
    stream = TokenStream(tokens=tokens, language=rules.code, mode=PRESERVE)
    if mode == LOOKUP:
        return to_lookup(stream)
    return stream


def to_lookup(stream: TokenStream) -> TokenStream:
    """
    Derive a lookup-mode stream: words only, case folded.

    Korean keeps only Hangul runs so mixed-script tokens still hit the
    dictionary.
    """
    rules = resolve_language(stream.language)
    tokens = []
    for token in stream.tokens:
        if not token.is_word:
            continue
        if rules.family == HANGUL:
            for m in _HANGUL_RUN.finditer(token.text):
                offset = token.offset + m.start() if token.offset is not None else None
                tokens.append(Token(m.group(), TokenKind.WORD, offset))
        else:
            tokens.append(Token(token.text.lower(), TokenKind.WORD, token.offset))
    return TokenStream(tokens=tokens, language=stream.language, mode=LOOKUP)


def lookup_words(text: str, language: str) -> list[str]:
    """Lookup-mode words of a text, in order, duplicates kept."""
    return tokenize(text, language, mode=LOOKUP).texts
