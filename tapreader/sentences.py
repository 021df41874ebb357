"""
Sentence reconstruction from token streams.

The reading UI rebuilds sentences by walking the token stream: tokens are
accumulated into a buffer, and when the next token is a sentence terminator
the current token plus the terminator close the sentence. The rebuilt text is
the key into the chapter's translation map. This module performs the same
walk so translation keys can be produced, checked and repaired offline.

A terminator run absorbs every following terminator and closing quote or
bracket, so '「はい。」' and 'Really?!' close as one sentence each.
"""

import unicodedata
from dataclasses import dataclass

from .languages import (
    CLOSING_PUNCTUATION,
    OPENING_PUNCTUATION,
    STRAIGHT_QUOTES,
    LanguageRules,
    resolve_language,
)
from .tokens import Token, TokenStream

_ATTACH_LEFT = frozenset('.,!?;:%…、。！？，；：') | CLOSING_PUNCTUATION


def _is_joining_dash(surface: str) -> bool:
    # A standalone ASCII hyphen stands in for a spaced dash
    return bool(surface) and surface != '-' and all(unicodedata.category(c) == 'Pd' for c in surface)


def _is_currency(surface: str) -> bool:
    return bool(surface) and all(unicodedata.category(c) == 'Sc' for c in surface)


@dataclass(frozen=True)
class CandidateSentence:
    """A contiguous token run hypothesized to be one sentence."""
    text: str
    start: int
    end: int


class _Renderer:
    """Incrementally joins token surfaces the way they read in prose."""

    def __init__(self, rules: LanguageRules):
        self.spaced = rules.spaced
        self.text = ''
        self._glue_next = True
        self._after_currency = False
        self._open_quotes = set()

    def push(self, surface: str) -> None:
        if not self.spaced:
            self.text += surface
            return
        if surface in STRAIGHT_QUOTES:
            closing = surface in self._open_quotes
            if closing:
                self._open_quotes.discard(surface)
                space = False
            else:
                self._open_quotes.add(surface)
                space = not self._glue_next
            self.text += (' ' if space else '') + surface
            self._glue_next = not closing
            self._after_currency = False
            return
        attaches = all(c in _ATTACH_LEFT for c in surface) or _is_joining_dash(surface)
        # '$5' but '5 € pro'
        if self._after_currency and surface[:1].isdigit():
            attaches = True
        space = not self._glue_next and not attaches
        self.text += (' ' if space else '') + surface
        self._glue_next = surface in OPENING_PUNCTUATION or _is_joining_dash(surface)
        self._after_currency = _is_currency(surface)


def render_tokens(tokens, language) -> str:
    """Render a token sequence as sentence text for a language."""
    rules = language if isinstance(language, LanguageRules) else resolve_language(language)
    renderer = _Renderer(rules)
    for token in tokens:
        renderer.push(token.text if isinstance(token, Token) else token)
    return renderer.text.strip()


def _is_closer(token: Token, quote_counts: dict) -> bool:
    if token.text in CLOSING_PUNCTUATION:
        return True
    if token.text in STRAIGHT_QUOTES:
        return quote_counts.get(token.text, 0) % 2 == 1
    return False


def _run_end(tokens: list[Token], index: int, quote_counts: dict) -> int:
    """
    Index of the last token of the terminator run starting at index.

    quote_counts holds straight-quote occurrences in the sentence so far and
    is updated for quotes absorbed into the run.
    """
    end = index
    while end < len(tokens):
        token = tokens[end]
        if not (token.is_terminator or _is_closer(token, quote_counts)):
            break
        if token.text in STRAIGHT_QUOTES:
            quote_counts[token.text] = quote_counts.get(token.text, 0) + 1
        end += 1
    return end - 1


def _scan(tokens: list[Token], start: int, rules: LanguageRules, *, every_end: bool, max_span):
    """
    Walk tokens from start, yielding candidates.

    With every_end=False the buffer resets after each closed sentence and
    only closed sentences (plus an unterminated tail) are yielded. With
    every_end=True the window keeps growing from start and a candidate is
    yielded at every token, stopping after max_span closed sentences.
    """
    renderer = _Renderer(rules)
    quote_counts = {}
    buffer_start = None
    closes = 0
    last = None
    i = start
    n = len(tokens)
    while i < n:
        token = tokens[i]
        if token.is_terminator:
            i += 1
            continue
        if buffer_start is None:
            buffer_start = i
        renderer.push(token.text)
        if token.text in STRAIGHT_QUOTES:
            quote_counts[token.text] = quote_counts.get(token.text, 0) + 1
        last = i

        if i + 1 < n and tokens[i + 1].is_terminator:
            end = _run_end(tokens, i + 1, quote_counts)
            for j in range(i + 1, end + 1):
                renderer.push(tokens[j].text)
            text = renderer.text.strip()
            if text:
                yield CandidateSentence(text, buffer_start, end)
            closes += 1
            i = end + 1
            if every_end:
                if max_span is not None and closes >= max_span:
                    return
            else:
                renderer = _Renderer(rules)
                quote_counts = {}
                buffer_start = None
                last = None
            continue

        if every_end:
            text = renderer.text.strip()
            if text:
                yield CandidateSentence(text, buffer_start, i)
        i += 1

    if not every_end and buffer_start is not None and last is not None:
        text = renderer.text.strip()
        if text:
            yield CandidateSentence(text, buffer_start, last)


def reconstruct_sentences(
    stream: TokenStream,
    exhaustive: bool = False,
    max_span: int | None = None,
) -> list[CandidateSentence]:
    """
    Rebuild candidate sentences from a token stream.

    Default mode walks once from the start and resets the buffer after every
    closed sentence: O(N) candidates, the same sentences the reading UI sees.

    Exhaustive mode starts a window at every non-terminator token and yields
    a candidate at every end position, so keys with extra leading words or a
    missing closing quote still find a contiguous run. Unbounded that is all
    O(N^2) start/end pairs; max_span stops each window after that many closed
    sentences.
    """
    rules = resolve_language(stream.language)
    tokens = stream.tokens
    if not exhaustive:
        return list(_scan(tokens, 0, rules, every_end=False, max_span=None))

    candidates = []
    for start, token in enumerate(tokens):
        if token.is_terminator:
            continue
        candidates.extend(_scan(tokens, start, rules, every_end=True, max_span=max_span))
    return candidates


def split_sentences(text: str, language: str, segmenter='auto') -> list[str]:
    """
    Split prose into sentence keys that match its own token stream.

    Keys produced here always reconcile as exact matches against
    tokenize(text, language).
    """
    from .tokenizer import tokenize

    stream = tokenize(text, language, segmenter=segmenter)
    return [c.text for c in reconstruct_sentences(stream)]


def walk_sentence_keys(stream: TokenStream, keys) -> list[CandidateSentence]:
    """
    Reproduce the reading UI's sequential lookup.

    Tokens accumulate exactly as in reconstruct_sentences; whenever the
    buffer equals one of the keys it is recorded and the buffer resets.
    Keys the walk never reaches are the ones the UI cannot show a
    translation for.
    """
    rules = resolve_language(stream.language)
    keyset = set(keys)
    tokens = stream.tokens
    found = []

    renderer = _Renderer(rules)
    quote_counts = {}
    buffer_start = None
    i = 0
    n = len(tokens)
    while i < n:
        token = tokens[i]
        if token.is_terminator:
            i += 1
            continue
        if buffer_start is None:
            buffer_start = i
        renderer.push(token.text)
        if token.text in STRAIGHT_QUOTES:
            quote_counts[token.text] = quote_counts.get(token.text, 0) + 1
        end = i
        if i + 1 < n and tokens[i + 1].is_terminator:
            end = _run_end(tokens, i + 1, quote_counts)
            for j in range(i + 1, end + 1):
                renderer.push(tokens[j].text)
        text = renderer.text.strip()
        if text in keyset:
            found.append(CandidateSentence(text, buffer_start, end))
            renderer = _Renderer(rules)
            quote_counts = {}
            buffer_start = None
        i = end + 1
    return found
