"""
Token and TokenStream types.

A TokenStream is one chapter's text as the reading UI consumes it: words and
punctuation marks as separate tokens, persisted as a single string with the
tokens joined by '|'. The UI rebuilds sentences from the tokens and uses the
sentence text as the key into the chapter's translation map, so a stream is
only valid if it reproduces its source text exactly (whitespace aside).
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

from .languages import LanguageRules, resolve_language

DELIMITER = '|'

PRESERVE = 'preserve'
LOOKUP = 'lookup'

_WHITESPACE = re.compile(r'\s+')


class TapReaderError(Exception):
    """Base class for errors raised by tapreader."""


class StructuralCorruptionError(TapReaderError):
    """A token stream cannot be persisted or no longer matches its source."""


class TokenKind(str, Enum):
    WORD = 'word'
    TERMINATOR = 'terminator'
    PUNCTUATION = 'punctuation'


@dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind = TokenKind.WORD
    offset: int | None = None

    @property
    def is_terminator(self) -> bool:
        return self.kind is TokenKind.TERMINATOR

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


def is_punctuation_char(char: str) -> bool:
    """Unicode punctuation or symbol character."""
    return unicodedata.category(char)[0] in ('P', 'S')


def classify_token(text: str, rules: LanguageRules) -> TokenKind:
    """Decide the kind of a token surface under a language's rules."""
    if text and all(c in rules.terminators for c in text):
        return TokenKind.TERMINATOR
    if text and all(c in rules.standalone or is_punctuation_char(c) for c in text):
        return TokenKind.PUNCTUATION
    return TokenKind.WORD


def squash_whitespace(text: str) -> str:
    """Remove all whitespace (used for round-trip comparison)."""
    return _WHITESPACE.sub('', text.replace('\r\n', '\n'))


@dataclass
class TokenStream:
    """Ordered tokens for one unit of content in one language."""
    tokens: list[Token]
    language: str
    mode: str = PRESERVE

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self):
        return iter(self.tokens)

    def __getitem__(self, index):
        return self.tokens[index]

    @property
    def texts(self) -> list[str]:
        return [t.text for t in self.tokens]

    def detokenize(self) -> str:
        """Concatenate token surfaces with no separator."""
        return ''.join(t.text for t in self.tokens)

    def serialize(self) -> str:
        """
        Join tokens with the reserved delimiter.

        Raises StructuralCorruptionError for lookup-mode streams (their case
        folding and dropped punctuation would corrupt sentence keys) and for
        tokens that are empty or contain the delimiter.
        """
        if self.mode != PRESERVE:
            raise StructuralCorruptionError(
                f'Refusing to persist a {self.mode}-mode token stream'
            )
        for index, token in enumerate(self.tokens):
            if not token.text:
                raise StructuralCorruptionError(f'Token {index} is empty')
            if DELIMITER in token.text:
                raise StructuralCorruptionError(
                    f'Token {index} contains the reserved delimiter: {token.text!r}'
                )
        return DELIMITER.join(t.text for t in self.tokens)

    @classmethod
    def deserialize(cls, content: str, language: str) -> 'TokenStream':
        """Parse a persisted '|'-joined stream, re-deriving token kinds."""
        rules = resolve_language(language)
        tokens = []
        for part in (content or '').split(DELIMITER):
            part = part.strip()
            if part:
                tokens.append(Token(part, classify_token(part, rules)))
        return cls(tokens=tokens, language=rules.code, mode=PRESERVE)

    def verify_round_trip(self, source_text: str) -> None:
        """
        Raise StructuralCorruptionError unless the tokens rebuild source_text.

        Both sides are compared in NFC, the form tokenize() works in.
        """
        expected = squash_whitespace(unicodedata.normalize('NFC', source_text))
        actual = squash_whitespace(unicodedata.normalize('NFC', self.detokenize()))
        if expected == actual:
            return
        position = next(
            (i for i, (a, b) in enumerate(zip(expected, actual)) if a != b),
            min(len(expected), len(actual)),
        )
        raise StructuralCorruptionError(
            f'Token stream does not reproduce its source text '
            f'(first difference at character {position}: '
            f'{expected[position:position + 10]!r} vs {actual[position:position + 10]!r})'
        )
