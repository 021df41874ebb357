"""Content pipeline utilities for the multilingual word-tap reader."""

from .tokens import (
    Token,
    TokenKind,
    TokenStream,
    TapReaderError,
    StructuralCorruptionError,
)
from .tokenizer import (
    tokenize,
    lookup_words,
)
from .sentences import (
    CandidateSentence,
    reconstruct_sentences,
    split_sentences,
    walk_sentence_keys,
)
from .reconciler import (
    ReconcileConfig,
    ReconciliationResult,
    reconcile,
)
from .story_files import (
    StoryFileError,
    check_story,
    fix_story,
    tokenize_story,
)

__all__ = [
    'Token',
    'TokenKind',
    'TokenStream',
    'TapReaderError',
    'StructuralCorruptionError',
    'tokenize',
    'lookup_words',
    'CandidateSentence',
    'reconstruct_sentences',
    'split_sentences',
    'walk_sentence_keys',
    'ReconcileConfig',
    'ReconciliationResult',
    'reconcile',
    'StoryFileError',
    'check_story',
    'fix_story',
    'tokenize_story',
]
