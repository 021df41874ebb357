"""Tests for sentence reconstruction and the reader-walk simulation."""
from __future__ import annotations

from tapreader.reconciler import ReconcileConfig, reconcile
from tapreader.sentences import (
    reconstruct_sentences,
    render_tokens,
    split_sentences,
    walk_sentence_keys,
)
from tapreader.tokenizer import tokenize
from tapreader.tokens import TokenStream


def _texts(candidates) -> list[str]:
    return [c.text for c in candidates]


def test_english_sentences_rendered_with_spacing() -> None:
    stream = tokenize("Hello, world! How are you?", "en")
    candidates = reconstruct_sentences(stream)
    assert _texts(candidates) == ["Hello, world!", "How are you?"]
    assert (candidates[0].start, candidates[0].end) == (0, 3)
    assert (candidates[1].start, candidates[1].end) == (4, 7)


def test_japanese_sentences_concatenate() -> None:
    stream = tokenize("今日は晴れです。明日も晴れです。", "ja", segmenter=None)
    assert _texts(reconstruct_sentences(stream)) == ["今日は晴れです。", "明日も晴れです。"]


def test_closing_bracket_joins_terminator_run() -> None:
    stream = tokenize("「はい。」彼は言った。", "ja", segmenter=None)
    assert _texts(reconstruct_sentences(stream)) == ["「はい。」", "彼は言った。"]


def test_straight_quotes_close_with_sentence() -> None:
    stream = tokenize('He said "Hi." Then he left.', "en")
    assert _texts(reconstruct_sentences(stream)) == ['He said "Hi."', "Then he left."]


def test_repeated_terminators_form_one_run() -> None:
    stream = tokenize("Really?! Yes...", "en")
    assert _texts(reconstruct_sentences(stream)) == ["Really?!", "Yes..."]


def test_unterminated_tail_is_a_candidate() -> None:
    stream = tokenize("First one. And then", "en")
    assert _texts(reconstruct_sentences(stream)) == ["First one.", "And then"]


def test_exhaustive_mode_covers_every_window() -> None:
    stream = tokenize("One. Two. Three.", "en")
    texts = set(_texts(reconstruct_sentences(stream, exhaustive=True)))
    assert {"One.", "Two.", "Three.", "One. Two.", "Two. Three.", "One. Two. Three."} <= texts


def test_exhaustive_max_span_limits_windows() -> None:
    stream = tokenize("One. Two. Three.", "en")
    texts = set(_texts(reconstruct_sentences(stream, exhaustive=True, max_span=1)))
    assert "One." in texts
    assert "One. Two." not in texts


def test_render_tokens_handles_brackets_and_quotes() -> None:
    assert render_tokens(["(", "see", "above", ")", "."], "en") == "(see above)."
    assert render_tokens(['"', "Go", "!", '"', "she", "said"], "en") == '"Go!" she said'
    assert render_tokens(["我", "爱", "北京", "。"], "zh") == "我爱北京。"


def test_split_sentences_keys_match_own_stream() -> None:
    text = "Hello, world! How are you? I'm fine."
    keys = split_sentences(text, "en")
    assert keys == ["Hello, world!", "How are you?", "I'm fine."]
    stream = tokenize(text, "en")
    assert _texts(walk_sentence_keys(stream, keys)) == keys


def test_walk_resets_only_on_a_hit() -> None:
    stream = TokenStream.deserialize("Hello|,|world|!|How|are|you|?", "en")
    found = walk_sentence_keys(stream, {"Hello,world!", "How are you?"})
    # The unmatched first sentence keeps accumulating, so the second is never reached
    assert found == []

    found = walk_sentence_keys(stream, {"Hello, world!", "How are you?"})
    assert _texts(found) == ["Hello, world!", "How are you?"]
    assert (found[1].start, found[1].end) == (4, 7)


def test_walk_matches_multi_sentence_key() -> None:
    stream = tokenize("Wait. Stop! Go.", "en")
    found = walk_sentence_keys(stream, {"Wait. Stop!", "Go."})
    assert _texts(found) == ["Wait. Stop!", "Go."]


def test_currency_sign_joins_a_following_number() -> None:
    assert split_sentences("It costs $5.", "en") == ["It costs $5."]
    assert split_sentences("Sie kostet 5 € pro Tag.", "de") == ["Sie kostet 5 € pro Tag."]
    assert render_tokens(["€", "20", "."], "fr") == "€20."


def test_dashes_join_both_neighbours() -> None:
    assert split_sentences("He paused—then left.", "en") == ["He paused—then left."]
    assert render_tokens(["pages", "10", "–", "12", "."], "en") == "pages 10–12."
    # A lone ASCII hyphen is a spaced dash
    assert render_tokens(["wait", "-", "what", "?"], "en") == "wait - what?"


def test_rendered_keys_survive_reconciliation_unchanged() -> None:
    text = "It costs $5. He paused—then left."
    keys = ["It costs $5.", "He paused—then left."]
    stream = tokenize(text, "en")
    translations = {k: "x" for k in keys}
    result = reconcile(keys, reconstruct_sentences(stream), translations, ReconcileConfig(threshold=0.8))
    assert result.matched == keys
    assert result.repaired == []
