"""Tests for tokenization, token streams and their persisted form."""
from __future__ import annotations

import unicodedata

import pytest

from tapreader.languages import LATIN, SUPPORTED_LANGUAGES, resolve_language
from tapreader.sentences import reconstruct_sentences, split_sentences
from tapreader.tokenizer import get_segmenter, lookup_words, tokenize
from tapreader.tokens import (
    LOOKUP,
    StructuralCorruptionError,
    TokenKind,
    TokenStream,
)


def test_english_preserve_mode_splits_punctuation() -> None:
    stream = tokenize("Hello, world! How are you?", "en")
    assert stream.texts == ["Hello", ",", "world", "!", "How", "are", "you", "?"]
    kinds = [t.kind for t in stream]
    assert kinds[1] is TokenKind.PUNCTUATION
    assert kinds[3] is TokenKind.TERMINATOR
    assert kinds[0] is TokenKind.WORD


def test_words_keep_apostrophes_hyphens_and_decimals() -> None:
    stream = tokenize("It's a well-known fact: it costs 3.50 now.", "en")
    assert "It's" in stream.texts
    assert "well-known" in stream.texts
    assert "3.50" in stream.texts
    assert stream.texts[-1] == "."


def test_offsets_point_into_source() -> None:
    text = "Hi there. Bye!"
    stream = tokenize(text, "en")
    for token in stream:
        assert text[token.offset:token.offset + len(token.text)] == token.text


def test_tokenize_is_deterministic() -> None:
    text = "今日は晴れです。明日も晴れです。"
    assert tokenize(text, "ja", segmenter=None).texts == tokenize(text, "ja", segmenter=None).texts


def test_japanese_fallback_splits_on_script_transitions() -> None:
    stream = tokenize("今日は晴れです。", "ja", segmenter=None)
    assert stream.texts == ["今日", "は", "晴", "れです", "。"]
    assert stream[-1].is_terminator


def test_katakana_long_vowel_stays_in_run() -> None:
    stream = tokenize("コーヒーを飲む。", "ja", segmenter=None)
    assert stream.texts[0] == "コーヒー"


def test_stub_segmenter_output_is_used() -> None:
    stream = tokenize("我爱北京。", "zh", segmenter=lambda text: ["我", "爱", "北京。"])
    assert stream.texts == ["我", "爱", "北京", "。"]


def test_segmenter_exception_falls_back() -> None:
    def broken(text):
        raise RuntimeError("dictionary missing")

    text = "我爱北京。你好！"
    assert tokenize(text, "zh", segmenter=broken).texts == tokenize(text, "zh", segmenter=None).texts


def test_segmenter_that_loses_text_falls_back() -> None:
    text = "我爱北京。"
    stream = tokenize(text, "zh", segmenter=lambda t: ["我", "北京"])
    assert stream.detokenize() == text


def test_env_var_forces_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAPREADER_SEGMENTER", "fallback")
    assert get_segmenter(resolve_language("zh")) is None
    assert get_segmenter(resolve_language("ja")) is None


def test_real_segmenter_round_trips() -> None:
    text = "我爱北京天安门。今天天气很好！"
    stream = tokenize(text, "zh")
    stream.verify_round_trip(text)
    assert stream[-1].text == "！"
    assert stream[-1].is_terminator


def test_korean_splits_words_and_terminators() -> None:
    stream = tokenize("안녕하세요. 반가워요!", "ko")
    assert stream.texts == ["안녕하세요", ".", "반가워요", "!"]


def test_unknown_language_uses_latin_rules() -> None:
    rules = resolve_language("xx")
    assert rules.family == LATIN
    stream = tokenize("Salut, lume!", "xx")
    assert stream.texts == ["Salut", ",", "lume", "!"]


def test_region_suffix_is_ignored() -> None:
    assert resolve_language("zh-CN").code == "zh"
    assert resolve_language("EN_us").code == "en"


def test_lookup_mode_drops_punctuation_and_folds_case() -> None:
    stream = tokenize("Hello, World! It's me.", "en", mode=LOOKUP)
    assert stream.mode == LOOKUP
    assert stream.texts == ["hello", "world", "it's", "me"]


def test_lookup_words_korean_keeps_hangul_only() -> None:
    assert lookup_words("K팝을 좋아해요.", "ko") == ["팝을", "좋아해요"]


def test_invalid_mode_rejected() -> None:
    with pytest.raises(ValueError):
        tokenize("text", "en", mode="bogus")


def test_serialize_round_trip() -> None:
    text = "He said \"Hi.\" Then he left."
    stream = tokenize(text, "en")
    content = stream.serialize()
    assert content.startswith("He|said|\"|Hi|.|\"")
    restored = TokenStream.deserialize(content, "en")
    assert restored.texts == stream.texts
    assert [t.kind for t in restored] == [t.kind for t in stream]
    restored.verify_round_trip(text)


def test_deserialize_skips_empty_parts() -> None:
    stream = TokenStream.deserialize("Hello| |world||.", "en")
    assert stream.texts == ["Hello", "world", "."]


def test_delimiter_in_text_is_rejected() -> None:
    stream = tokenize("left|right", "en")
    with pytest.raises(StructuralCorruptionError):
        stream.serialize()


def test_delimiter_in_cjk_text_is_rejected() -> None:
    stream = tokenize("左|右。", "ja", segmenter=None)
    with pytest.raises(StructuralCorruptionError):
        stream.serialize()


def test_lookup_stream_cannot_be_persisted() -> None:
    stream = tokenize("Hello world.", "en", mode=LOOKUP)
    with pytest.raises(StructuralCorruptionError):
        stream.serialize()


def test_verify_round_trip_reports_mismatch() -> None:
    stream = tokenize("Hello world.", "en")
    stream.verify_round_trip("Hello\n  world .")
    with pytest.raises(StructuralCorruptionError, match="first difference"):
        stream.verify_round_trip("Hello there.")


def _nfd(text: str) -> str:
    return unicodedata.normalize("NFD", text)


def test_decomposed_accents_stay_inside_words() -> None:
    text = _nfd("Tôi yêu Việt Nam.")
    assert tokenize(text, "vi").texts == ["Tôi", "yêu", "Việt", "Nam", "."]
    assert split_sentences(text, "vi") == ["Tôi yêu Việt Nam."]
    assert lookup_words(text, "vi") == ["tôi", "yêu", "việt", "nam"]


def test_mark_without_precomposed_form_joins_its_word() -> None:
    stream = tokenize("x\u0302y z.", "en")
    assert stream.texts == ["x\u0302y", "z", "."]


def test_round_trip_accepts_decomposed_source() -> None:
    text = _nfd("Ça coûte cher.")
    stream = tokenize(text, "fr")
    stream.verify_round_trip(text)


SAMPLES = {
    "en": 'It costs $5, or 10% off. He paused—then left! "Really?" she asked.',
    "es": "¿Dónde está el café? ¡Cuesta 3,50 €!",
    "vi": "Tôi yêu Việt Nam. Bạn có khỏe không?",
    "de": "Die Straße kostet 5 € pro Tag. Schön, oder?",
    "fr": "Il a dit « Bonjour » à Zoé. Ça coûte 12 €.",
    "it": "L'anno scorso costava 2.000 euro. Perché?",
    "pt": "Ela comprou pão (fresco) às 7:30. Não é?",
    "ja": "猫が好きです。「本当？」と聞いた。",
    "zh": "我爱北京。你呢？",
    "ko": "저는 학생입니다. 커피 한 잔 주세요!",
}


def test_samples_cover_every_language() -> None:
    assert set(SAMPLES) == set(SUPPORTED_LANGUAGES)


@pytest.mark.parametrize("form", ["NFC", "NFD"])
@pytest.mark.parametrize("language", SUPPORTED_LANGUAGES)
def test_sentences_reproduce_their_source_span(language, form) -> None:
    source = unicodedata.normalize("NFC", SAMPLES[language])
    text = unicodedata.normalize(form, source)
    stream = tokenize(text, language)
    stream.verify_round_trip(text)

    candidates = reconstruct_sentences(stream)
    assert len(candidates) >= 2
    for candidate in candidates:
        first, last = stream[candidate.start], stream[candidate.end]
        span = source[first.offset:last.offset + len(last.text)]
        assert candidate.text == " ".join(span.split())
