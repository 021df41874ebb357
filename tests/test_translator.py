"""Tests for the Google Translate path and the model catalog (no network access)."""
from __future__ import annotations

import pytest

from tapreader import translator
from tapreader.models import MODELS, TIER_DEFAULTS, estimate_episode_cost, format_model_table
from tapreader.translator import google_code, translate_sentence_map_free, translate_text


class FakeGoogleTranslator:
    calls: list = []
    fail_on: set = set()

    def __init__(self, source, target):
        self.source = source
        self.target = target

    def translate(self, text):
        FakeGoogleTranslator.calls.append((self.source, self.target, text))
        if text in FakeGoogleTranslator.fail_on:
            raise RuntimeError("quota exceeded")
        return f"<{self.target}>{text}"


@pytest.fixture(autouse=True)
def fake_google(monkeypatch: pytest.MonkeyPatch):
    FakeGoogleTranslator.calls = []
    FakeGoogleTranslator.fail_on = set()
    monkeypatch.setattr(translator, "GoogleTranslator", FakeGoogleTranslator)
    monkeypatch.setattr(translator.time, "sleep", lambda seconds: None)
    return FakeGoogleTranslator


def test_google_codes() -> None:
    assert google_code("zh") == "zh-CN"
    assert google_code("zh-TW") == "zh-TW"
    assert google_code("JA") == "ja"


def test_translate_text(fake_google) -> None:
    assert translate_text(" Hello ", "en", "zh") == "<zh-CN>Hello"
    assert translate_text("   ") == ""
    assert translate_text("x" * (translator.MAX_CHUNK_SIZE + 1)) is None
    assert len(fake_google.calls) == 1


def test_sentence_map_in_order(fake_google) -> None:
    result = translate_sentence_map_free(["One.", "Two."], "en", "fr")
    assert list(result.items()) == [("One.", "<fr>One."), ("Two.", "<fr>Two.")]


def test_sentence_map_fails_whole_after_retries(fake_google) -> None:
    fake_google.fail_on = {"Two."}
    assert translate_sentence_map_free(["One.", "Two."], "en", "fr") is None
    assert [text for _, _, text in fake_google.calls].count("Two.") == 3


def test_tier_defaults_are_in_catalog() -> None:
    for model_id in TIER_DEFAULTS.values():
        assert model_id in MODELS


def test_cost_estimate() -> None:
    assert estimate_episode_cost("deepseek/deepseek-r1:free") == 0
    assert estimate_episode_cost("unknown/model") is None
    assert estimate_episode_cost("openai/gpt-4o-mini") == pytest.approx(0.0057)


def test_model_table_marks_defaults() -> None:
    table = format_model_table()
    assert "Gemini 2.5 Flash *" in table
    assert "Google Translate" in table
