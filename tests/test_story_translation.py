"""Tests for episode translation and language-file replication."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from tapreader import llm_translator
from tapreader.story_files import Chapter, StoryFileError, check_story, tokenize_story
from tapreader.story_translation import (
    is_translated,
    replicate_language,
    translate_episode,
)


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def fake_llm(monkeypatch: pytest.MonkeyPatch) -> dict:
    calls = {"maps": [], "texts": []}

    def fake_map(sentences, source, target, model=None, batch_size=50, max_retries=3):
        calls["maps"].append(list(sentences))
        return {s: f"[{target}] {s}" for s in sentences}

    def fake_text(text, source, target, model=None, max_retries=3):
        calls["texts"].append(text)
        return f"[{target}] {text}" if text else ""

    monkeypatch.setattr(llm_translator, "translate_sentence_map", fake_map)
    monkeypatch.setattr(llm_translator, "translate_text_llm", fake_text)
    return calls


def _make_story(root: Path) -> Path:
    story = root / "barista"
    _write_json(story / "structure.json", {
        "title": "The Barista",
        "description": "Coffee and secrets",
        "chapters": [{"id": "ch1", "title": "Morning", "description": "First day", "content": ""}],
    })
    (story / "episodes").mkdir()
    (story / "episodes" / "episode_1.txt").write_text(
        'Good morning! "One latte, please." She smiled.\n', encoding="utf-8"
    )
    return story


def test_translated_keys_match_token_stream(tmp_path: Path, fake_llm: dict) -> None:
    story = _make_story(tmp_path)
    tokenize_story(story, "en")

    unit = translate_episode(story, 1, source="en", target="ja", model="test/model")

    assert unit is not None
    assert list(unit.sentences) == ["Good morning!", '"One latte, please."', "She smiled."]
    lang = _read_json(story / "lang" / "ja.json")
    assert lang["title"] == "[ja] The Barista"
    assert lang["chapters"][0]["id"] == "ch1"
    assert lang["chapters"][0]["title"] == "[ja] Morning"

    report = check_story(story, "en", "ja")
    chapter = report.chapters[0]
    assert chapter.found == chapter.expected == 3
    assert not report.has_issues


def test_translate_episode_replaces_existing_chapter(tmp_path: Path, fake_llm: dict) -> None:
    story = _make_story(tmp_path)
    translate_episode(story, 1, source="en", target="ja", model="test/model")
    translate_episode(story, 1, source="en", target="ja", model="test/model")
    lang = _read_json(story / "lang" / "ja.json")
    assert [c["id"] for c in lang["chapters"]] == ["ch1"]


def test_translate_episode_failure_writes_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    story = _make_story(tmp_path)
    monkeypatch.setattr(llm_translator, "translate_sentence_map", lambda *args, **kwargs: None)
    assert translate_episode(story, 1, source="en", target="ja", model="test/model") is None
    assert not (story / "lang" / "ja.json").exists()


def test_translate_missing_episode(tmp_path: Path, fake_llm: dict) -> None:
    story = _make_story(tmp_path)
    with pytest.raises(StoryFileError):
        translate_episode(story, 7, source="en", target="ja")


def test_is_translated_requires_every_key_and_title() -> None:
    source = Chapter(id="ch1", title="Uno", description="", sentences={"Hi.": "Hola."})
    good = Chapter(id="ch1", title="Un", description="", sentences={"Hi.": "Salut."})
    assert is_translated(source, good)
    assert not is_translated(source, None)
    assert not is_translated(source, Chapter(id="ch1", title="Uno", sentences={"Hi.": "Salut."}))
    assert not is_translated(source, Chapter(id="ch1", title="Un", sentences={"Hi.": "Hi."}))
    assert not is_translated(source, Chapter(id="ch1", title="Un", sentences={}))


def test_replicate_reuses_translated_and_redoes_stale(tmp_path: Path, fake_llm: dict) -> None:
    story = tmp_path / "barista"
    _write_json(story / "lang" / "es.json", {
        "title": "La barista",
        "description": "",
        "chapters": [
            {"id": "ch1", "title": "Uno", "description": "", "sentences": {"Hello, world!": "¡Hola, mundo!"}},
            {"id": "ch2", "title": "Dos", "description": "", "sentences": {"How are you?": "¿Cómo estás?"}},
        ],
    })
    _write_json(story / "lang" / "fr.json", {
        "title": "La barista (fr)",
        "description": "",
        "chapters": [
            {"id": "ch1", "title": "Un", "description": "", "sentences": {"Hello, world!": "Bonjour, le monde !"}},
            {"id": "ch2", "title": "Dos", "description": "", "sentences": {"How are you?": "How are you?"}},
        ],
    })

    report = replicate_language(story, "en", "es", "fr", model="test/model")

    assert report.reused == ["ch1"]
    assert report.translated == ["ch2"]
    assert not report.has_issues
    assert fake_llm["maps"] == [["How are you?"]]
    result = _read_json(story / "lang" / "fr.json")
    assert result["title"] == "La barista (fr)"
    assert result["chapters"][0]["sentences"] == {"Hello, world!": "Bonjour, le monde !"}
    assert result["chapters"][1]["title"] == "[fr] Dos"
    assert result["chapters"][1]["sentences"] == {"How are you?": "[fr] How are you?"}


def test_replicate_failed_chapter_keeps_previous(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    story = tmp_path / "barista"
    _write_json(story / "lang" / "es.json", {
        "title": "",
        "description": "",
        "chapters": [{"id": "ch1", "title": "", "description": "", "sentences": {"Hi.": "Hola."}}],
    })
    _write_json(story / "lang" / "fr.json", {
        "title": "",
        "description": "",
        "chapters": [{"id": "ch1", "title": "", "description": "", "sentences": {"Hi.": ""}}],
    })
    monkeypatch.setattr(llm_translator, "translate_sentence_map", lambda *args, **kwargs: None)

    report = replicate_language(story, "en", "es", "fr", model="test/model")

    assert report.failed == ["ch1"]
    assert report.has_issues
    result = _read_json(story / "lang" / "fr.json")
    assert result["chapters"][0]["sentences"] == {"Hi.": ""}
