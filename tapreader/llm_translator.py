"""
Translation module using OpenRouter API.

Sentence maps are translated as JSON objects keyed by the source sentence,
so the keys written to lang/<code>.json are the exact sentences produced by
split_sentences(). Every call returns None on failure; callers never write
partial results.
"""

import json
import os
import re
import time
import logging
from typing import Optional

try:
    from openai import OpenAI
    import openai
    OPENROUTER_AVAILABLE = True
except ImportError:
    OPENROUTER_AVAILABLE = False

from .languages import language_name
from .reconciler import normalize_punctuation

logger = logging.getLogger(__name__)

# Sentences per JSON-map request
SENTENCE_BATCH_SIZE = 50

_CODE_FENCE = re.compile(r'```(?:json)?', re.IGNORECASE)
_JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)


def is_openrouter_available() -> bool:
    """Check if the OpenAI SDK (for OpenRouter) is installed."""
    return OPENROUTER_AVAILABLE


def get_api_key() -> Optional[str]:
    """Get OpenRouter API key from environment variable."""
    return os.environ.get('OPENROUTER_API_KEY')


def _create_client() -> 'OpenAI':
    """Create an OpenRouter client."""
    return OpenAI(
        base_url="https://openrouter.ai/api/v1",
        api_key=os.environ.get("OPENROUTER_API_KEY"),
        default_headers={
            "X-Title": "Tap Reader content pipeline",
        },
    )


def _default_model() -> str:
    from .models import TIER_DEFAULTS
    return TIER_DEFAULTS["standard"]


def _ready() -> bool:
    if not OPENROUTER_AVAILABLE:
        logger.error("OpenAI SDK not installed. Install with: pip install openai")
        return False
    if not get_api_key():
        logger.error("OPENROUTER_API_KEY environment variable not set")
        return False
    return True


def complete(
    system_prompt: str,
    user_prompt: str,
    model: Optional[str] = None,
    max_tokens: int = 4096,
    max_retries: int = 3,
) -> Optional[str]:
    """
    One chat completion with exponential backoff retry.

    Returns the stripped response text, or None when the SDK or key is
    missing, the response is empty, or every attempt failed.
    """
    if not _ready():
        return None

    model = model or _default_model()
    client = _create_client()

    for attempt in range(max_retries):
        try:
            completion = client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )

            content = completion.choices[0].message.content
            if content is None:
                logger.warning("Empty response from API")
                return None
            return content.strip()

        except openai.RateLimitError as e:
            if attempt < max_retries - 1:
                wait = 2 ** (attempt + 1)
                logger.warning(
                    f'Rate limited (attempt {attempt + 1}): {e}. '
                    f'Retrying in {wait}s...'
                )
                time.sleep(wait)
            else:
                logger.error(f'Rate limited after {max_retries} attempts: {e}')

        except openai.APIError as e:
            if attempt < max_retries - 1:
                wait = 2 ** (attempt + 1)
                logger.warning(
                    f'API error (attempt {attempt + 1}): {e}. '
                    f'Retrying in {wait}s...'
                )
                time.sleep(wait)
            else:
                logger.error(f'Request failed after {max_retries} attempts: {e}')

    return None


def parse_json_response(raw: Optional[str]) -> Optional[dict]:
    """
    Parse a JSON object out of an LLM response.

    Markdown code fences are removed; if the remainder is not valid JSON the
    outermost {...} block is tried. Returns None when nothing parses to an
    object.
    """
    if not raw:
        return None
    cleaned = _CODE_FENCE.sub('', raw).strip()
    for candidate in (cleaned, _first_object(cleaned)):
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    logger.warning(f'Could not parse JSON object from response: {raw[:200]!r}')
    return None


def _first_object(text: str) -> Optional[str]:
    m = _JSON_OBJECT.search(text)
    return m.group() if m else None


def needs_translation(source_text: str, translation: Optional[str]) -> bool:
    """
    True when translation is missing, blank, or still the source text.

    An entry whose value equals its key was copied over untranslated.
    """
    if translation is None or not str(translation).strip():
        return True
    return str(translation).strip() == (source_text or '').strip()


def _strip_wrapping_quotes(text: str) -> str:
    text = text.strip()
    for left, right in (('"', '"'), ('“', '”'), ('「', '」')):
        if len(text) >= 2 and text.startswith(left) and text.endswith(right):
            return text[1:-1].strip()
    return text


def translate_text_llm(
    text: str,
    source: str = 'en',
    target: str = 'ja',
    model: Optional[str] = None,
    max_retries: int = 3,
) -> Optional[str]:
    """
    Translate a short text (title, description, single sentence).

    Args:
        text: The text to translate.
        source: Source language code or name.
        target: Target language code or name.
        model: OpenRouter model ID. Defaults to the standard tier default.
        max_retries: Number of retry attempts on API failure.

    Returns:
        Translated text, or None if translation failed.
    """
    text = (text or '').strip()
    if not text:
        return ''

    source = language_name(source)
    target = language_name(target)

    system_prompt = f"""You are an expert translator specializing in {source} to {target} translation for language learners.

Instructions:
1. Translate the given text accurately and naturally
2. Preserve the tone and style of the original
3. Output ONLY the translation - no explanations, notes, quotes, or original text"""

    user_prompt = f"""Translate this {source} text to {target}:

{text}"""

    result = complete(system_prompt, user_prompt, model, max(len(text) * 4, 256), max_retries)
    if result is None:
        return None
    return _strip_wrapping_quotes(result)


def _align_batch(batch: list[str], parsed: dict) -> dict[str, str]:
    """
    Map a parsed response back onto the keys that were sent.

    Exact keys win; keys the model altered are recovered by punctuation-
    normalized comparison, then by position when the counts still agree.
    """
    values = {str(k): v for k, v in parsed.items() if isinstance(v, str)}
    aligned = {}
    leftover_keys = []
    for key in batch:
        if key in values:
            aligned[key] = values.pop(key)
        else:
            leftover_keys.append(key)

    if leftover_keys:
        by_normalized = {normalize_punctuation(k): k for k in values}
        still_missing = []
        for key in leftover_keys:
            response_key = by_normalized.get(normalize_punctuation(key))
            if response_key is not None and response_key in values:
                aligned[key] = values.pop(response_key)
            else:
                still_missing.append(key)
        if still_missing and len(still_missing) == len(values):
            for key, value in zip(still_missing, values.values()):
                aligned[key] = value
            still_missing = []
        for key in still_missing:
            logger.warning(f'No translation returned for: {key!r}')

    return {key: aligned[key] for key in batch if key in aligned}


def translate_sentence_map(
    sentences: list[str],
    source: str = 'en',
    target: str = 'ja',
    model: Optional[str] = None,
    batch_size: int = SENTENCE_BATCH_SIZE,
    max_retries: int = 3,
) -> Optional[dict[str, str]]:
    """
    Translate sentences as JSON maps {source sentence: translation}.

    Sentences are sent in batches of batch_size. Keys of the result are the
    input sentences, in input order; sentences the model dropped are left
    out and logged.

    Returns:
        The sentence map, or None if any batch failed outright (API error or
        unparseable response).
    """
    if not sentences:
        return {}

    source_name = language_name(source)
    target_name = language_name(target)

    system_prompt = (
        f"You are a professional translator. Translate {source_name} sentences into "
        f"natural, fluent {target_name}. Return ONLY a JSON object whose keys are the "
        f"original {source_name} sentences, copied exactly, and whose values are the "
        f"{target_name} translations. No explanations."
    )

    result = {}
    total_batches = (len(sentences) + batch_size - 1) // batch_size
    for i in range(0, len(sentences), batch_size):
        batch = sentences[i:i + batch_size]
        logger.info(f'Translating batch {i // batch_size + 1}/{total_batches} ({len(batch)} sentences)')

        user_prompt = json.dumps({s: '' for s in batch}, ensure_ascii=False, indent=2)
        raw = complete(
            system_prompt,
            user_prompt,
            model,
            max_tokens=sum(len(s) for s in batch) * 6 + 512,
            max_retries=max_retries,
        )
        parsed = parse_json_response(raw)
        if parsed is None:
            logger.error(f'Batch {i // batch_size + 1} failed; aborting sentence map translation')
            return None
        result.update(_align_batch(batch, parsed))

        if i + batch_size < len(sentences):
            time.sleep(0.3)

    return result
