"""
OpenRouter model catalog for sentence translation and dictionary generation.

Central registry of recommended models, organized by tier. The scripts use
TIER_DEFAULTS when --model is not given.
"""

# Estimated tokens for a typical episode (~150 sentences):
# ~6K input tokens + ~8K output tokens for one sentence-map translation
TYPICAL_EPISODE_INPUT_TOKENS = 6_000
TYPICAL_EPISODE_OUTPUT_TOKENS = 8_000

MODELS = {
    # === FREE TIER ===
    "deepseek/deepseek-r1:free": {
        "name": "DeepSeek R1",
        "provider": "DeepSeek",
        "tier": "free",
        "input_price": 0,
        "output_price": 0,
        "context_window": 64_000,
        "cjk_quality": "excellent",
        "best_for": ["translation", "dictionary"],
        "description": "Free reasoning model. Slow, but keeps JSON maps intact.",
        "note": "Rate limited: ~20 req/min. Data training opt-in.",
    },

    # === STANDARD TIER ===
    "google/gemini-2.5-flash": {
        "name": "Gemini 2.5 Flash",
        "provider": "Google",
        "tier": "standard",
        "input_price": 0.30,
        "output_price": 2.50,
        "context_window": 1_000_000,
        "cjk_quality": "very_good",
        "best_for": ["translation", "dictionary"],
        "description": "Fast, large context. Whole episodes fit in one request.",
    },
    "deepseek/deepseek-chat": {
        "name": "DeepSeek V3",
        "provider": "DeepSeek",
        "tier": "standard",
        "input_price": 0.19,
        "output_price": 0.87,
        "context_window": 164_000,
        "cjk_quality": "excellent",
        "best_for": ["translation", "dictionary"],
        "description": "Cheapest strong model for Chinese and Japanese.",
    },
    "openai/gpt-4o-mini": {
        "name": "GPT-4o Mini",
        "provider": "OpenAI",
        "tier": "standard",
        "input_price": 0.15,
        "output_price": 0.60,
        "context_window": 128_000,
        "cjk_quality": "good",
        "best_for": ["dictionary"],
        "description": "Cheap and fast. Fine for short dictionary entries.",
    },

    # === PREMIUM TIER ===
    "anthropic/claude-sonnet-4-5": {
        "name": "Claude Sonnet 4.5",
        "provider": "Anthropic",
        "tier": "premium",
        "input_price": 3.00,
        "output_price": 15.00,
        "context_window": 200_000,
        "cjk_quality": "excellent",
        "best_for": ["translation"],
        "description": "Most natural dialogue translation; reliable JSON output.",
    },
    "google/gemini-2.5-pro": {
        "name": "Gemini 2.5 Pro",
        "provider": "Google",
        "tier": "premium",
        "input_price": 1.25,
        "output_price": 10.00,
        "context_window": 1_000_000,
        "cjk_quality": "very_good",
        "best_for": ["translation"],
        "description": "1M context. Whole stories with full coherence.",
    },
}

# Tier defaults: the recommended model for each tier
TIER_DEFAULTS = {
    "free": "deepseek/deepseek-r1:free",
    "standard": "google/gemini-2.5-flash",
    "premium": "anthropic/claude-sonnet-4-5",
}


def estimate_episode_cost(model_id):
    """Estimate cost to translate a typical episode (~6K in + 8K out tokens)."""
    model = MODELS.get(model_id)
    if not model:
        return None
    input_cost = model["input_price"] * TYPICAL_EPISODE_INPUT_TOKENS / 1_000_000
    output_cost = model["output_price"] * TYPICAL_EPISODE_OUTPUT_TOKENS / 1_000_000
    return round(input_cost + output_cost, 4)


def get_models_by_tier(tier):
    """Return list of (model_id, model_info) for a given tier."""
    return [
        (mid, info) for mid, info in MODELS.items()
        if info["tier"] == tier
    ]


def format_model_table():
    """Format the model catalog as a printable text table."""
    lines = []
    lines.append(
        f"{'Tier':<10} {'Model':<22} {'Provider':<10} "
        f"{'In $/M':>8} {'Out $/M':>9} {'CJK':>10}  {'Best for'}"
    )
    lines.append("-" * 90)

    for tier in ("free", "standard", "premium"):
        for mid, info in get_models_by_tier(tier):
            default_mark = " *" if mid == TIER_DEFAULTS[tier] else ""
            name = info["name"] + default_mark
            lines.append(
                f"{tier:<10} {name:<22} {info['provider']:<10} "
                f"${info['input_price']:>6.2f} ${info['output_price']:>7.2f} "
                f"{info['cjk_quality']:>10}  {', '.join(info['best_for'])}"
            )

    lines.append("")
    lines.append("(* = tier default)")
    lines.append("No --model or --tier: uses Google Translate (free, no API key needed)")
    lines.append("Any OpenRouter model requires: OPENROUTER_API_KEY environment variable")
    return "\n".join(lines)
