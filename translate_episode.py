#!/usr/bin/env python3
"""
Translate one episode into a story's language file.

The episode text is split into sentence keys with the same tokenizer that
builds structure.json, translated, and written as chapter ch<n> of
lang/<target>.json (replacing an earlier version of that chapter).

Usage:
    python translate_episode.py stories/still-dead-still-bored 3 --source en --target ja
    python translate_episode.py stories/the-barista 1 --source ja --target en --tier standard
    python translate_episode.py --list-models
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.llm_translator import is_openrouter_available, get_api_key
from tapreader.models import MODELS, TIER_DEFAULTS, estimate_episode_cost, format_model_table
from tapreader.story_files import StoryFileError
from tapreader.story_translation import translate_episode


def resolve_engine(args):
    """OpenRouter model id from --model or --tier, or None for Google Translate."""
    if args.model:
        return args.model
    if args.tier and args.tier != 'free':
        return TIER_DEFAULTS.get(args.tier)
    return None


def check_openrouter(llm_model):
    if not llm_model:
        return
    if not is_openrouter_available():
        print('Error: OpenAI SDK not installed. Install with: pip install openai', file=sys.stderr)
        sys.exit(1)
    if not get_api_key():
        print('Error: OPENROUTER_API_KEY environment variable not set.', file=sys.stderr)
        print('Get your API key from https://openrouter.ai/', file=sys.stderr)
        sys.exit(1)


def add_engine_arguments(parser):
    model_group = parser.add_argument_group('translation engine')
    model_group.add_argument(
        '--tier',
        choices=['free', 'standard', 'premium'],
        help='Translation quality tier. '
             'free=Google Translate (no API key), '
             f'standard={MODELS[TIER_DEFAULTS["standard"]]["name"]}, '
             f'premium={MODELS[TIER_DEFAULTS["premium"]]["name"]}',
    )
    model_group.add_argument(
        '--model',
        help='OpenRouter model ID (e.g., deepseek/deepseek-chat). '
             'Overrides --tier. Requires OPENROUTER_API_KEY.',
    )
    model_group.add_argument(
        '--list-models',
        action='store_true',
        help='Show available models with pricing and exit',
    )


def main():
    parser = argparse.ArgumentParser(
        description='Translate an episode into lang/<target>.json of a story.',
    )
    parser.add_argument('story_dir', nargs='?', help='Story directory')
    parser.add_argument('episode', nargs='?', type=int, help='Episode number (episodes/episode_<n>.txt)')
    parser.add_argument('--source', default='en', help='Story language code (default: en)')
    parser.add_argument('--target', default='ja', help='Target language code (default: ja)')
    parser.add_argument(
        '--fallback',
        action='store_true',
        help='Split sentences with the rule-based tokenizer instead of jieba/janome',
    )
    add_engine_arguments(parser)
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging',
    )

    args = parser.parse_args()

    if args.list_models:
        print(format_model_table())
        return

    if not args.story_dir or args.episode is None:
        parser.error('the following arguments are required: story_dir, episode')

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
    )

    story_dir = Path(args.story_dir)
    if not story_dir.is_dir():
        print(f'Error: Story directory not found: {story_dir}', file=sys.stderr)
        sys.exit(1)

    llm_model = resolve_engine(args)
    check_openrouter(llm_model)

    model_name = MODELS[llm_model]["name"] if llm_model and llm_model in MODELS else (llm_model or "Google Translate")
    print(f'Story:   {story_dir.name}')
    print(f'Episode: {args.episode} ({args.source} -> {args.target})')
    print(f'Engine:  {model_name}')
    cost = estimate_episode_cost(llm_model) if llm_model else None
    if cost:
        print(f'Cost:    ~${cost}')
    print()

    try:
        unit = translate_episode(
            story_dir,
            args.episode,
            source=args.source,
            target=args.target,
            model=llm_model,
            free=llm_model is None,
            segmenter=None if args.fallback else 'auto',
        )
    except StoryFileError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    if unit is None:
        print('Error: Translation failed; language file not modified', file=sys.stderr)
        sys.exit(1)
    print(f'\nAdded {unit.id} ({len(unit.sentences)} sentences) to lang/{args.target}.json')


if __name__ == '__main__':
    main()
