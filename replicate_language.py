#!/usr/bin/env python3
"""
Replicate a story's language file into another target language.

Chapters already translated in lang/<target>.json are reused; chapters with
missing or untranslated sentences are translated again.

Usage:
    python replicate_language.py stories/the-barista --story-language ja --source en --target ko
    python replicate_language.py stories/the-barista --story-language ja --source en --target zh --force
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.llm_translator import is_openrouter_available, get_api_key
from tapreader.models import MODELS, TIER_DEFAULTS, format_model_table
from tapreader.story_files import StoryFileError
from tapreader.story_translation import replicate_language


def main():
    parser = argparse.ArgumentParser(
        description='Translate lang/<source>.json of a story into lang/<target>.json.',
    )
    parser.add_argument('story_dir', nargs='?', help='Story directory')
    parser.add_argument(
        '--story-language',
        default='en',
        help='Language of the story text and sentence keys (default: en)',
    )
    parser.add_argument('--source', default='en', help='Existing language file code (default: en)')
    parser.add_argument('--target', help='New language file code')
    parser.add_argument(
        '--force',
        action='store_true',
        help='Translate every chapter, even ones already translated',
    )

    # Model selection
    model_group = parser.add_argument_group('translation engine')
    model_group.add_argument(
        '--tier',
        choices=['free', 'standard', 'premium'],
        help='Translation quality tier. '
             'free=Google Translate (no API key), '
             'standard=Gemini 2.5 Flash, '
             'premium=Claude Sonnet 4.5',
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

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging',
    )

    args = parser.parse_args()

    if args.list_models:
        print(format_model_table())
        return

    if not args.story_dir or not args.target:
        parser.error('the following arguments are required: story_dir, --target')

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
    if args.source == args.target:
        print('Error: --source and --target must differ', file=sys.stderr)
        sys.exit(1)

    # Resolve LLM model from --model or --tier
    llm_model = None
    if args.model:
        llm_model = args.model
    elif args.tier and args.tier != 'free':
        llm_model = TIER_DEFAULTS.get(args.tier)
    # No --model and no --tier (or --tier free) => Google Translate (llm_model=None)

    if llm_model:
        if not is_openrouter_available():
            print('Error: OpenAI SDK not installed. Install with: pip install openai', file=sys.stderr)
            sys.exit(1)
        if not get_api_key():
            print('Error: OPENROUTER_API_KEY environment variable not set.', file=sys.stderr)
            print('Get your API key from https://openrouter.ai/', file=sys.stderr)
            sys.exit(1)

    model_name = MODELS[llm_model]["name"] if llm_model and llm_model in MODELS else (llm_model or "Google Translate")
    print(f'Story:  {story_dir.name} ({args.story_language})')
    print(f'Files:  lang/{args.source}.json -> lang/{args.target}.json')
    print(f'Engine: {model_name}')
    print()

    try:
        report = replicate_language(
            story_dir,
            story_language=args.story_language,
            source_code=args.source,
            target=args.target,
            model=llm_model,
            free=llm_model is None,
            force=args.force,
        )
    except StoryFileError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    print(f'\nReused:     {len(report.reused)} chapter(s)')
    print(f'Translated: {len(report.translated)} chapter(s)')
    if report.failed:
        print(f'Failed:     {", ".join(report.failed)}')
    print(f'Written to: {report.output_path}')
    if report.has_issues:
        sys.exit(1)


if __name__ == '__main__':
    main()
