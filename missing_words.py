#!/usr/bin/env python3
"""
Find words missing from a dictionary, and optionally generate entries.

Text is tokenized in lookup mode (words only, case folded), so the report
lists exactly the words a reader tap would fail to find.

Usage:
    python missing_words.py dictionaries/en/en-ja.json stories/my-story/episodes/episode_1.txt -l en
    python missing_words.py dict.json stories/my-story/structure.json -l ja -o missing.txt
    python missing_words.py dict.json episode_1.txt -l en --generate --target ja --merge
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.dictionary import (
    check_missing_words,
    generate_dictionary_entries,
    load_dictionary,
    merge_dictionary,
    save_dictionary,
    write_word_list,
)
from tapreader.llm_translator import is_openrouter_available, get_api_key
from tapreader.models import TIER_DEFAULTS
from tapreader.story_files import StoryFileError, load_structure
from tapreader.tokens import TokenStream


def collect_tokens(paths, language):
    """TokenStreams from structure.json files and plain text from anything else."""
    sources = []
    for path in paths:
        if path.suffix.lower() == '.json':
            structure = load_structure(path)
            for unit in structure.units:
                if unit.content:
                    sources.append(TokenStream.deserialize(unit.content, language))
        else:
            sources.append(path.read_text(encoding='utf-8'))
    return sources


def main():
    parser = argparse.ArgumentParser(
        description='List words missing from a dictionary; optionally generate entries with an LLM.',
    )
    parser.add_argument('dictionary', help='Dictionary JSON ({word: {reading, meaning, type}})')
    parser.add_argument('inputs', nargs='+', help='Episode .txt files or structure.json files')
    parser.add_argument('-l', '--language', required=True, help='Language of the input text')
    parser.add_argument(
        '-o', '--output',
        default='missing_words.txt',
        help='Word list output (default: missing_words.txt)',
    )
    parser.add_argument(
        '--generate',
        action='store_true',
        help='Generate entries for the missing words (requires OPENROUTER_API_KEY)',
    )
    parser.add_argument('--target', default='ja', help='Language of generated entries (default: ja)')
    parser.add_argument(
        '--entries-output',
        help='Where to write generated entries (default: dictionary_entries_<target>.json)',
    )
    parser.add_argument(
        '--merge',
        action='store_true',
        help='Merge generated entries into the dictionary file',
    )
    parser.add_argument(
        '--tier',
        choices=['free', 'standard', 'premium'],
        default='standard',
        help='Model tier for entry generation (default: standard)',
    )
    parser.add_argument('--model', help='OpenRouter model ID. Overrides --tier.')
    parser.add_argument(
        '--batch-size',
        type=int,
        default=100,
        help='Words per LLM request (default: 100)',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging',
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
    )

    dictionary_path = Path(args.dictionary)
    input_paths = [Path(p) for p in args.inputs]
    for path in input_paths:
        if not path.exists():
            print(f'Error: Input file not found: {path}', file=sys.stderr)
            sys.exit(1)

    try:
        dictionary = load_dictionary(dictionary_path)
        sources = collect_tokens(input_paths, args.language)
    except StoryFileError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    missing = []
    total_words = set()
    for source in sources:
        report = check_missing_words(dictionary, source, args.language)
        total_words.update(report.words)
        missing.extend(w for w in report.missing if w not in missing)

    write_word_list(missing, args.output)
    coverage = (len(total_words) - len(missing)) / len(total_words) * 100 if total_words else 100.0
    print(f'Unique words: {len(total_words)}, missing: {len(missing)} ({coverage:.1f}% coverage)')
    print(f'Missing words written to: {args.output}')

    if not args.generate or not missing:
        return

    llm_model = args.model or TIER_DEFAULTS[args.tier]
    if not is_openrouter_available():
        print('Error: OpenAI SDK not installed. Install with: pip install openai', file=sys.stderr)
        sys.exit(1)
    if not get_api_key():
        print('Error: OPENROUTER_API_KEY environment variable not set.', file=sys.stderr)
        print('Get your API key from https://openrouter.ai/', file=sys.stderr)
        sys.exit(1)

    entries = generate_dictionary_entries(
        missing,
        source=args.language,
        target=args.target,
        model=llm_model,
        batch_size=args.batch_size,
    )
    entries_path = Path(args.entries_output or f'dictionary_entries_{args.target}.json')
    save_dictionary(entries, entries_path)
    print(f'\nGenerated {len(entries)}/{len(missing)} entries: {entries_path}')

    if args.merge:
        merged, added = merge_dictionary(dictionary, entries)
        save_dictionary(merged, dictionary_path)
        print(f'Merged {added} new entries into: {dictionary_path}')

    if len(entries) < len(missing):
        sys.exit(1)


if __name__ == '__main__':
    main()
