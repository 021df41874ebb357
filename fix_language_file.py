#!/usr/bin/env python3
"""
Repair sentence keys of a story's language file.

Keys are matched against sentences rebuilt from structure.json: exact,
whitespace-insensitive, punctuation-normalized, then fuzzy above the
threshold. Repaired keys take the exact sentence text; unresolved keys are
kept as they are and listed.

Usage:
    python fix_language_file.py stories/the-barista --language ja
    python fix_language_file.py stories/the-barista -l ja --lang-code en --in-place
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.reconciler import ReconcileConfig
from tapreader.story_files import StoryFileError, fix_story, format_report


def main():
    parser = argparse.ArgumentParser(
        description='Repair lang/<code>.json sentence keys against structure.json.',
    )
    parser.add_argument('story_dir', help='Story directory')
    parser.add_argument(
        '-l', '--language',
        required=True,
        help='Story language code (the language of structure.json)',
    )
    parser.add_argument(
        '--lang-code',
        default='en',
        help='Translation file to repair: lang/<code>.json (default: en)',
    )
    parser.add_argument(
        '-o', '--output',
        help='Output path (default: lang/<code>-fixed.json)',
    )
    parser.add_argument(
        '--in-place',
        action='store_true',
        help='Overwrite lang/<code>.json instead of writing a -fixed copy',
    )
    parser.add_argument(
        '--threshold',
        type=float,
        help='Fuzzy similarity threshold (default: TAPREADER_FUZZY_THRESHOLD or 0.8)',
    )
    parser.add_argument(
        '--max-span',
        type=int,
        default=3,
        help='Sentences per candidate window when searching for a key (default: 3)',
    )
    parser.add_argument(
        '--max-unresolved',
        type=int,
        default=50,
        help='Unresolved keys listed per chapter (default: 50)',
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

    if args.in_place and args.output:
        print('Error: Cannot use --in-place and --output together', file=sys.stderr)
        sys.exit(1)

    story_dir = Path(args.story_dir)
    if not story_dir.is_dir():
        print(f'Error: Story directory not found: {story_dir}', file=sys.stderr)
        sys.exit(1)

    config = ReconcileConfig(max_span=args.max_span, max_unresolved_report=args.max_unresolved)
    if args.threshold is not None:
        config.threshold = args.threshold

    try:
        report = fix_story(
            story_dir,
            args.language,
            lang_code=args.lang_code,
            output_path=args.output,
            in_place=args.in_place,
            config=config,
        )
    except StoryFileError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    print(format_report(report, config.max_unresolved_report))
    repaired = sum(c.repaired for c in report.chapters)
    print(f'\nRepaired keys: {repaired}, remaining issues: {report.issue_count}')
    if report.has_issues:
        sys.exit(1)


if __name__ == '__main__':
    main()
