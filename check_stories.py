#!/usr/bin/env python3
"""
Check translation keys of every story against its token streams.

For each story with structure.json and lang/<code>.json, reports how many
sentence keys the reader actually reaches, and how many keys match, could be
repaired, or stay unresolved. Nothing is written; use fix_language_file.py
to apply repairs.

Usage:
    python check_stories.py stories --language en
    python check_stories.py stories --language ja --lang-code en --story the-barista
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.reconciler import ReconcileConfig
from tapreader.story_files import check_stories, check_story, format_report


def main():
    parser = argparse.ArgumentParser(
        description='Check lang/<code>.json sentence keys against structure.json for every story.',
    )
    parser.add_argument('stories_dir', help='Directory containing one folder per story')
    parser.add_argument(
        '-l', '--language',
        required=True,
        help='Story language code (the language of structure.json)',
    )
    parser.add_argument(
        '--lang-code',
        default='en',
        help='Translation file to check: lang/<code>.json (default: en)',
    )
    parser.add_argument('--story', help='Check only this story (folder name)')
    parser.add_argument(
        '--threshold',
        type=float,
        help='Fuzzy similarity threshold (default: TAPREADER_FUZZY_THRESHOLD or 0.8)',
    )
    parser.add_argument(
        '--max-unresolved',
        type=int,
        default=50,
        help='Unresolved keys listed per chapter (default: 50)',
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=4,
        help='Stories checked in parallel (default: 4)',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging',
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
    )

    stories_dir = Path(args.stories_dir)
    if not stories_dir.is_dir():
        print(f'Error: Not a directory: {stories_dir}', file=sys.stderr)
        sys.exit(1)

    config = ReconcileConfig(max_unresolved_report=args.max_unresolved)
    if args.threshold is not None:
        config.threshold = args.threshold

    if args.story:
        story_dir = stories_dir / args.story
        if not story_dir.is_dir():
            print(f'Error: Story not found: {story_dir}', file=sys.stderr)
            sys.exit(1)
        reports = [check_story(story_dir, args.language, args.lang_code, config)]
    else:
        reports = check_stories(stories_dir, args.language, args.lang_code, config, args.workers)

    if not reports:
        print(f'No stories with structure.json and lang/{args.lang_code}.json in {stories_dir}')
        return

    for report in reports:
        print(format_report(report, config.max_unresolved_report))
        print()

    with_issues = [r for r in reports if r.has_issues]
    total_issues = sum(r.issue_count for r in reports)
    print(f'Stories checked: {len(reports)}, with issues: {len(with_issues)}, total issues: {total_issues}')
    if with_issues:
        sys.exit(1)


if __name__ == '__main__':
    main()
