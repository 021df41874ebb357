#!/usr/bin/env python3
"""
Tokenize story episodes into structure.json.

Every episodes/episode_<n>.txt is tokenized for the story language and
written as the '|'-joined content of chapter ch<n>. A chapter whose tokens
do not rebuild the episode text keeps its old content and is reported.

Usage:
    python tokenize_story.py stories/the-barista --language ja
    python tokenize_story.py stories/the-barista --language zh --fallback
    python tokenize_story.py episode.txt --language en -o episode.json
"""

import argparse
import logging
import sys
from pathlib import Path

from tapreader.story_files import (
    StoryFileError,
    format_report,
    tokenize_story,
    tokenize_text_file,
)
from tapreader.tokens import StructuralCorruptionError


def main():
    parser = argparse.ArgumentParser(
        description='Tokenize story episodes into structure.json token streams.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python tokenize_story.py stories/my-story --language en       # All episodes of a story
  python tokenize_story.py stories/my-story --language ja       # Japanese (janome)
  python tokenize_story.py stories/my-story -l zh --fallback    # Rule-based CJK split
  python tokenize_story.py episode_3.txt -l en -o ep3.json      # Single text file
        ''',
    )
    parser.add_argument('path', help='Story directory, or a single .txt file')
    parser.add_argument(
        '-l', '--language',
        required=True,
        help='Story language code (en, ja, zh, ko, es, vi, ...)',
    )
    parser.add_argument(
        '-o', '--output',
        help='Output JSON for single-file mode (default: <input>.tokens.json)',
    )
    parser.add_argument(
        '--fallback',
        action='store_true',
        help='Use the rule-based tokenizer instead of jieba/janome',
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

    path = Path(args.path)
    if not path.exists():
        print(f'Error: Path not found: {path}', file=sys.stderr)
        sys.exit(1)

    segmenter = None if args.fallback else 'auto'

    if path.is_file():
        output = Path(args.output) if args.output else path.with_suffix('.tokens.json')
        try:
            count = tokenize_text_file(path, output, args.language, segmenter=segmenter)
        except StructuralCorruptionError as e:
            print(f'Error: {e}', file=sys.stderr)
            sys.exit(1)
        print(f'{count} tokens written to: {output}')
        return

    try:
        report = tokenize_story(path, args.language, segmenter=segmenter)
    except StoryFileError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    print(format_report(report))
    if report.has_issues:
        sys.exit(1)


if __name__ == '__main__':
    main()
