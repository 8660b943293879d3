#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
mantohtml - Convert one or more man pages into a single HTML document

Usage:

   mantohtml [OPTIONS] MAN-FILE [... MAN-FILE] >HTML-FILE
"""

import argparse
import logging
import sys

from api_models import DocumentMetadata
from man_parser import MANTOHTML_VERSION, ManFatalError, ManParser, ManState
from utils import normalize_path_for_platform


def build_arg_parser():
    parser = argparse.ArgumentParser(
        prog='mantohtml',
        usage='%(prog)s [OPTIONS] MAN-FILE [... MAN-FILE] >HTML-FILE',
        description='Convert man pages to HTML',
    )
    parser.add_argument('--author', type=str, metavar="'AUTHOR'", help='Set author metadata')
    parser.add_argument('--chapter', type=str, metavar="'CHAPTER'", help='Set chapter (H1 heading)')
    parser.add_argument('--copyright', type=str, metavar="'COPYRIGHT'", help='Set copyright metadata')
    parser.add_argument('--css', type=str, metavar='CSS-FILE-OR-URL', help='Use named stylesheet')
    parser.add_argument('--subject', type=str, metavar="'SUBJECT'", help='Set subject metadata')
    parser.add_argument('--title', type=str, metavar="'TITLE'", help='Set output title')
    parser.add_argument('--version', action='version', version=MANTOHTML_VERSION, help='Show version')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='WARNING', help='Logging level for diagnostics - default: WARNING')
    parser.add_argument('files', nargs='*', metavar='MAN-FILE', help='Man page source to convert')
    return parser


def main(argv=None):
    """Convert the named man pages to HTML on stdout"""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    # Diagnostics go to stderr, one line each
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='mantohtml: %(message)s',
        stream=sys.stderr,
    )

    # Pass undecodable input bytes through unchanged
    if hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8', errors='surrogateescape')

    stylesheet = args.css
    if stylesheet and not stylesheet.startswith(('http://', 'https://')):
        stylesheet = normalize_path_for_platform(stylesheet)

    metadata = DocumentMetadata(
        author=args.author,
        chapter=args.chapter,
        copyright=args.copyright,
        stylesheet=stylesheet,
        subject=args.subject,
        title=args.title,
    )
    converter = ManParser(ManState(metadata), out=sys.stdout)

    try:
        for filename in args.files:
            converter.convert_file(filename)
    except ManFatalError as e:
        logging.error(str(e))
        return 1

    if converter.finish():
        return 0

    # No man pages were converted
    parser.print_usage()
    return 1


if __name__ == "__main__":
    sys.exit(main())
