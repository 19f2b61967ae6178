#!/usr/bin/env python3
"""
Command-line script to browse 9GAG feeds.

Lists sections, or fetches pages of one section and prints them as JSON.

Usage:
    python run_feed.py --list-sections
    python run_feed.py hot
    python run_feed.py funny --pages 3 --details
    python run_feed.py --api default/trending --pages 2 -o trending.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

# Load .env file automatically (NINEGAG_BASE_URL, NINEGAG_TIMEOUT, ...)
from dotenv import load_dotenv
load_dotenv()

from ninegag import NineGagClient, NineGagError, Section, SectionKind, parse_section_kind
from ninegag.logger import setup_logger


def find_section(sections: list[Section], wanted: str) -> Optional[Section]:
    """Match by URL, then by name, then by well-known kind."""
    wanted_kind = parse_section_kind(wanted)
    for section in sections:
        if section.url == wanted or section.name.lower() == wanted.lower():
            return section
    for section in sections:
        if wanted_kind is not SectionKind.UNKNOWN and section.kind is wanted_kind:
            return section
    return None


def page_record(page) -> dict:
    return {
        "feed_url": page.feed_url,
        "source_url": page.source_url,
        "next": page.next.model_dump() if page.next else None,
        "posts": [post.model_dump(mode="json") for post in page.posts],
        "failures": [failure.model_dump() for failure in page.failures]
    }


async def run(args) -> list:
    results = []
    async with NineGagClient() as client:
        if args.list_sections:
            for section in await client.list_sections():
                print(f"  {section.kind.value:12} {section}", file=sys.stderr)
                results.append(section.model_dump(mode="json"))
            return results

        if args.api:
            group, _, kind = args.api.partition("/")
            page = None
            for _ in range(args.pages):
                page = await client.get_api_page(group=group or "default", kind=kind or "hot", after=page)
                print(f"  ✓ {len(page.posts)} posts from {page.source_url}", file=sys.stderr)
                results.append(page_record(page))
                if not page.has_next:
                    break
            return results

        sections = await client.list_sections()
        section = find_section(sections, args.section)
        if section is None:
            raise NineGagError(f"No section matches {args.section!r}", stage="sections")

        async for page in client.iter_pages(section, max_pages=args.pages, with_details=args.details):
            print(f"  ✓ {len(page.posts)} posts, {len(page.failures)} failures", file=sys.stderr)
            results.append(page_record(page))
    return results


def main():
    parser = argparse.ArgumentParser(description="Fetch 9GAG sections and feed pages")
    parser.add_argument(
        "section",
        nargs="?",
        default="hot",
        help="Section name, kind or URL (default: hot)"
    )
    parser.add_argument(
        "--list-sections", "-l",
        action="store_true",
        help="List sections and exit"
    )
    parser.add_argument(
        "--api",
        metavar="GROUP/KIND",
        help="Read the JSON posts API instead of the HTML listing, e.g. default/hot"
    )
    parser.add_argument(
        "--pages", "-p",
        type=int,
        default=1,
        help="Number of pages to fetch (default: 1)"
    )
    parser.add_argument(
        "--details", "-d",
        action="store_true",
        help="Fetch each post's detail page as well"
    )
    parser.add_argument(
        "--output", "-o",
        help="Output JSON file (default: print to stdout)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )

    args = parser.parse_args()

    # Setup logging
    import logging
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        results = asyncio.run(run(args))
    except NineGagError as e:
        print(f"  ✗ Error: {e}", file=sys.stderr)
        sys.exit(1)

    # ensure_ascii=False keeps titles readable
    output = json.dumps(results, indent=2, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(output)
        print(f"\nSaved to: {args.output}", file=sys.stderr)
    else:
        print(output)


if __name__ == "__main__":
    main()
