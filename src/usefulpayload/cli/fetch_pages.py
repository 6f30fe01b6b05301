"""CLI entrypoint that fetches web pages as plain text."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from usefulpayload.fetch.client import DEFAULT_FETCH_TIMEOUT_SECONDS, fetch_pages


load_dotenv()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)
    parser = argparse.ArgumentParser(description="Fetch pages concurrently and print their visible text")
    parser.add_argument("urls", nargs="+", help="Page URLs")
    parser.add_argument("--timeout", type=float, default=DEFAULT_FETCH_TIMEOUT_SECONDS, help="Per-page timeout in seconds")
    parser.add_argument("--max-chars", type=int, default=None, help="Truncate each page text to this many characters")
    args = parser.parse_args(argv)

    if args.timeout <= 0 or (args.max_chars is not None and args.max_chars <= 0):
        print(json.dumps({"error": "--timeout and --max-chars must be positive"}, ensure_ascii=True))
        return 2

    pages = asyncio.run(fetch_pages(args.urls, timeout_seconds=args.timeout, max_chars=args.max_chars))
    payload = {
        "count": len(pages),
        "failed": sum(1 for page in pages if page.error is not None),
        "pages": [page.to_dict() for page in pages],
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if payload["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
