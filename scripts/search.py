#!/usr/bin/env python3
"""
Command-line search over the configured corpus.
Loads the engine, waits for bootstrap and prints the ranked identifiers.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from semsearch.core.engine import create_engine
from semsearch.core.errors import CorpusLoadError


async def run_search(engine, text=None, image_path=None, limit=None):
    """Bootstrap the engine and run one query."""
    if not await engine.bootstrap():
        return None

    if image_path is not None:
        return await engine.search_image(Path(image_path).read_bytes(), limit)
    return await engine.search_text(text or "", limit)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Search the image corpus by text or by example image")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--text", help="Text query")
    group.add_argument("--image", help="Path of a query image")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of results")
    args = parser.parse_args(argv)

    try:
        engine = create_engine()
    except CorpusLoadError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    try:
        results = asyncio.run(run_search(engine, args.text, args.image, args.limit))
    except OSError as e:
        print(f"ERROR: Cannot read query image: {e}")
        sys.exit(1)

    if results is None:
        print("ERROR: Search resources failed to load")
        for error in engine.bootstrap_errors:
            print(f"  - {error}")
        sys.exit(1)

    for rank, name in enumerate(results, start=1):
        print(f"{rank:4d}  {name}")
    print(f"✓ {len(results)} results")


if __name__ == "__main__":
    main()
