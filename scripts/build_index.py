#!/usr/bin/env python3
"""
Index Build Utility
Builds (or rebuilds) the persisted vector index from the embedding matrix so
that later engine startups can restore it instead of inserting every row.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from semsearch.core import config
from semsearch.core.errors import CorpusLoadError, IndexLoadError
from semsearch.core.loaders import VectorIndexLoader
from semsearch.vector.matrix import load_matrix


def main(argv=None):
    """Build the vector index from the embedding matrix."""
    parser = argparse.ArgumentParser(description="Build the persisted vector index")
    parser.add_argument("--matrix", default=config.MATRIX_PATH, help=f"Embedding matrix file (default: {config.MATRIX_PATH})")
    parser.add_argument("--output", default=config.INDEX_PATH, help=f"Index file to write (default: {config.INDEX_PATH})")
    parser.add_argument("--force", action="store_true", help="Rebuild even if a valid index already exists")
    args = parser.parse_args(argv)

    issues = config.validate_search_config()
    if issues:
        print(f"ERROR: Invalid configuration: {issues}")
        sys.exit(1)

    print("Starting vector index build...")

    try:
        matrix = load_matrix(args.matrix)
    except CorpusLoadError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    print(f"✓ Loaded a {matrix.rows} x {matrix.columns} matrix")

    output = Path(args.output)
    if args.force and output.exists():
        try:
            output.unlink()
            print("✓ Removed existing index")
        except OSError as e:
            print(f"WARNING: Failed to remove existing index: {e}")

    loader = VectorIndexLoader(output, workers=config.LOADER_WORKERS)
    try:
        index = asyncio.run(loader.load(matrix))
    except IndexLoadError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if loader.restored:
        print(f"✓ Existing index at {output} is valid with {len(index)} vectors")
    else:
        print(f"✓ Successfully built index with {len(index)} vectors")

    # Verify index
    try:
        if matrix.rows:
            hits = index.search(matrix.row(0), 1)
            print(f"✓ Verification search returned {len(hits)} results")
        else:
            print("✓ No entries to verify (empty index)")
    except (ValueError, RuntimeError) as e:
        print(f"WARNING: Verification search failed: {e}")

    print("Index build complete!")


if __name__ == "__main__":
    main()
