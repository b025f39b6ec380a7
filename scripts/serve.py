#!/usr/bin/env python3
"""
Run the search HTTP API with uvicorn.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from semsearch.core.config import DEBUG, validate_search_config


def main(argv=None):
    parser = argparse.ArgumentParser(description="Serve the semantic search API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    args = parser.parse_args(argv)

    issues = validate_search_config()
    if issues:
        print(f"❌ ERROR: Invalid configuration: {issues}")
        sys.exit(1)

    print(f"🚀 Serving search API on http://{args.host}:{args.port}")
    uvicorn.run(
        "semsearch.api.main:app",
        host=args.host,
        port=args.port,
        log_level="debug" if DEBUG else "info",
    )


if __name__ == "__main__":
    main()
