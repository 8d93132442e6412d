"""
Run the Nexus architect backend.

Run:
  python scripts/run_server.py [--host 0.0.0.0] [--port 3001] [--reload]
"""
from __future__ import annotations

from pathlib import Path
import argparse
import sys

import uvicorn

# Ensure repository root is on sys.path so the 'src' package can be imported
# when executing this script from the scripts/ directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Nexus architect backend")
    parser.add_argument("--host", default="0.0.0.0")
    # The dev front-end proxies /api to port 3001.
    parser.add_argument("--port", type=int, default=3001)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)
    uvicorn.run("src.nexus.api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
