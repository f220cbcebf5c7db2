"""Export the loyalty service OpenAPI document for client generation."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loyalty.main import create_application


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("destination", nargs="?", default="docs/openapi.json", type=Path)
    args = parser.parse_args(argv)

    document = create_application().openapi()
    args.destination.parent.mkdir(parents=True, exist_ok=True)
    args.destination.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
    paths = sorted(document.get("paths", {}))
    print(f"Wrote {len(paths)} paths to {args.destination}")


if __name__ == "__main__":
    main()
