#!/usr/bin/env python
"""Generate the OpenAPI spec JSON and print its content hash.

Usage:
  python -m scripts.generate_spec --out backend/openapi.json
  python -m scripts.generate_spec --check HASH

Options:
  --out PATH    Write full spec JSON to PATH (directories auto-created)
  --check HASH  Exit 2 if the current spec hash differs from HASH (CI check)

Without flags, prints the current hash to stdout.
"""
from __future__ import annotations
import argparse, json, hashlib, pathlib, sys

from robotcare.openapi_builder import build_openapi_spec  # type: ignore


def compute_spec_and_hash():
    spec = build_openapi_spec()
    blob = json.dumps(spec, sort_keys=True, separators=(',', ':')).encode()
    return spec, hashlib.sha256(blob).hexdigest()


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Generate deterministic OpenAPI spec")
    p.add_argument('--out', dest='out', help='Path to write JSON spec')
    p.add_argument('--check', metavar='HASH', help='Compare the current hash with HASH and exit 2 on mismatch')
    args = p.parse_args(argv)

    spec, h = compute_spec_and_hash()

    if args.out:
        out_path = pathlib.Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(spec, indent=2, sort_keys=True) + '\n')
        print(f"Wrote spec JSON to {out_path} ({len(json.dumps(spec))} bytes)")

    if args.check:
        if h != args.check.strip():
            print(f"Spec hash mismatch: expected={args.check} current={h}", file=sys.stderr)
            return 2
        print(f"Spec hash OK: {h}")

    if not args.out and not args.check:
        print(h)
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
