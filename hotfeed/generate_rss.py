#!/usr/bin/env python3
"""Build an RSS 2.0 feed of huxiu.com's hot articles.

Usage:
  python -m hotfeed.generate_rss --out rss.xml

Outputs:
  <repo>/rss.xml  (or --out, resolved against the repository root)
"""
from __future__ import annotations
import argparse, asyncio, os, pathlib, sys, tempfile, traceback

from core.config import settings
from core.errors import FilesystemError
from core.log import setup_logger
from hotfeed.pipeline import generate_rss

ROOT = pathlib.Path(__file__).resolve().parents[1]

def write_feed(path: pathlib.Path, rss: str) -> int:
    """Atomically write ``rss`` as UTF-8 and return the byte count."""
    data = rss.encode("utf-8")
    tmp = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except OSError as e:
        if tmp and os.path.exists(tmp):
            os.unlink(tmp)
        raise FilesystemError(f"cannot write {path}: {e}") from e
    return len(data)

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Generate an RSS feed from m.huxiu.com hotArticlesList")
    ap.add_argument("--out", default="rss.xml", help="output path, relative to the repository root")
    args = ap.parse_args(argv)

    setup_logger("hotfeed", settings.log_level)
    out = ROOT / args.out

    try:
        rss = asyncio.run(generate_rss(settings))
        size = write_feed(out, rss)
    except Exception:
        traceback.print_exc(file=sys.stderr)
        return 1

    print(f"Wrote {args.out} ({size} bytes)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
