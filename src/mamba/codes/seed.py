"""
Seed the access code pool.

Usage:
    python -m mamba.codes.seed --file codes.txt
    python -m mamba.codes.seed --generate 200 --product-type receipts

A seed file holds one ``code[,product_type]`` per line; blank lines and
lines starting with ``#`` are skipped. Seeding is idempotent: codes already
in the pool are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from mamba.clock import utcnow
from mamba.codes.service import generate_access_code
from mamba.config import get_settings
from mamba.db.models import PRODUCT_TYPES
from mamba.middleware.logging import setup_logging

if TYPE_CHECKING:
    from mamba.storage import Storage

logger = structlog.get_logger()

DEFAULT_PRODUCT_TYPE = "obywatel"


def parse_seed_lines(lines: Iterable[str], default_type: str = DEFAULT_PRODUCT_TYPE) -> Iterator[tuple[str, str]]:
    """Yield (code, product_type) pairs from seed file lines."""
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        code, _, product_type = (part.strip() for part in line.partition(","))
        product_type = product_type.lower() or default_type
        if product_type not in PRODUCT_TYPES:
            msg = f"line {lineno}: unknown product type {product_type!r}"
            raise ValueError(msg)
        yield code, product_type


def load_seed_file(path: str | Path, default_type: str = DEFAULT_PRODUCT_TYPE) -> list[tuple[str, str]]:
    with Path(path).open(encoding="utf-8") as fh:
        return list(parse_seed_lines(fh, default_type))


def generate_entries(count: int, product_type: str) -> list[tuple[str, str]]:
    return [(generate_access_code(), product_type) for _ in range(count)]


async def seed_pool(storage: Storage, entries: list[tuple[str, str]]) -> int:
    """Insert entries, skipping codes already present. Returns the inserted count."""
    inserted = await storage.seed_access_codes(entries, now=utcnow())
    logger.info("access_codes_seeded", offered=len(entries), inserted=inserted)
    return inserted


async def seed_from_settings(storage: Storage) -> int:
    """Start-up hook: seed from ``access_code_seed_file`` when configured."""
    path = get_settings().access_code_seed_file
    if not path:
        return 0
    return await seed_pool(storage, load_seed_file(path))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed the Mamba access code pool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load codes from a file (code[,product_type] per line)
  %(prog)s --file codes.txt

  # Generate 50 fresh receipts codes
  %(prog)s --generate 50 --product-type receipts
        """,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Seed file, one code[,product_type] per line")
    source.add_argument("--generate", type=int, metavar="N", help="Generate N random codes")
    parser.add_argument(
        "--product-type",
        choices=PRODUCT_TYPES,
        default=DEFAULT_PRODUCT_TYPE,
        help=f"Product type for generated codes and untyped file lines (default: {DEFAULT_PRODUCT_TYPE})",
    )
    parser.add_argument(
        "--print",
        action="store_true",
        dest="print_codes",
        help="Print generated codes to stdout",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    from mamba.storage import close_storage, init_storage

    settings = get_settings()
    if args.file:
        entries = load_seed_file(args.file, args.product_type)
    else:
        entries = generate_entries(args.generate, args.product_type)

    storage = await init_storage(settings)
    try:
        inserted = await seed_pool(storage, entries)
        unused = {t: await storage.count_unused_codes(t) for t in PRODUCT_TYPES}
    finally:
        await close_storage()

    if args.print_codes and args.generate:
        for code, _ in entries:
            print(code)
    print(f"Inserted {inserted}/{len(entries)} codes. Unused: {unused}", file=sys.stderr)
    return 0


def main() -> None:
    setup_logging(get_settings())
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
