"""Seed file parsing, code generation and the seeding CLI arguments."""

from __future__ import annotations

import re

import pytest

from mamba.codes.seed import generate_entries, load_seed_file, parse_args, parse_seed_lines, seed_pool
from mamba.codes.service import generate_access_code
from mamba.storage.memory import MemoryStorage

CODE_PATTERN = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}$")


class TestGenerateAccessCode:
    def test_format(self):
        assert CODE_PATTERN.match(generate_access_code())

    def test_codes_are_unique(self):
        assert len({generate_access_code() for _ in range(200)}) == 200

    def test_generate_entries(self):
        entries = generate_entries(3, "receipts")
        assert len(entries) == 3
        assert all(t == "receipts" for _, t in entries)


class TestParseSeedLines:
    def test_skips_blank_and_comments(self):
        lines = ["# header", "", "CODE-1", "  CODE-2 , receipts  ", "CODE-3,OBYWATEL"]
        assert list(parse_seed_lines(lines)) == [
            ("CODE-1", "obywatel"),
            ("CODE-2", "receipts"),
            ("CODE-3", "obywatel"),
        ]

    def test_default_type(self):
        assert list(parse_seed_lines(["X"], default_type="receipts")) == [("X", "receipts")]

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="line 2"):
            list(parse_seed_lines(["A", "B,premium"]))

    def test_load_seed_file(self, tmp_path):
        path = tmp_path / "codes.txt"
        path.write_text("# pool\nAAA\nBBB,receipts\n", encoding="utf-8")
        assert load_seed_file(path) == [("AAA", "obywatel"), ("BBB", "receipts")]


class TestSeedPool:
    async def test_seeding_is_idempotent(self):
        storage = MemoryStorage()
        assert await seed_pool(storage, [("A", "obywatel"), ("B", "obywatel")]) == 2
        assert await seed_pool(storage, [("A", "obywatel"), ("C", "receipts")]) == 1
        assert await storage.count_unused_codes("obywatel") == 2
        assert await storage.count_unused_codes("receipts") == 1


class TestParseArgs:
    def test_file_source(self):
        args = parse_args(["--file", "codes.txt"])
        assert args.file == "codes.txt"
        assert args.product_type == "obywatel"

    def test_generate_source(self):
        args = parse_args(["--generate", "5", "--product-type", "receipts", "--print"])
        assert args.generate == 5
        assert args.product_type == "receipts"
        assert args.print_codes is True

    def test_sources_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["--file", "a.txt", "--generate", "3"])

    def test_source_required(self):
        with pytest.raises(SystemExit):
            parse_args([])
