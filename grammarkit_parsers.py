# grammarkit_parsers.py
# Parsers managed by grammarkit: install them with `grammarkit install stable`
from __future__ import annotations

from grammarkit.dsl import parser, registry


def parsers():
    return registry(
        # C is small and has no scanner, a good smoke test
        parser(
            "c",
            "https://github.com/tree-sitter/tree-sitter-c",
            tier="stable",
        ),
        parser(
            "lua",
            "https://github.com/MunifTanjim/tree-sitter-lua",
            files=["src/parser.c", "src/scanner.c"],
            tier="stable",
        ),
        parser(
            "python",
            "https://github.com/tree-sitter/tree-sitter-python",
            files=["src/parser.c", "src/scanner.c"],
            tier="stable",
        ),
        # two grammars in one repo, each built from its own subdirectory
        parser(
            "typescript",
            "https://github.com/tree-sitter/tree-sitter-typescript",
            files=["src/parser.c", "src/scanner.c"],
            location="typescript",
            requires_generate_from_grammar=True,
            generate_requires_npm=True,
            tier="community",
        ),
        parser(
            "tsx",
            "https://github.com/tree-sitter/tree-sitter-typescript",
            files=["src/parser.c", "src/scanner.c"],
            location="tsx",
            requires_generate_from_grammar=True,
            generate_requires_npm=True,
            tier="community",
        ),
        # pinned explicitly, wins over lockfile.json
        parser(
            "json",
            "https://github.com/tree-sitter/tree-sitter-json",
            revision="94f5c527b2965465956c2000ed6134dd24daf2a7",
        ),
    )


IGNORED = ["tsx"]

QUERIES_DIR = "queries"
