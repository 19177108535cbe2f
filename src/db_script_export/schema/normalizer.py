"""Constraint-statement cleanup for generated table scripts.

Table scripts commonly add a constraint and then flip its enforcement in a
later statement:

    ALTER TABLE [dbo].[Orders] WITH NOCHECK ADD CONSTRAINT [FK_Orders] ...
    ALTER TABLE [dbo].[Orders] CHECK CONSTRAINT [FK_Orders]

``normalize_constraint_statements`` folds the final CHECK/NOCHECK state into
the ADD statement and drops the follow-up statements.

Usage:
    statements = normalize_constraint_statements(statements)
    script_text = clean_statements(statements)
"""

import re

BATCH_SEPARATOR = "GO"

ADD_CONSTRAINT_RE = re.compile(
    r"ALTER\sTABLE\s+(?P<table>[^\s]+)\s+WITH\s+(?P<mode>CHECK|NOCHECK)"
    r"\s+ADD\s+CONSTRAINT\s+(?P<constraint>\[[^\]]+\])"
)
MODIFY_CONSTRAINT_RE = re.compile(
    r"ALTER\sTABLE\s+(?P<table>[^\s]+)\s+(?P<mode>CHECK|NOCHECK)"
    r"\sCONSTRAINT\s+(?P<constraint>\[[^\]]+\])"
)

_WHITESPACE = " \t\r\n"


def normalize_constraint_statements(statements: list[str]) -> list[str]:
    """Collapse redundant constraint-state statements.

    For every ADD CONSTRAINT statement, all CHECK/NOCHECK CONSTRAINT
    statements on the same table and constraint are dropped and the last
    one (in list order) decides the mode written into the ADD statement.
    Everything else keeps its relative order. Applying this twice gives
    the same result as applying it once.

    Args:
        statements: Statements of one object's script

    Returns:
        New list of statements
    """
    modifies: list[tuple[int, re.Match[str]]] = []
    for index, statement in enumerate(statements):
        if ADD_CONSTRAINT_RE.search(statement):
            continue
        match = MODIFY_CONSTRAINT_RE.search(statement)
        if match:
            modifies.append((index, match))

    redundant: set[int] = set()
    rewritten: dict[int, str] = {}
    for index, statement in enumerate(statements):
        add = ADD_CONSTRAINT_RE.search(statement)
        if not add:
            continue

        mode = add.group("mode")
        for mod_index, mod in modifies:
            if mod.group("table") == add.group("table") and mod.group("constraint") == add.group(
                "constraint"
            ):
                mode = mod.group("mode")
                redundant.add(mod_index)

        start, end = add.span("mode")
        rewritten[index] = statement[:start] + mode + statement[end:]

    return [
        rewritten.get(index, statement)
        for index, statement in enumerate(statements)
        if index not in redundant
    ]


def clean_statements(statements: list[str]) -> str:
    """Join statements into script text, one ``GO`` batch separator after each.

    Surrounding spaces, tabs and line breaks are trimmed from every
    statement. An empty list gives an empty string.
    """
    parts = []
    for statement in statements:
        parts.append(statement.strip(_WHITESPACE))
        parts.append("\n")
        parts.append(BATCH_SEPARATOR)
        parts.append("\n")
    return "".join(parts)
