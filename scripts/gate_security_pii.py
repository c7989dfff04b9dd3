#!/usr/bin/env python3
"""Security & PII gate for runtime code under src/.

Fails if:
- print() is called in runtime code
- a direct logger.<level>() call passes guest data (customer_name, notes,
  guest_name) or a request body without going through safe_log_context

log_event() always redacts, so it is never flagged.

Usage:
    python scripts/gate_security_pii.py [SRC_DIR]
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

SENSITIVE_NAMES = (
    "customer_name",
    "guest_name",
    "notes",
    "body",
    "payload",
)

LOGGER_METHODS = {"debug", "info", "warning", "error", "critical", "exception"}

REDACTION_CALLS = {"safe_log_context", "redact_value", "redact_string"}


def _call_name(node: ast.Call) -> str | None:
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOGGER_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _mentions_sensitive(node: ast.AST) -> str | None:
    for child in ast.walk(node):
        if isinstance(child, ast.Name) and child.id in SENSITIVE_NAMES:
            return child.id
        if isinstance(child, ast.Attribute) and child.attr in SENSITIVE_NAMES:
            return child.attr
    return None


def _is_redacted(node: ast.Call) -> bool:
    return any(
        isinstance(child, ast.Call) and _call_name(child) in REDACTION_CALLS
        for child in ast.walk(node)
    )


def check_source(source: str, filename: str = "<string>") -> list[str]:
    """Return one error message per violation in source."""
    errors = []
    tree = ast.parse(source, filename=filename)

    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue

        if isinstance(node.func, ast.Name) and node.func.id == "print":
            errors.append(f"{filename}:{node.lineno}: print() not allowed in runtime code")
            continue

        if _is_logger_call(node) and not _is_redacted(node):
            name = _mentions_sensitive(node)
            if name is not None:
                errors.append(
                    f"{filename}:{node.lineno}: logger call with '{name}' "
                    "must use safe_log_context or log_event"
                )

    return errors


def check_file(filepath: Path) -> list[str]:
    try:
        source = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []
    return check_source(source, str(filepath))


def main(argv: list[str]) -> int:
    src_dir = Path(argv[0]) if argv else Path(__file__).parent.parent / "src"
    if not src_dir.exists():
        sys.stderr.write(f"Error: {src_dir} not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("PII gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("PII gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
