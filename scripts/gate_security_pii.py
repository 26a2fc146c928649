#!/usr/bin/env python3
"""Log hygiene gate for source files.

Fails if:
- print( found in runtime code (src/**)
- A logger call mentions chat content, tokens or raw bodies without redaction

Usage:
    python scripts/gate_security_pii.py [src_dir]
"""

import re
import sys
from pathlib import Path

# Must not appear in a logger call unless a redaction helper is used on that line
SENSITIVE_KEYWORDS = (
    "payload",
    "request.body",
    "body_bytes",
    "request.json",
    "message_text",
    "content",
    "reply_token",
    "access_token",
    "id_token",
    "file_data",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)

REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "hash_identifier",
)


def check_file(filepath: Path) -> list[str]:
    """Return one message per violation in ``filepath``."""
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    errors = []
    for lineno, line in enumerate(content.splitlines(), start=1):
        code_part = line.split("#")[0]
        if not code_part.strip():
            continue

        if PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if LOGGER_CALL_PATTERN.search(code_part):
            lowered = code_part.lower()
            if any(rp in code_part for rp in REDACTION_PATTERNS):
                continue
            for keyword in SENSITIVE_KEYWORDS:
                if keyword in lowered:
                    errors.append(
                        f"{filepath}:{lineno}: logger call with '{keyword}' "
                        "must use redaction (safe_log_context/redact_value)"
                    )

    return errors


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    src_dir = Path(args[0]) if args else Path(__file__).parent.parent / "src"

    if not src_dir.is_dir():
        sys.stderr.write(f"Error: {src_dir} is not a directory\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Log hygiene gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Log hygiene gate passed\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
