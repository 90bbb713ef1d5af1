# src/scout_sync/supervisor/schema.py

from __future__ import annotations

import re
from dataclasses import dataclass

EXPECTED_SCHEMA_VERSION = "2.0.0"
MIN_SCHEMA_VERSION = "2.0.0"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, slots=True)
class SchemaCompatibility:
    compatible: bool
    message: str
    action: str | None = None


def parse_version(version: str | None) -> tuple[int, int, int] | None:
    if not version:
        return None
    m = _VERSION_RE.match(version.strip())
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def is_schema_compatible(
    database_version: str | None,
    *,
    expected: str = EXPECTED_SCHEMA_VERSION,
    minimum: str = MIN_SCHEMA_VERSION,
) -> bool:
    """Compatible when >= minimum and on the same major version as expected."""
    db = parse_version(database_version)
    exp = parse_version(expected)
    low = parse_version(minimum)
    if db is None or exp is None or low is None:
        return False
    return db >= low and db[0] == exp[0]


def schema_compatibility(
    database_version: str | None,
    *,
    expected: str = EXPECTED_SCHEMA_VERSION,
    minimum: str = MIN_SCHEMA_VERSION,
) -> SchemaCompatibility:
    """Operator-facing verdict with a suggested action when incompatible."""
    if not database_version:
        return SchemaCompatibility(
            False,
            "Cannot determine database schema version",
            "Check database connection and ensure app_metadata table exists",
        )

    if is_schema_compatible(database_version, expected=expected, minimum=minimum):
        return SchemaCompatibility(True, f"Schema version {database_version} is compatible")

    db = parse_version(database_version)
    exp = parse_version(expected)
    low = parse_version(minimum)

    if db is None:
        return SchemaCompatibility(
            False,
            f"Unrecognized schema version format: {database_version!r}",
            "Contact app maintainers",
        )

    if low is not None and db < low:
        return SchemaCompatibility(
            False,
            f"Database schema is too old (v{database_version}). Expected v{expected} or newer.",
            "Run database migrations to update schema",
        )

    if exp is not None and db[0] > exp[0]:
        return SchemaCompatibility(
            False,
            f"Database schema is too new (v{database_version}). This app expects v{expected}.",
            "Update the app to the latest version",
        )

    return SchemaCompatibility(
        False,
        f"Schema version mismatch. Database: v{database_version}, Expected: v{expected}",
        "Contact app maintainers or run migrations",
    )
