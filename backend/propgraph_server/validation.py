"""
Table name validation.

Table names are the only values interpolated into primary store statements;
every other value is bound as a statement parameter. Accepted forms are
table, schema.table and catalog.schema.table, with alphanumerics, underscores
and backticks in each part.
"""

from __future__ import annotations

import re
from typing import Optional

from .errors import InvalidTableNameError

TABLE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_`]+(\.[a-zA-Z0-9_`]+){0,2}$")


def validate_table_name(table_name: Optional[str], default: str) -> str:
    """Return the trimmed table name, or default when none was given.

    Raises:
        InvalidTableNameError: If the name does not match TABLE_NAME_PATTERN
    """
    if not table_name:
        return default

    trimmed = table_name.strip()
    if not TABLE_NAME_PATTERN.fullmatch(trimmed):
        raise InvalidTableNameError(
            "Invalid table name format. Use: catalog.schema.table or schema.table or table"
        )
    return trimmed
