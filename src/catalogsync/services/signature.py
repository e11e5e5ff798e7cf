"""Content signatures for change detection.

A signature is the SHA-256 digest of a canonical JSON encoding of a table's
structural fields. Key order is fixed and columns keep the order they were
fetched in, so the digest only moves when the structure does.
"""

import hashlib
import json
from typing import Any

from catalogsync.models.table import TableDescription


def canonical_payload(table: TableDescription) -> dict[str, Any]:
    """Build the ordered payload that the signature is computed over.

    Missing comments normalize to "" so that null and empty compare equal.
    """
    return {
        "database": table.database,
        "schemaName": table.schema_name,
        "name": table.name,
        "comment": table.comment or "",
        "columns": [
            {
                "name": column.name,
                "dataType": column.data_type,
                "isNullable": column.is_nullable,
                "comment": column.comment or "",
                "ordinalPosition": column.ordinal_position,
            }
            for column in table.columns
        ],
    }


def compute_signature(table: TableDescription) -> str:
    """Return the lowercase hex SHA-256 signature of a table's structure."""
    encoded = json.dumps(
        canonical_payload(table),
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
