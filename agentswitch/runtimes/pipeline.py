"""Shared runtime pipeline helpers.

CLI runtimes print one JSON record per line; this turns such a byte stream
into parsed records and keeps whatever was not JSON for error reporting.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class JSONLineStats:
    records: int = 0
    non_json_lines: list[str] = field(default_factory=list)


async def iter_json_lines(
    byte_stream: AsyncIterator[bytes],
    stats: JSONLineStats,
    *,
    non_json_limit: int = 50,
) -> AsyncIterator[dict]:
    """Parse a JSON-lines byte stream and yield each object record."""

    async for raw_line in byte_stream:
        line = raw_line.decode(errors="replace").strip()
        if not line:
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            if len(stats.non_json_lines) < non_json_limit:
                stats.non_json_lines.append(line)
            continue

        if not isinstance(record, dict):
            continue

        stats.records += 1
        yield record
