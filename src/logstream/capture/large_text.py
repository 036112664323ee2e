"""Chunked logging of large diagnostic text."""

import math
from collections.abc import Callable
from typing import Any

# Chunks stay below the sanitizer's 4000-character truncation bound.
MIN_CHUNK_SIZE = 500
MAX_CHUNK_SIZE = 3600
MIN_MAX_LEN = 1000
MAX_MAX_LEN = 200_000


def log_large_text(
    log: Callable[[Any], Any],
    header: str,
    text: Any,
    chunk_size: int = 3200,
    max_len: int = 120_000,
) -> int:
    """Emit ``text`` as a header line followed by numbered chunks.

    Long prompts or model responses would otherwise be cut down to a short
    head by the sanitizer. ``max_len`` caps the total so a runaway value
    cannot flood the history. Returns the number of chunks emitted.
    """
    chunk_size = max(MIN_CHUNK_SIZE, min(MAX_CHUNK_SIZE, chunk_size))
    max_len = max(MIN_MAX_LEN, min(MAX_MAX_LEN, max_len))

    raw = "" if text is None else str(text)
    truncated = len(raw) > max_len
    body = raw[:max_len] if truncated else raw

    total = max(1, math.ceil(len(body) / chunk_size))
    summary = f"{header} (len={len(raw)}, chunks={total}"
    if truncated:
        summary += f", truncated_to={max_len}"
    log(summary + ")")

    for index in range(total):
        chunk = body[index * chunk_size : (index + 1) * chunk_size]
        log(f"{header} [{index + 1}/{total}]\n{chunk}")
    return total
