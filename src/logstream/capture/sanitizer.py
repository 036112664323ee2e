"""
Value sanitizer for captured log payloads.

Turns arbitrary in-memory values into JSON-safe, size-bounded structures:
image data URIs and bare base64 blobs are replaced with a length plus a short
sha256 digest, oversize strings are truncated, containers are capped in size
and depth, cycles are cut and binary buffers are reduced to their length.
``sanitize`` never raises.
"""

import hashlib
import json
import math
import re
import traceback
from collections import deque
from collections.abc import Iterable, Mapping, Sized
from dataclasses import dataclass, field
from itertools import islice
from typing import Any

REDACTED_TAG = "REDACTED_BASE64"
TRUNCATED_TAG = "TRUNCATED"
CIRCULAR = "[Circular]"
OMITTED_KEYS = "__omittedKeys"

_BASE64_MIN_LENGTH = 200
_BASE64_CHARS = re.compile(r"[A-Za-z0-9+/=_-]+")
_WHITESPACE = re.compile(r"\s")
_DATA_URI_MARKER = ";base64,"
# Lone surrogates (e.g. from surrogateescape decoding) cannot be encoded as UTF-8.
_SURROGATES = re.compile("[\ud800-\udfff]")

# Placeholders this module emits; they are left alone on a second pass.
_PLACEHOLDER = re.compile(
    rf"\[(?:{REDACTED_TAG} len=\d+ sha256=[0-9a-f]+"
    r"|\w+ byteLength=\d+"
    r"|Circular"
    r"|(?:Array|Object) depth>\d+)\]"
)

_SEQUENCE_TYPES = (list, tuple, set, frozenset, deque)
_BINARY_TYPES = (bytes, bytearray, memoryview)


@dataclass(frozen=True)
class SanitizerPolicy:
    """Size limits and sensitive key heuristics applied by a Sanitizer."""

    max_string_length: int = 4000
    truncated_head_length: int = 200
    max_depth: int = 6
    max_array_items: int = 80
    max_object_keys: int = 120
    digest_hex_chars: int = 12
    sensitive_key_exact: frozenset[str] = frozenset({"data"})
    sensitive_key_substrings: tuple[str, ...] = (
        "base64",
        "inlinedata",
        "maskimage",
        "referenceimage",
        "imagebytes",
        "thoughtsignature",
    )

    @classmethod
    def from_config(cls, config: Any) -> "SanitizerPolicy":
        """Build a policy from a LogStreamConfig."""
        return cls(
            max_string_length=config.max_string_length,
            truncated_head_length=config.truncated_head_length,
            max_depth=config.max_depth,
            max_array_items=config.max_array_items,
            max_object_keys=config.max_object_keys,
            digest_hex_chars=config.digest_hex_chars,
            sensitive_key_exact=frozenset(
                normalize_key(term) for term in config.sensitive_key_exact
            ),
            sensitive_key_substrings=tuple(
                normalize_key(term) for term in config.sensitive_key_substrings
            ),
        )


def normalize_key(key: str) -> str:
    """Lower-case a key and drop separators: ``Mask_Image`` -> ``maskimage``."""
    return re.sub(r"[\s_-]", "", key.lower())


def looks_like_base64(text: str) -> bool:
    """Heuristic for a bare base64 payload: long, no whitespace, base64 alphabet."""
    if len(text) < _BASE64_MIN_LENGTH:
        return False
    if _WHITESPACE.search(text):
        return False
    return _BASE64_CHARS.fullmatch(text) is not None


def is_data_uri_image(text: str) -> bool:
    return text.startswith("data:image/") and _DATA_URI_MARKER in text


def to_encodable(text: str) -> str:
    """Replace code points UTF-8 cannot encode with backslash escapes."""
    if _SURROGATES.search(text) is None:
        return text
    return text.encode("utf-8", errors="backslashreplace").decode("utf-8")


def describe_exception(exc: BaseException) -> str:
    """Render an exception with its type and message first, then the traceback."""
    summary = "".join(traceback.format_exception_only(exc)).rstrip()
    if exc.__traceback__ is None:
        return summary
    frames = "".join(traceback.format_tb(exc.__traceback__)).rstrip()
    return f"{summary}\nTraceback (most recent call last):\n{frames}"


@dataclass
class _Walk:
    """State of one top-level sanitize call."""

    seen: set[int] = field(default_factory=set)


class Sanitizer:
    """Applies a SanitizerPolicy to arbitrary values."""

    def __init__(self, policy: SanitizerPolicy | None = None):
        self.policy = policy or SanitizerPolicy()

    def digest(self, text: str) -> str:
        """Short sha256 prefix used to correlate redacted payloads."""
        try:
            raw = text.encode("utf-8", errors="surrogatepass")
            return hashlib.sha256(raw).hexdigest()[: self.policy.digest_hex_chars]
        except Exception:
            return "unknown"

    def redact_base64(self, text: str) -> str:
        payload = text.strip()
        if _PLACEHOLDER.fullmatch(payload):
            return payload
        return f"[{REDACTED_TAG} len={len(payload)} sha256={self.digest(payload)}]"

    def redact_data_uri(self, text: str) -> str:
        stripped = text.strip()
        index = stripped.find(_DATA_URI_MARKER)
        if index == -1:
            return self.redact_base64(stripped)
        split = index + len(_DATA_URI_MARKER)
        return stripped[:split] + self.redact_base64(stripped[split:])

    def truncate(self, text: str) -> str:
        limit = self.policy.max_string_length
        if len(text) <= limit:
            return text
        head = text[: self.policy.truncated_head_length]
        return f"{head}…[{TRUNCATED_TAG} len={len(text)} sha256={self.digest(text)}]"

    def sanitize_string(self, text: str) -> str:
        text = to_encodable(text)
        stripped = text.strip()
        if is_data_uri_image(stripped):
            return self.redact_data_uri(stripped)
        if looks_like_base64(stripped):
            return self.redact_base64(stripped)
        return self.truncate(text)

    def is_sensitive_key(self, key: str) -> bool:
        normalized = normalize_key(key)
        if normalized in self.policy.sensitive_key_exact:
            return True
        return any(term in normalized for term in self.policy.sensitive_key_substrings)

    def redact_sensitive_value(self, value: Any) -> Any:
        """Redact a value found under a sensitive key without descending into it."""
        if value is None or isinstance(value, (bool, int, float)):
            return self.sanitize(value)
        if isinstance(value, _BINARY_TYPES):
            return self._binary_tag(value)
        if isinstance(value, str):
            stripped = to_encodable(value).strip()
            if is_data_uri_image(stripped):
                return self.redact_data_uri(stripped)
            return self.redact_base64(stripped)
        try:
            text = repr(value)
        except Exception:
            return f"[Unserializable {type(value).__name__}]"
        return self.redact_base64(text)

    def sanitize(self, value: Any, depth: int = 0) -> Any:
        """Return a safe, bounded representation of ``value``. Never raises."""
        try:
            return self._sanitize(value, depth, _Walk())
        except Exception:
            return f"[Unserializable {type(value).__name__}]"

    def _sanitize(self, value: Any, depth: int, walk: _Walk) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else str(value)
        if isinstance(value, str):
            return self.sanitize_string(value)
        if isinstance(value, BaseException):
            return self.sanitize_string(describe_exception(value))
        if isinstance(value, _BINARY_TYPES):
            return self._binary_tag(value)

        if isinstance(value, Mapping):
            if id(value) in walk.seen:
                return CIRCULAR
            walk.seen.add(id(value))
            if depth >= self.policy.max_depth:
                return f"[Object depth>{self.policy.max_depth}]"
            return self._sanitize_mapping(value, depth, walk)

        if isinstance(value, _SEQUENCE_TYPES):
            if id(value) in walk.seen:
                return CIRCULAR
            walk.seen.add(id(value))
            if depth >= self.policy.max_depth:
                return f"[Array depth>{self.policy.max_depth}]"
            return self._sanitize_sequence(value, depth, walk)

        try:
            text = str(value)
        except Exception:
            return f"[Unserializable {type(value).__name__}]"
        return self.sanitize_string(text)

    def _sanitize_sequence(
        self, items: Sized | Iterable[Any], depth: int, walk: _Walk
    ) -> list[Any]:
        # The summary entry counts toward the limit so a second pass keeps it
        limit = self.policy.max_array_items
        total = len(items)
        keep = limit if total <= limit else limit - 1
        out = [self._sanitize(item, depth + 1, walk) for item in islice(items, keep)]
        if total > keep:
            out.append(f"[...omitted {total - keep} items]")
        return out

    def _sanitize_mapping(
        self, mapping: Mapping[Any, Any], depth: int, walk: _Walk
    ) -> dict[str, Any]:
        limit = self.policy.max_object_keys
        total = len(mapping)

        # Omissions counted by an earlier pass are carried into the new total
        carried = mapping.get(OMITTED_KEYS) if OMITTED_KEYS in mapping else None
        has_carried = isinstance(carried, int) and not isinstance(carried, bool)
        if has_carried:
            total -= 1

        budget = limit - 1 if (has_carried or total > limit) else limit
        entries = (
            (k, v) for k, v in mapping.items() if not (has_carried and k == OMITTED_KEYS)
        )

        out: dict[str, Any] = {}
        for raw_key, item in islice(entries, budget):
            key = raw_key if isinstance(raw_key, str) else str(raw_key)
            key = self.truncate(to_encodable(key))
            if self.is_sensitive_key(key):
                out[key] = self.redact_sensitive_value(item)
            else:
                out[key] = self._sanitize(item, depth + 1, walk)

        omitted = max(0, total - budget)
        if omitted or has_carried:
            out[OMITTED_KEYS] = omitted + (carried if has_carried else 0)
        return out

    def _binary_tag(self, value: bytes | bytearray | memoryview) -> str:
        length = value.nbytes if isinstance(value, memoryview) else len(value)
        return f"[{type(value).__name__} byteLength={length}]"

    def stringify_message(self, message: Any) -> str:
        """Sanitize a log message and render it as a bounded string."""
        sanitized = self.sanitize(message)
        if isinstance(sanitized, str):
            return sanitized
        try:
            text = json.dumps(sanitized, ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(sanitized)
        return self.truncate(text)


default_sanitizer = Sanitizer()


def sanitize(value: Any, depth: int = 0) -> Any:
    """Sanitize ``value`` with the default policy."""
    return default_sanitizer.sanitize(value, depth)


def safe_stringify_message(message: Any) -> str:
    """Sanitize ``message`` with the default policy and render it as a string."""
    return default_sanitizer.stringify_message(message)
