"""Tests for the log payload sanitizer."""

import hashlib
import json
import random

import pytest

from logstream.capture.sanitizer import (
    CIRCULAR,
    OMITTED_KEYS,
    Sanitizer,
    SanitizerPolicy,
    is_data_uri_image,
    looks_like_base64,
    normalize_key,
    safe_stringify_message,
    sanitize,
    to_encodable,
)


def digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


@pytest.fixture
def sanitizer():
    return Sanitizer()


class TestHeuristics:
    """Test the string classification helpers."""

    def test_normalize_key(self):
        assert normalize_key("Mask_Image") == "maskimage"
        assert normalize_key("reference-image") == "referenceimage"
        assert normalize_key("Thought Signature") == "thoughtsignature"

    def test_looks_like_base64(self):
        assert looks_like_base64("QUJD" * 60)
        assert not looks_like_base64("QUJD" * 10)
        assert not looks_like_base64("QUJD " * 60)
        assert not looks_like_base64("!" * 300)

    def test_is_data_uri_image(self):
        assert is_data_uri_image("data:image/png;base64,AAAA")
        assert not is_data_uri_image("data:text/plain;base64,AAAA")
        assert not is_data_uri_image("data:image/svg+xml,<svg/>")


class TestStrings:
    """Test string redaction and truncation."""

    def test_short_string_unchanged(self, sanitizer):
        assert sanitizer.sanitize("hello world") == "hello world"

    def test_data_uri_image_redacted(self, sanitizer):
        payload = "A" * 5000
        result = sanitizer.sanitize("data:image/png;base64," + payload)

        assert result == (
            f"data:image/png;base64,[REDACTED_BASE64 len=5000 sha256={digest(payload)}]"
        )
        assert len(result) <= 250

    def test_bare_base64_redacted_with_exact_length(self, sanitizer):
        payload = "QUJD" * 100
        assert sanitizer.sanitize(payload) == (
            f"[REDACTED_BASE64 len=400 sha256={digest(payload)}]"
        )

    def test_redaction_digest_is_stable(self, sanitizer):
        payload = "QUJD" * 100
        assert sanitizer.sanitize(payload) == sanitizer.sanitize(payload)
        assert sanitizer.sanitize(payload) != sanitizer.sanitize("QUJE" * 100)

    def test_long_string_truncated(self, sanitizer):
        text = "hello world " * 500
        result = sanitizer.sanitize(text)

        assert result.startswith(text[:200])
        assert f"…[TRUNCATED len={len(text)} sha256={digest(text)}]" in result
        assert len(result) < 300

    def test_string_at_limit_not_truncated(self, sanitizer):
        text = "a b " * 1000
        assert len(text) == 4000
        assert sanitizer.sanitize(text) == text

    def test_second_pass_leaves_placeholders_alone(self, sanitizer):
        values = [
            "data:image/jpeg;base64," + "B" * 3000,
            "QUJD" * 100,
            "hello world " * 500,
        ]
        for value in values:
            once = sanitizer.sanitize(value)
            assert sanitizer.sanitize(once) == once


class TestScalars:
    """Test scalars, binary buffers and exceptions."""

    def test_json_scalars_pass_through(self, sanitizer):
        assert sanitizer.sanitize(None) is None
        assert sanitizer.sanitize(True) is True
        assert sanitizer.sanitize(42) == 42
        assert sanitizer.sanitize(1.5) == 1.5

    def test_non_finite_floats_become_strings(self, sanitizer):
        assert sanitizer.sanitize(float("nan")) == "nan"
        assert sanitizer.sanitize(float("inf")) == "inf"
        assert sanitizer.sanitize(float("-inf")) == "-inf"

    def test_binary_buffers_reduced_to_length(self, sanitizer):
        assert sanitizer.sanitize(b"abc") == "[bytes byteLength=3]"
        assert sanitizer.sanitize(bytearray(4)) == "[bytearray byteLength=4]"
        assert sanitizer.sanitize(memoryview(b"ab")) == "[memoryview byteLength=2]"

    def test_exception_without_traceback(self, sanitizer):
        assert sanitizer.sanitize(ValueError("boom")) == "ValueError: boom"
        assert sanitizer.sanitize(KeyError()) == "KeyError"

    def test_exception_with_traceback(self, sanitizer):
        try:
            raise RuntimeError("failed hard")
        except RuntimeError as e:
            result = sanitizer.sanitize(e)

        assert result.startswith("RuntimeError: failed hard\nTraceback")
        assert "test_exception_with_traceback" in result

    def test_deep_traceback_keeps_error_in_head(self, sanitizer):
        def descend(depth: int) -> None:
            if depth == 0:
                raise ValueError("disk quota exceeded")
            ascend(depth - 1)

        def ascend(depth: int) -> None:
            descend(depth)

        try:
            descend(40)
        except ValueError as e:
            result = sanitizer.sanitize(e)

        assert "[TRUNCATED len=" in result
        assert result.startswith("ValueError: disk quota exceeded\n")

    def test_unserializable_object(self, sanitizer):
        class Broken:
            def __str__(self):
                raise RuntimeError("no")

        assert sanitizer.sanitize(Broken()) == "[Unserializable Broken]"

    def test_other_objects_use_str(self, sanitizer):
        class Point:
            def __str__(self):
                return "Point(1, 2)"

        assert sanitizer.sanitize(Point()) == "Point(1, 2)"


class TestContainers:
    """Test arrays, objects, depth and cycles."""

    def test_array_capped_with_summary(self, sanitizer):
        result = sanitizer.sanitize(list(range(100)))

        assert len(result) == 80
        assert result[:79] == list(range(79))
        assert result[-1] == "[...omitted 21 items]"

    def test_array_at_limit_kept_whole(self, sanitizer):
        assert sanitizer.sanitize(list(range(80))) == list(range(80))

    def test_array_cap_is_idempotent(self, sanitizer):
        once = sanitizer.sanitize(list(range(500)))
        assert sanitizer.sanitize(once) == once

    def test_tuples_and_sets_become_lists(self, sanitizer):
        assert sanitizer.sanitize((1, 2)) == [1, 2]
        assert sanitizer.sanitize({3}) == [3]

    def test_object_capped_with_omitted_count(self, sanitizer):
        value = {f"k{i}": i for i in range(150)}
        result = sanitizer.sanitize(value)

        assert len(result) == 120
        assert result[OMITTED_KEYS] == 31
        assert result["k0"] == 0
        assert "k149" not in result

    def test_object_cap_is_idempotent(self, sanitizer):
        once = sanitizer.sanitize({f"k{i}": i for i in range(300)})
        assert sanitizer.sanitize(once) == once

    def test_non_string_keys_stringified(self, sanitizer):
        assert sanitizer.sanitize({1: "a", None: "b"}) == {"1": "a", "None": "b"}

    def test_depth_bound(self, sanitizer):
        nested: dict = {"leaf": 1}
        for _ in range(10):
            nested = {"child": nested}

        result = sanitizer.sanitize(nested)
        for _ in range(6):
            result = result["child"]
        assert result == "[Object depth>6]"

    def test_array_depth_bound(self, sanitizer):
        nested: list = [1]
        for _ in range(10):
            nested = [nested]

        result = sanitizer.sanitize(nested)
        for _ in range(6):
            result = result[0]
        assert result == "[Array depth>6]"

    def test_cyclic_object(self, sanitizer):
        a: dict = {"name": "a"}
        a["self"] = a

        assert sanitizer.sanitize(a) == {"name": "a", "self": CIRCULAR}

    def test_cyclic_list(self, sanitizer):
        items: list = [1]
        items.append(items)

        assert sanitizer.sanitize(items) == [1, CIRCULAR]

    def test_nested_strings_sanitized(self, sanitizer):
        payload = "QUJD" * 100
        result = sanitizer.sanitize({"prompt": {"parts": [payload, "hi"]}})

        assert result["prompt"]["parts"][0].startswith("[REDACTED_BASE64 len=400")
        assert result["prompt"]["parts"][1] == "hi"


class TestSensitiveKeys:
    """Test redaction by key name."""

    def test_exact_data_key_redacted(self, sanitizer):
        assert sanitizer.sanitize({"data": "short"}) == {
            "data": f"[REDACTED_BASE64 len=5 sha256={digest('short')}]"
        }

    def test_substring_keys_redacted_without_descending(self, sanitizer):
        result = sanitizer.sanitize(
            {"inline_data": {"mime_type": "image/png", "bytes": "abc"}}
        )
        assert result["inline_data"].startswith("[REDACTED_BASE64 len=")

    def test_key_matching_ignores_case_and_separators(self, sanitizer):
        result = sanitizer.sanitize(
            {"thoughtSignature": "abc", "Mask Image": b"\x00" * 10, "image-bytes": "x"}
        )
        assert result["thoughtSignature"].startswith("[REDACTED_BASE64 len=3")
        assert result["Mask Image"] == "[bytes byteLength=10]"
        assert result["image-bytes"].startswith("[REDACTED_BASE64 len=1")

    def test_data_is_not_matched_as_substring(self, sanitizer):
        assert sanitizer.sanitize({"metadata": "x", "dataset": "y"}) == {
            "metadata": "x",
            "dataset": "y",
        }

    def test_scalars_under_sensitive_keys_kept(self, sanitizer):
        assert sanitizer.sanitize({"data": 5, "base64": None}) == {
            "data": 5,
            "base64": None,
        }

    def test_data_uri_under_sensitive_key_keeps_prefix(self, sanitizer):
        result = sanitizer.sanitize({"data": "data:image/png;base64," + "A" * 500})
        assert result["data"].startswith("data:image/png;base64,[REDACTED_BASE64 len=500")

    def test_custom_policy_terms(self):
        sanitizer = Sanitizer(
            SanitizerPolicy(sensitive_key_exact=frozenset(), sensitive_key_substrings=("secret",))
        )
        result = sanitizer.sanitize({"data": "keep", "client_secret": "hide"})

        assert result["data"] == "keep"
        assert result["client_secret"].startswith("[REDACTED_BASE64 len=4")


class TestPolicyAndHelpers:
    """Test custom limits and module-level helpers."""

    def test_custom_array_limit(self):
        sanitizer = Sanitizer(SanitizerPolicy(max_array_items=3))
        assert sanitizer.sanitize([1, 2, 3, 4, 5]) == [1, 2, "[...omitted 3 items]"]

    def test_custom_string_limit(self):
        sanitizer = Sanitizer(SanitizerPolicy(max_string_length=10, truncated_head_length=4))
        result = sanitizer.sanitize("hello there world")
        assert result.startswith("hell…[TRUNCATED len=17")

    def test_policy_from_config(self, test_config):
        policy = SanitizerPolicy.from_config(test_config)
        assert policy.max_string_length == test_config.max_string_length
        assert "data" in policy.sensitive_key_exact
        assert "inlinedata" in policy.sensitive_key_substrings

    def test_stringify_message(self, sanitizer):
        assert sanitizer.stringify_message("plain") == "plain"
        assert sanitizer.stringify_message({"a": 1}) == '{"a": 1}'
        assert sanitizer.stringify_message(["x", 2]) == '["x", 2]'
        assert sanitizer.stringify_message(None) == "null"

    def test_module_level_helpers(self):
        assert sanitize({"data": 1}) == {"data": 1}
        assert safe_stringify_message("QUJD" * 100).startswith("[REDACTED_BASE64 len=400")


class TestBounds:
    """Test that output size does not grow with input size."""

    def test_output_size_is_bounded(self, sanitizer):
        nested = {f"k{i}": ["x y " * 20_000] * 10_000 for i in range(3)}

        output = json.dumps(sanitizer.sanitize(nested))

        assert len(output) < 3 * 80 * 270
        assert "len=80000 " in output


def huge_string(size: int) -> str:
    return "lorem ipsum " * size


def huge_array(size: int) -> list:
    return list(range(size))


def wide_mapping(size: int) -> dict:
    return {f"field{i}": i for i in range(size)}


def deep_nesting(size: int) -> dict:
    nested: dict = {"leaf": True}
    for i in range(size):
        nested = {"level": i, "child": nested}
    return nested


def repeated_long_strings(size: int) -> list:
    return ["lorem ipsum " * size] * 100


def base64_blobs(size: int) -> dict:
    return {"attachments": ["QUJD" * size] * 5, "preview": "data:image/png;base64," + "A" * size}


def cyclic_graph(seed: int) -> dict:
    rng = random.Random(seed)
    nodes = [{"id": i, "label": "node " * rng.randint(1, 2000)} for i in range(60)]
    for node in nodes:
        node["links"] = rng.sample(nodes, rng.randint(1, 6))
        node["parent"] = rng.choice(nodes)
    nodes[0]["self"] = nodes[0]
    return nodes[0]


def undecodable_text(size: int) -> dict:
    bad = b"\xfe\xff".decode("utf-8", "surrogateescape")
    return {bad: [bad] * 3, "path": f"/tmp/{bad}/" * size}


SCALING_BUILDERS = [
    huge_string,
    huge_array,
    wide_mapping,
    deep_nesting,
    repeated_long_strings,
    base64_blobs,
]


class TestGeneratedValues:
    """Test invariants over generated cyclic, huge and undecodable values."""

    @pytest.mark.parametrize("build", SCALING_BUILDERS, ids=lambda b: b.__name__)
    def test_output_does_not_grow_with_input(self, sanitizer, build):
        small = json.dumps(sanitizer.sanitize(build(1_000)))
        large = json.dumps(sanitizer.sanitize(build(100_000)))

        # Only the digits of lengths and omitted counts may differ
        assert len(large) <= len(small) + 300

    @pytest.mark.parametrize(
        "build", [*SCALING_BUILDERS, undecodable_text], ids=lambda b: b.__name__
    )
    @pytest.mark.parametrize("size", [0, 7, 5_000])
    def test_output_is_encodable_and_stable(self, sanitizer, build, size):
        once = sanitizer.sanitize(build(size))

        json.dumps(once, ensure_ascii=False).encode("utf-8")
        assert sanitizer.sanitize(once) == once

    @pytest.mark.parametrize("seed", range(8))
    def test_cyclic_graphs_are_cut(self, sanitizer, seed):
        once = sanitizer.sanitize(cyclic_graph(seed))
        output = json.dumps(once)

        assert CIRCULAR in output
        assert len(output) < 300_000
        assert sanitizer.sanitize(once) == once

    def test_undecodable_text_is_escaped(self, sanitizer):
        bad = b"\xff".decode("utf-8", "surrogateescape")

        assert sanitizer.sanitize(f"file {bad}") == "file \\udcff"
        assert sanitizer.sanitize({bad: 1}) == {"\\udcff": 1}
        assert sanitizer.stringify_message([bad]) == '["\\\\udcff"]'
        assert to_encodable("plain") == "plain"
