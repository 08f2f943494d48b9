"""Object naming for stored test results."""

import re
import time

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")

OBJECT_PREFIX = "test-result-"
OBJECT_SUFFIX = ".json"


def sanitize_test_name(test_name: str) -> str:
    """Replace every character outside [A-Za-z0-9] with '-'."""
    return _UNSAFE_CHARS.sub("-", test_name)


def build_object_name(test_name: str, now_ms: int | None = None) -> str:
    """Build the object name for a record.

    Args:
        test_name: Test name from the record
        now_ms: Epoch milliseconds, defaults to the current time

    Returns:
        Name of the form test-result-<epoch-ms>-<sanitized-test-name>.json

    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{OBJECT_PREFIX}{now_ms}-{sanitize_test_name(test_name)}{OBJECT_SUFFIX}"


def with_collision_suffix(object_name: str, attempt: int) -> str:
    """Append a numeric suffix before the extension (attempt 0 is unchanged)."""
    if attempt == 0:
        return object_name
    stem = object_name.removesuffix(OBJECT_SUFFIX)
    return f"{stem}-{attempt}{OBJECT_SUFFIX}"


def is_result_object(object_name: str) -> bool:
    """Check whether an object name looks like a stored result document."""
    return object_name.endswith(OBJECT_SUFFIX)
