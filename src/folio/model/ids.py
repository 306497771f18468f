# ABOUTME: Identifier allocation for manifest entries and book identifiers.
# ABOUTME: Sequence-based IDs keep rebuilds of the same description reproducible.

import re
import uuid
from collections import defaultdict

# Characters that are invalid in file names on at least one common platform.
_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_FILENAME = "book"


class IdAllocator:
    """Hands out manifest IDs of the form ``<prefix>-0001``.

    Each prefix has its own counter, so the n-th image of a book is always
    ``i-000n`` regardless of its source path. Fixed IDs (``cover``,
    ``p-cover``) are reserved explicitly and never consume a sequence number.
    """

    def __init__(self, width: int = 4) -> None:
        self._width = width
        self._counters: defaultdict[str, int] = defaultdict(int)
        self._issued: set[str] = set()

    def next(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return self._issue(f"{prefix}-{self._counters[prefix]:0{self._width}d}")

    def reserve(self, fixed_id: str) -> str:
        return self._issue(fixed_id)

    def _issue(self, candidate: str) -> str:
        if candidate in self._issued:
            msg = f"manifest id {candidate!r} allocated twice"
            raise ValueError(msg)
        self._issued.add(candidate)
        return candidate


def new_identifier() -> str:
    """Generate a random URN identifier for a book without one."""
    return f"urn:uuid:{uuid.uuid4()}"


def sanitize_filename(name: str) -> str:
    """Turn a title into a file-system safe base name.

    Path separators and reserved characters are replaced with underscores;
    whitespace runs collapse to one space. Returns ``book`` for names that
    end up empty.
    """
    cleaned = _UNSAFE_FILENAME_RE.sub("_", name)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip().strip(".")
    return cleaned or DEFAULT_FILENAME
