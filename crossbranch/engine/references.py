"""Issue reference extraction."""

import re
from typing import FrozenSet, Optional

REFERENCE_PATTERN = re.compile(r"#(\d+)")


def extract_references(text: Optional[str]) -> FrozenSet[int]:
    """
    Pull the set of issue references out of free text.

    ``#123`` anywhere in the text counts; numbers are normalized so ``#0123``
    and ``#123`` are the same reference. An empty set means the PR declares
    no issue and is skipped from validation.
    """
    if not text:
        return frozenset()
    refs = {int(match) for match in REFERENCE_PATTERN.findall(text)}
    refs.discard(0)
    return frozenset(refs)
