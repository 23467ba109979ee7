"""
Truncation heuristics - pure functions, no provider calls
"""

import re
from typing import List, Sequence, Tuple

from heights_ai.config import DEFAULT_TRUNCATION_MARKERS


OVERLAP_WORDS = 5
OVERLAP_SEARCH_WORDS = 40

_ELLIPSIS_TAIL = re.compile(r"(?:\.\.\.|…)+\s*$")
_CONCLUSION_PATTERN = re.compile(
    r"(?:^|\n)\s*(?:#+\s*|\*\*|__)?\s*"
    r"(?:conclusion|summary|bottom line|disclaimer|recommendation|final thoughts|key takeaways?)\b"
    r"|\b(?:in conclusion|in summary|to summarize|overall,)",
    re.IGNORECASE,
)


def is_likely_truncated(text: str, markers: Sequence[str] = DEFAULT_TRUNCATION_MARKERS) -> bool:
    """
    True when the text ends on a dangling marker

    Symbol markers match as plain suffixes. Word markers ("such as")
    must start on a word boundary and may carry a trailing colon.
    """
    stripped = (text or "").rstrip().rstrip("*_").rstrip()
    if not stripped:
        return False

    lowered = stripped.lower()
    for marker in markers:
        marker = marker.lower()
        if not marker:
            continue
        if marker[0].isalnum():
            candidates = (lowered, lowered.rstrip(":").rstrip())
            for candidate in candidates:
                if candidate.endswith(marker):
                    start = len(candidate) - len(marker)
                    if start == 0 or not candidate[start - 1].isalnum():
                        return True
        elif lowered.endswith(marker):
            return True
    return False


def is_response_complete(
    text: str,
    min_lines: int = 15,
    markers: Sequence[str] = DEFAULT_TRUNCATION_MARKERS
) -> bool:
    """Not truncated, and either has a concluding section or is long enough"""
    if is_likely_truncated(text, markers):
        return False
    if _CONCLUSION_PATTERN.search(text or ""):
        return True
    lines = [line for line in (text or "").splitlines() if line.strip()]
    return len(lines) >= min_lines


def _tokens(text: str) -> List[Tuple[int, int, str]]:
    """(start, end, normalised word) for every whitespace-separated token"""
    tokens = []
    for match in re.finditer(r"\S+", text):
        normalised = re.sub(r"[^\w]", "", match.group(0).lower())
        tokens.append((match.start(), match.end(), normalised))
    return tokens


def strip_dangling_ellipsis(text: str) -> str:
    return _ELLIPSIS_TAIL.sub("", (text or "").rstrip())


def _join(left: str, right: str) -> str:
    if not left:
        return right
    if not right:
        return left
    if left[-1].isspace() or right[0] in ".,;:!?)":
        return left + right
    return left + " " + right


def merge_continuation(
    original: str,
    continuation: str,
    overlap_words: int = OVERLAP_WORDS,
    search_words: int = OVERLAP_SEARCH_WORDS
) -> str:
    """
    Splice a continuation onto a truncated answer

    Scans the last `search_words` words of the original for a phrase of
    `overlap_words` words whose remainder is repeated by the
    continuation. When found, the original is cut at that phrase and the
    continuation takes over from its own copy, so the overlap appears
    once. Otherwise the two are concatenated.
    """
    base = strip_dangling_ellipsis(original)
    addition = (continuation or "").strip()
    if not addition:
        return base

    base_tokens = _tokens(base)
    cont_tokens = _tokens(addition)
    cont_words = [word for _, _, word in cont_tokens]

    if len(base_tokens) >= overlap_words and len(cont_tokens) >= overlap_words:
        first = max(0, len(base_tokens) - search_words)
        last = len(base_tokens) - overlap_words
        for i in range(first, last + 1):
            suffix = [word for _, _, word in base_tokens[i:]]
            phrase = suffix[:overlap_words]
            if not all(phrase):
                continue
            for j in range(len(cont_words) - overlap_words + 1):
                if cont_words[j:j + overlap_words] != phrase:
                    continue
                # the rest of the original must be repeated too
                if cont_words[j:j + len(suffix)] == suffix[:len(cont_words) - j]:
                    head = base[:base_tokens[i][0]]
                    return _join(head, addition[cont_tokens[j][0]:])

    return _join(base, addition)
