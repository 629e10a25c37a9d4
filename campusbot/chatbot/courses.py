# chatbot/courses.py
import re
from typing import Iterable, List, Optional

# e.g. CIS22B, CIS 22B, MATH1A, MATH 1A
COURSE_CODE_PATTERN = re.compile(r"\b([A-Z]{2,5})\s?(\d{1,3}[A-Z]?)\b")

# nickname -> canonical code; checked in order
COURSE_ALIASES = [
    (re.compile(r"\b(calculus\s*i|calc\s*i|math\s*1a)\b"), "MATH 1A"),
    (re.compile(r"\b(calculus\s*ii|calc\s*ii|math\s*1b)\b"), "MATH 1B"),
    (re.compile(r"\b(calculus\s*iii|calc\s*iii|math\s*1c)\b"), "MATH 1C"),
]


def canonicalize(code: str) -> str:
    """'cis  22-b' -> 'CIS 22 B', 'math 1a' -> 'MATH 1A'."""
    return re.sub(r"[\s-]+", " ", (code or "").upper()).strip()


def extract_course_codes(text: str) -> List[str]:
    out = [canonicalize(f"{dept} {num}") for dept, num in COURSE_CODE_PATTERN.findall((text or "").upper())]
    return list(dict.fromkeys(out))


def resolve_alias(text: str) -> Optional[str]:
    s = (text or "").lower()
    for pattern, code in COURSE_ALIASES:
        if pattern.search(s):
            return code
    return None


def resolve_course_codes(text: str, valid_codes: Iterable[str]) -> List[str]:
    """
    Course codes for a query. Falls back to the nickname table when nothing
    code-shaped was found, or when every code-shaped token is unknown
    (so "K 12" in a sentence does not hide "calc ii").
    """
    codes = extract_course_codes(text)
    valid = set(valid_codes)
    if not codes or not any(c in valid for c in codes):
        alias = resolve_alias(text)
        if alias:
            return [canonicalize(alias)]
    return codes
