from __future__ import annotations

import re
from typing import List, Tuple

_TAG_RE = re.compile(r"<[^>]*>?")
_SPACE_RE = re.compile(r"\s+")

_REPLACEMENTS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^Head \w+ on", re.I), "Head on"),
    (re.compile(r"^Take the (first|1st|second|2nd|third|3rd|fourth|4th|fifth|5th) (left|right)", re.I), r"Take \1 \2"),
    (re.compile(r"^Turn (left|right) onto", re.I), r"Turn \1 on"),
    (re.compile(r"^Turn (left|right) at", re.I), r"Turn \1 at"),
    (re.compile(r"^Slight (left|right)( onto)?", re.I), r"Slight \1"),
    (re.compile(r"^Sharp (left|right)( onto)?", re.I), r"Sharp \1"),
    (re.compile(r"^Take the ramp (onto|to)", re.I), "Take Ramp to"),
    (re.compile(r"^Merge (onto|to)", re.I), "Merge on"),
    (re.compile(r"^Keep (left|right) to (stay on|continue on)", re.I), r"Keep \1"),
    (re.compile(r"^At the roundabout,? take the (\w+) exit", re.I), r"Roundabout: \1 Exit"),
    (re.compile(r"^Make a U-turn", re.I), "U-Turn"),
    (re.compile(r"^Continue (straight )?(onto|on)", re.I), "Continue on"),
    (re.compile(r"^Destination is on the (left|right)", re.I), r"Dest on \1"),
    (re.compile(r"^Arrive at", re.I), "Arrive:"),
    (re.compile(r"^Take the exit", re.I), "Take Exit"),
]


def clean_route_instruction(text: str) -> str:
    """Strip markup from a directions-service instruction and shorten it for speech."""
    if not text:
        return ""
    clean = _SPACE_RE.sub(" ", _TAG_RE.sub("", text)).strip()
    for pattern, replacement in _REPLACEMENTS:
        clean = pattern.sub(replacement, clean)
    return clean
