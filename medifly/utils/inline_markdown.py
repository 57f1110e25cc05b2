"""
Inline markdown for assistant messages: **bold**, *italic*, star ratings and • bullets.
A single-pass lexical scan; anything it does not recognise stays literal text.
"""

import re
from typing import Literal, NamedTuple

FragmentStyle = Literal["plain", "bold", "italic", "rating", "bullet"]

BULLET = "•"

# bold before italic so "**x**" is not read as an italic "*"
_INLINE = re.compile(r"\*\*(?P<bold>.+?)\*\*|\*(?P<italic>[^*\s][^*]*?)\*|(?P<rating>[⭐★]+)")

_ANSI = {
    "bold": "\033[1m",
    "italic": "\033[3m",
    "rating": "\033[33m",
}
_ANSI_RESET = "\033[0m"


class Fragment(NamedTuple):
    style: FragmentStyle
    text: str


def _scan(text: str) -> list[Fragment]:
    fragments: list[Fragment] = []
    position = 0
    for match in _INLINE.finditer(text):
        if match.start() > position:
            fragments.append(Fragment("plain", text[position:match.start()]))
        style = match.lastgroup
        fragments.append(Fragment(style, match.group(style)))
        position = match.end()
    if position < len(text):
        fragments.append(Fragment("plain", text[position:]))
    return fragments


def render_line(line: str) -> list[Fragment]:
    """
    Splits one message line into styled fragments, preserving order and whitespace.

    Lines with bullet glyphs are split on them; every segment after the
    first is preceded by a bullet fragment.
    """
    if BULLET not in line:
        return _scan(line)

    head, *segments = line.split(BULLET)
    fragments = _scan(head)
    for segment in segments:
        fragments.append(Fragment("bullet", BULLET))
        fragments.extend(_scan(segment))
    return fragments


def render_message(text: str) -> list[list[Fragment]]:
    return [render_line(line) for line in text.split("\n")]


def to_ansi(fragments: list[Fragment]) -> str:
    """Terminal rendering of a line; bullets start a new indented line."""
    parts = []
    for fragment in fragments:
        if fragment.style == "plain":
            parts.append(fragment.text)
        elif fragment.style == "bullet":
            parts.append(f"\n  {BULLET}")
        else:
            parts.append(f"{_ANSI[fragment.style]}{fragment.text}{_ANSI_RESET}")
    return "".join(parts).lstrip("\n")
