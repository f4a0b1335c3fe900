"""Content negotiation and header helpers used by the request context."""

from __future__ import annotations

from collections.abc import Mapping, Sequence


def parse_accept(header: str) -> list[str]:
    """Split an Accept header into media ranges, dropping parameters and blanks."""
    accepted = []
    for part in header.split(","):
        cut = part.find(";")
        if cut > 0:
            part = part[:cut]
        part = part.strip()
        if part:
            accepted.append(part)
    return accepted


def filter_flags(content: str) -> str:
    """Return a header value up to its first space or semicolon."""
    for index, char in enumerate(content):
        if char in " ;":
            return content[:index]
    return content


def negotiate_format(accepted: Sequence[str], offered: Sequence[str]) -> str:
    """Pick the first offered format that an accepted media range allows.

    With nothing accepted the first offer wins; with no match the result is "".
    Raises ValueError when nothing is offered.
    """
    if not offered:
        raise ValueError("you must provide at least one offer")
    if not accepted:
        return offered[0]
    for accept in accepted:
        for offer in offered:
            matched = 0
            for a_char, o_char in zip(accept, offer):
                if a_char == "*" or o_char == "*":
                    return offer
                if a_char != o_char:
                    break
                matched += 1
            if matched == len(accept):
                return offer
    return ""


def bracket_map(values: Mapping[str, Sequence[str]], key: str) -> tuple[dict[str, str], bool]:
    """Collect ``key[name]=value`` entries into a dict keyed by ``name``.

    Returns the dict and whether at least one such entry was found.
    """
    result: dict[str, str] = {}
    found = False
    for name, items in values.items():
        open_at = name.find("[")
        if open_at < 1 or name[:open_at] != key:
            continue
        rest = name[open_at + 1:]
        close_at = rest.find("]")
        if close_at >= 1:
            found = True
            result[rest[:close_at]] = items[0]
    return result, found