"""
Bulk address intake — free text, one wallet per line.

Accepted line shapes: "0xAddress", "Label, 0xAddress", "0xAddress Label".
The first 0x + 40 hex match is the address; whatever remains after removing
it and separator punctuation is the label. Lines without an address are
skipped.
"""

from __future__ import annotations

import re

from backend_daimonitor.models import AddressEntry

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
# ASCII comma, fullwidth comma, semicolon, pipe, tab
SEPARATOR_PATTERN = re.compile(r"[,，;|\t]")


def parse_address_line(line: str) -> AddressEntry | None:
    """Parse one line; None when it holds no address."""
    trimmed = line.strip()
    if not trimmed:
        return None
    match = ADDRESS_PATTERN.search(trimmed)
    if not match:
        return None
    address = match.group(0)
    label = trimmed.replace(address, "", 1)
    label = SEPARATOR_PATTERN.sub("", label).strip()
    return AddressEntry(address=address.lower(), label=label)


def parse_address_lines(text: str) -> list[AddressEntry]:
    """Parse a bulk upload. Order follows the input; duplicates are left to the merge step."""
    entries: list[AddressEntry] = []
    for line in (text or "").splitlines():
        entry = parse_address_line(line)
        if entry is not None:
            entries.append(entry)
    return entries
