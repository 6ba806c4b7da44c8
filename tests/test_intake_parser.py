"""
Pytest tests for bulk address parsing (intake.parser).
"""

from __future__ import annotations

from backend_daimonitor.intake.parser import parse_address_line, parse_address_lines
from backend_daimonitor.models import AddressEntry

ADDR = "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063"
ADDR_LOWER = ADDR.lower()


def test_address_only():
    assert parse_address_line(ADDR) == AddressEntry(ADDR_LOWER, "")


def test_label_before_and_after_address():
    assert parse_address_line(f"Treasury, {ADDR}") == AddressEntry(ADDR_LOWER, "Treasury")
    assert parse_address_line(f"{ADDR} Cold Storage") == AddressEntry(ADDR_LOWER, "Cold Storage")
    assert parse_address_line(f"Fund A，{ADDR}") == AddressEntry(ADDR_LOWER, "Fund A")
    assert parse_address_line(f"  Desk\t{ADDR}  ") == AddressEntry(ADDR_LOWER, "Desk")


def test_lines_without_address_are_ignored():
    text = "\n".join(
        [
            "",
            "   ",
            "just a note",
            "0x1234",
            f"Whale #1, {ADDR}",
            "0x" + "b" * 40,
        ]
    )
    entries = parse_address_lines(text)
    assert entries == [
        AddressEntry(ADDR_LOWER, "Whale #1"),
        AddressEntry("0x" + "b" * 40, ""),
    ]


def test_only_first_address_is_taken():
    second = "0x" + "c" * 40
    entry = parse_address_line(f"{ADDR},{second}")
    assert entry.address == ADDR_LOWER
    assert entry.label == second


def test_empty_text():
    assert parse_address_lines("") == []
