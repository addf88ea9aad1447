"""Tests for byte formatting."""

from sysdiag.formatting import format_bytes


def test_format_bytes_zero():
    assert format_bytes(0) == "0 bytes"


def test_format_bytes_below_megabyte():
    assert format_bytes(1048575) == "1048575 bytes"


def test_format_bytes_megabyte():
    assert format_bytes(1048576) == "1.00 MB"


def test_format_bytes_gigabyte():
    assert format_bytes(1073741824) == "1.00 GB"


def test_format_bytes_rounds_to_two_decimals():
    """1,500,000,000 bytes is 1.397 GiB."""
    assert format_bytes(1500000000) == "1.40 GB"


def test_format_bytes_large_values_stay_in_gigabytes():
    assert format_bytes(2 * 1024**4) == "2048.00 GB"
