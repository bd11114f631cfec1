# Copyright (c) Syntropy Systems
"""Tests for console rendering."""

import io

from conftest import failed, ok
from rich.console import Console

from knockout.cli.display import print_measurements


def render(measurements):
    console = Console(file=io.StringIO(), width=200, color_system=None)
    print_measurements(console, measurements)
    return console.file.getvalue()


class TestPrintMeasurements:
    """Tests for print_measurements."""

    def test_failure_reason_in_note_column(self):
        """A failed URL shows its reason under Note, not under a metric."""
        output = render({"/home": ok(71, LCP=2450.0, TBT=180.0), "/cart": failed("chrome crashed")})
        lines = output.splitlines()

        header = next(line for line in lines if "URL" in line)
        failed_row = next(line for line in lines if "/cart" in line)
        assert header.index("Note") <= failed_row.index("chrome crashed")
        assert failed_row.index("chrome crashed") > header.index("TBT")

        ok_row = next(line for line in lines if "/home" in line)
        assert "2450ms" in ok_row
        assert "180ms" in ok_row
