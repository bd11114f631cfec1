# Copyright (c) Syntropy Systems
"""Page performance measurement with the Lighthouse CLI."""

from __future__ import annotations

import json
import logging
import shlex
import shutil
import subprocess
from typing import TYPE_CHECKING, Protocol, cast

from knockout.models.measurement import Failure, Success

if TYPE_CHECKING:
    from knockout.models.measurement import Measurement

logger = logging.getLogger(__name__)

# Lighthouse audit id -> short metric name
METRIC_AUDITS: dict[str, str] = {
    "first-contentful-paint": "FCP",
    "largest-contentful-paint": "LCP",
    "total-blocking-time": "TBT",
    "cumulative-layout-shift": "CLS",
    "speed-index": "SI",
    "interactive": "TTI",
}


class Measurer(Protocol):
    """Measures a single URL. Returns Failure rather than raising."""

    def measure(self, url: str) -> Measurement:
        ...


def _as_dict(value: object) -> dict[str, object]:
    if isinstance(value, dict):
        return cast("dict[str, object]", value)
    return {}


def _number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_lighthouse_report(report: dict[str, object]) -> Measurement:
    """Convert a Lighthouse JSON report into a measurement.

    The score is the performance category score scaled to 0-100 and
    rounded. Metrics and timings missing from the report are left out.
    """
    categories = _as_dict(report.get("categories"))
    performance = _as_dict(categories.get("performance"))
    raw_score = _number(performance.get("score"))
    if raw_score is None:
        runtime_error = _as_dict(report.get("runtimeError"))
        reason = str(runtime_error.get("message") or "no performance score in report")
        return Failure(reason=reason)
    if not 0 <= raw_score <= 1:
        return Failure(reason=f"performance score out of range: {raw_score}")

    audits = _as_dict(report.get("audits"))
    metrics: dict[str, float] = {}
    for audit_id, name in METRIC_AUDITS.items():
        value = _number(_as_dict(audits.get(audit_id)).get("numericValue"))
        if value is not None:
            metrics[name] = value

    timing = _as_dict(report.get("timing"))
    timings: dict[str, float] = {}
    total = _number(timing.get("total"))
    if total is not None:
        timings["total"] = total
    entries = timing.get("entries")
    if isinstance(entries, list):
        for entry in cast("list[object]", entries):
            entry_dict = _as_dict(entry)
            name = entry_dict.get("name")
            duration = _number(entry_dict.get("duration"))
            if isinstance(name, str) and duration is not None:
                timings[name] = duration

    return Success(
        score=float(round(raw_score * 100)),
        metrics=metrics,
        timings=timings,
    )


class LighthouseMeasurer:
    """Runs ``lighthouse`` in a headless Chrome and parses its JSON report.

    Every call launches a fresh Chrome, so nothing is cached between passes
    on the client side.
    """

    binary: str
    chrome_flags: str
    timeout: float

    def __init__(
        self,
        binary: str = "lighthouse",
        chrome_flags: str = "--headless",
        timeout: float = 180.0,
    ) -> None:
        """Initialize the measurer.

        Args:
            binary: Lighthouse executable
            chrome_flags: Flags passed through to Chrome
            timeout: Seconds to wait for one report

        """
        self.binary = binary
        self.chrome_flags = chrome_flags
        self.timeout = timeout

    def available(self) -> bool:
        """Check whether the Lighthouse binary can be found."""
        return shutil.which(self.binary) is not None

    def command(self, url: str) -> list[str]:
        """Build the argv for measuring url."""
        return [
            self.binary,
            url,
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            "--only-categories=performance",
            f"--chrome-flags={self.chrome_flags}",
        ]

    def measure(self, url: str) -> Measurement:
        """Measure url once."""
        argv = self.command(url)
        logger.debug("Running %s", shlex.join(argv))
        try:
            proc = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
                start_new_session=True,  # Ctrl-C reaches knockout only
            )
        except FileNotFoundError:
            return Failure(reason=f"{self.binary} not found on PATH")
        except subprocess.TimeoutExpired:
            return Failure(reason=f"lighthouse timed out after {self.timeout:.0f}s")
        except OSError as e:
            return Failure(reason=f"lighthouse could not run: {e}")

        if proc.returncode != 0:
            detail = proc.stderr.strip().splitlines()[-1:] or [f"exit code {proc.returncode}"]
            logger.warning("Lighthouse failed for %s: %s", url, detail[0])
            return Failure(reason=detail[0])

        try:
            report = json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            return Failure(reason=f"invalid lighthouse output: {e}")

        if not isinstance(report, dict):
            return Failure(reason="invalid lighthouse output: not an object")

        return parse_lighthouse_report(cast("dict[str, object]", report))
