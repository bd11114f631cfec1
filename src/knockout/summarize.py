# Copyright (c) Syntropy Systems
"""HTTP client for turning a report into a written summary."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError
from typing_extensions import Self

from knockout.errors import SummarizerError
from knockout.models.base import KnockoutBaseModel

if TYPE_CHECKING:
    from types import TracebackType

    from knockout.report import ExperimentReport

SYSTEM_PROMPT = (
    "You are a web performance engineer. You are given the results of an "
    "experiment in which each WordPress plugin was deactivated in turn and "
    "the pages were re-measured with Lighthouse. A positive score_diff means "
    "the page scored better without the plugin, so the plugin costs that "
    "much performance. Summarize which plugins matter most, call out any "
    "pages that could not be measured, and suggest what to investigate first."
)


class _ChatMessage(KnockoutBaseModel):
    role: str
    content: str | None = None


class _ChatChoice(KnockoutBaseModel):
    message: _ChatMessage


class _ChatResponse(KnockoutBaseModel):
    choices: list[_ChatChoice]


class SummarizerClient:
    """Client for an OpenAI-compatible chat completions endpoint.

    Only sees the finished report; it has no say over the experiment.
    """

    base_url: str
    model: str
    timeout: float
    _client: httpx.Client

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, e.g. "https://api.openai.com/v1"
            model: Model name sent with each request
            api_key: Bearer token, if the endpoint needs one
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)

        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the client context and return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the client context and close the HTTP client."""
        self.close()

    def summarize(self, report: ExperimentReport) -> str:
        """Return a prose summary of report.

        Raises:
            SummarizerError: If the request fails or the reply is unusable.

        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": report.model_dump_json(indent=2)},
            ],
        }
        try:
            response = self._client.post(f"{self.base_url}/chat/completions", json=payload)
            _ = response.raise_for_status()
            parsed = _ChatResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            msg = f"Summarizer error: HTTP {e.response.status_code}"
            raise SummarizerError(msg) from e
        except httpx.RequestError as e:
            msg = f"Connection error: {e}"
            raise SummarizerError(msg) from e
        except (ValidationError, ValueError) as e:
            msg = f"Unexpected summarizer response: {e}"
            raise SummarizerError(msg) from e

        if not parsed.choices or not parsed.choices[0].message.content:
            msg = "Summarizer returned no text"
            raise SummarizerError(msg)
        return parsed.choices[0].message.content.strip()
