"""
Natural-language analysis of the current readings via the Gemini API.

One stateless request per analysis:
    POST {base}/models/{model}:generateContent?key=...
    {"contents": [{"role": "user", "parts": [{"text": <prompt>}]}]}

The reply text is HTML-escaped and given minimal formatting (**bold**,
*italic*, line breaks) so the page can display it verbatim.
"""

from __future__ import annotations

import html
import logging
import re
from typing import TYPE_CHECKING, Any, Final

import httpx

from thermodash.errors import SummarizationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from thermodash.models import Device
    from thermodash.types import GenerateRequestJson

API_BASE: Final = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL: Final = "gemini-2.0-flash"
DEFAULT_TIMEOUT: Final = 30.0

_BOLD: Final = re.compile(r"\*\*(.*?)\*\*")
_ITALIC: Final = re.compile(r"\*(.*?)\*")

logger = logging.getLogger("Summarizer")


def fleet_prompt(devices: Iterable[Device]) -> str:
    """Prompt asking for an overall analysis of every sensor reading."""
    readings = "\n".join(f"- Device '{d.id}': {d.temperature:.1f}°C" for d in devices)
    return f"""You are an expert assistant in IoT data analysis. Below are the temperature readings \
of several sensors in one location.

Sensor data:
{readings}

Please provide a concise analysis that includes:
1.  A general summary of the climate of the environment.
2.  The average temperature across all sensors.
3.  Identification of any sensor with notably high or low readings compared to the rest.
4.  A general conclusion or recommendation based on the data.

Format your answer clearly and legibly, using bold for the headings."""


def device_prompt(device: Device) -> str:
    """Prompt asking what a single reading means in a home or office."""
    return f"""An IoT sensor named '{device.id}' reports a temperature of {device.temperature:.1f}°C.

Considering a standard environment such as a home or office, what does this temperature mean?

Give a brief interpretation and a practical recommendation in no more than 3 sentences."""


def format_html(text: str) -> str:
    """Escape model output and render **bold**, *italic* and newlines as HTML."""
    out = html.escape(text, quote=False)
    out = _BOLD.sub(r"<strong>\1</strong>", out)
    out = _ITALIC.sub(r"<em>\1</em>", out)
    return out.replace("\n", "<br>")


def error_html(err: Exception) -> str:
    """Inline error block shown in the analysis panel."""
    return (
        '<p class="error">Sorry, something went wrong while generating the analysis. Please try again.</p>'
        f'<p class="error-detail">Error: {html.escape(str(err))}</p>'
    )


def extract_text(data: Any) -> str | None:  # noqa: ANN401
    """Return `candidates[0].content.parts[0].text`, or None if absent."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class Summarizer:
    """Async client for the text-generation endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(self, prompt: str) -> str:
        """Send `prompt` and return the raw reply text.

        Raises:
            SummarizationError: Not configured, transport error, timeout,
                non-2xx status or a reply without text
        """
        if not self.enabled:
            msg = "GEMINI_API_KEY is not set"
            raise SummarizationError(msg)

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body: GenerateRequestJson = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        logger.debug("Requesting analysis from [bright_magenta]%s[/]", self.model)
        try:
            resp = await self._client.post(url, params={"key": self._api_key}, json=body)
        except httpx.TimeoutException as e:
            msg = "request timed out"
            raise SummarizationError(msg) from e
        except httpx.HTTPError as e:
            msg = f"request failed: {e}"
            raise SummarizationError(msg) from e

        if resp.is_error:
            msg = f"API error: {resp.status_code} {resp.reason_phrase}"
            raise SummarizationError(msg)

        try:
            data = resp.json()
        except ValueError as e:
            msg = "API response is not valid JSON"
            raise SummarizationError(msg) from e

        if (text := extract_text(data)) is None:
            msg = "API response contains no valid text"
            raise SummarizationError(msg)

        return text

    async def analyse_fleet(self, devices: Iterable[Device]) -> str:
        """Formatted HTML analysis of all given devices."""
        return format_html(await self.generate(fleet_prompt(devices)))

    async def interpret_device(self, device: Device) -> str:
        """Formatted HTML interpretation of one device's reading."""
        return format_html(await self.generate(device_prompt(device)))
