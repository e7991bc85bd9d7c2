"""UI resources and the renderer that builds them from flight offers.

A UI resource is what an MCP-UI client renders in place of plain text: an inline
HTML document, an external URL to load in an iframe, or a remote-DOM script the
client executes against its own component library. Each variant becomes an MCP
embedded resource whose ``mimeType`` tells the client which one it is.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from html import escape
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from mcp import types

from flights_ui.errors import AssetLoadError
from flights_ui.flight_service import FlightOffer
from flights_ui.models import FlightsData

logger = logging.getLogger(__name__)

DEFAULT_EXTERNAL_URL = "https://example.com"
DEPARTURE_TIME = (7, 0)
MINUTES_PER_DAY = 24 * 60

REMOTE_DOM_SCRIPT = """
        const p = document.createElement('ui-text');
        p.textContent = 'This is a remote DOM element from the server.';
        root.appendChild(p);
      """

_PLACEHOLDER = re.compile(r"\{\{([A-Z_]+)\}\}")
_SCRIPT_ESCAPES = str.maketrans({
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
})


class UIEncoding(str, Enum):
    RAW_HTML = "rawHtml"
    EXTERNAL_URL = "externalUrl"
    REMOTE_DOM = "remoteDom"


@dataclass(frozen=True)
class UIResource:
    uri: str

    @property
    def mime_type(self) -> str:
        raise NotImplementedError

    @property
    def text(self) -> str:
        raise NotImplementedError

    def to_embedded_resource(self) -> types.EmbeddedResource:
        return types.EmbeddedResource(
            type="resource",
            resource=types.TextResourceContents(uri=self.uri, mimeType=self.mime_type, text=self.text),
        )


@dataclass(frozen=True)
class RawHtml(UIResource):
    html: str

    @property
    def mime_type(self) -> str:
        return "text/html"

    @property
    def text(self) -> str:
        return self.html


@dataclass(frozen=True)
class ExternalUrl(UIResource):
    iframe_url: str

    @property
    def mime_type(self) -> str:
        return "text/uri-list"

    @property
    def text(self) -> str:
        return self.iframe_url


@dataclass(frozen=True)
class RemoteDom(UIResource):
    script: str
    framework: str = "react"

    @property
    def mime_type(self) -> str:
        return f"application/vnd.mcp-ui.remote-dom+javascript; framework={self.framework}"

    @property
    def text(self) -> str:
        return self.script


def format_duration(duration_in_min: int) -> Optional[str]:
    """Format minutes as ``"H hr M min"``; a zero duration has no formatted form."""
    if not duration_in_min:
        return None
    return f"{duration_in_min // 60} hr {duration_in_min % 60} min"


def arrival_time(duration_in_min: int) -> str:
    """Arrival clock time for the fixed 07:00 departure, wrapped at midnight."""
    hours, minutes = DEPARTURE_TIME
    total = (hours * 60 + minutes + duration_in_min) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def departure_time() -> str:
    hours, minutes = DEPARTURE_TIME
    return f"{hours:02d}:{minutes:02d}"


def json_for_script(value: Any) -> str:
    """Serialize ``value`` as JSON that is safe to place inside an inline ``<script>``."""
    return json.dumps(value, ensure_ascii=False).translate(_SCRIPT_ESCAPES)


def fill_template(template: str, values: Mapping[str, str]) -> str:
    """Replace ``{{NAME}}`` placeholders in one pass; substituted text is never rescanned."""
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], template)


@dataclass(frozen=True)
class FlightResultsPage:
    offers: Tuple[FlightOffer, ...]
    origin_city: str
    destination_city: str
    travel_date: str

    def template_values(self) -> Dict[str, str]:
        return {
            "ORIGIN_CITY": escape(self.origin_city),
            "DESTINATION_CITY": escape(self.destination_city),
            "TRAVEL_DATE": escape(self.travel_date),
            "FLIGHT_COUNT": str(len(self.offers)),
            "FLIGHT_ROWS": "\n".join(_flight_row(offer) for offer in self.offers),
            "FLIGHTS_JSON": json_for_script(FlightsData.from_domain(list(self.offers)).to_payload()),
        }


def _flight_row(offer: FlightOffer) -> str:
    cells = [
        offer.flight_id,
        f"${offer.price:.2f}",
        f"{offer.discount_percentage}%",
        departure_time(),
        arrival_time(offer.duration_in_min),
        format_duration(offer.duration_in_min) or "",
        str(offer.num_layovers),
        "Yes" if offer.is_pet_allowed else "No",
    ]
    columns = "".join(f"<td>{escape(cell)}</td>" for cell in cells)
    button = f'<td><button data-flight-id="{escape(offer.flight_id)}">Book</button></td>'
    return f"      <tr>{columns}{button}</tr>"


def _tool_option(tool_name: str) -> str:
    name = escape(tool_name)
    return f'<option value="{name}">{name}</option>'


class ResourceRenderer:
    """Builds UI resources from templates read (once) out of ``template_dir``."""

    FLIGHT_RESULTS_TEMPLATE = "flight_results.html"
    SEARCH_FORM_TEMPLATE = "flight_search_form.html"
    SEARCH_FORM_SCRIPT = "flight_search_form.js"
    ADDRESS_MANAGER_TEMPLATE = "address_manager.html"

    def __init__(self, template_dir: Path, public_base_url: str, external_url: str = DEFAULT_EXTERNAL_URL):
        self._template_dir = Path(template_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._external_url = external_url
        self._templates: Dict[str, str] = {}

    def load_template(self, name: str) -> str:
        template = self._templates.get(name)
        if template is None:
            path = self._template_dir / name
            try:
                template = path.read_text(encoding="utf-8")
            except OSError as e:
                raise AssetLoadError(path, e.strerror or str(e)) from e
            logger.debug("Loaded template %s", path)
            self._templates[name] = template
        return template

    def render(
            self,
            offers: Sequence[FlightOffer],
            origin_city: str,
            destination_city: str,
            travel_date: str,
            encoding: UIEncoding,
            uri: Optional[str] = None,
    ) -> UIResource:
        if encoding is UIEncoding.RAW_HTML:
            page = FlightResultsPage(tuple(offers), origin_city, destination_city, travel_date)
            return RawHtml(uri=uri or "ui://raw-html-demo", html=self.render_flight_results_html(page))
        if encoding is UIEncoding.EXTERNAL_URL:
            # The client fetches offers itself; nothing from the search is embedded.
            return ExternalUrl(uri=uri or "ui://external-url-demo", iframe_url=self._external_url)
        if encoding is UIEncoding.REMOTE_DOM:
            return RemoteDom(uri=uri or "ui://remote-dom-demo", script=REMOTE_DOM_SCRIPT, framework="react")
        raise ValueError(f"Unsupported UI encoding: {encoding!r}")

    def render_flight_results_html(self, page: FlightResultsPage) -> str:
        return fill_template(self.load_template(self.FLIGHT_RESULTS_TEMPLATE), page.template_values())

    def component_url(self, component_name: str) -> str:
        return f"{self._public_base_url}/lwc/{component_name}"

    def render_component_url(self, component_name: str, uri: str = "ui://lwcComponent") -> ExternalUrl:
        return ExternalUrl(uri=uri, iframe_url=self.component_url(component_name))

    def render_search_form(self, tool_names: Iterable[str]) -> RawHtml:
        html = fill_template(
            self.load_template(self.SEARCH_FORM_TEMPLATE),
            {
                "TOOL_OPTIONS": "\n".join(_tool_option(name) for name in tool_names),
                "SCRIPT_PLACEHOLDER": self.load_template(self.SEARCH_FORM_SCRIPT),
            },
        )
        return RawHtml(uri="ui://flight-search-form", html=html)

    def render_address_manager(self) -> RawHtml:
        return RawHtml(uri="ui://address-manager", html=self.load_template(self.ADDRESS_MANAGER_TEMPLATE))
