"""The standard tool set every session starts with."""

import json
import logging
from typing import List

from flights_ui.flight_service import FlightCatalog, FlightOffer, flight_catalog
from flights_ui.lwc_handler import DEFAULT_COMPONENT, FLIGHT_DETAILS_COMPONENT, LwcHandler
from flights_ui.models import FlightSearchInput, FlightsData
from flights_ui.rendering import RawHtml, ResourceRenderer, UIEncoding
from flights_ui.tool_registry import ResponseEnvelope, TextItem, ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

SEARCH_FLIGHTS_DESCRIPTION = (
    "Search for available flights between two cities on a specific date. "
    "Returns flight details including prices and times."
)

# Tools the flight search form can hand its parameters to.
FLIGHT_SEARCH_TOOLS = [
    "getFlightResultsAsStructuredContent",
    "getFlightResultsAsRawHtml",
    "getFlightsAsExternalUrl",
    "getFlightResultsAsUem",
    "getFlightDetailsAndRenderinLWC",
]


def create_tool_registry(
        renderer: ResourceRenderer,
        lwc_handler: LwcHandler,
        catalog: FlightCatalog = flight_catalog,
) -> ToolRegistry:
    """Build a registry pre-populated with the standard tools.

    Args:
        renderer: Builds the UI resources returned by the tools
        lwc_handler: Renders component bundles for the component tools
        catalog: Source of flight offers (read-only, shared between sessions)

    Returns:
        A new registry owned by the caller
    """
    registry = ToolRegistry()

    def search(params: FlightSearchInput) -> List[FlightOffer]:
        logger.info(
            "Flight search - Origin: %s, Destination: %s, Date: %s, Filters: %s",
            params.origin_city,
            params.destination_city,
            params.date_of_travel,
            params.filters.model_dump_json(by_alias=True),
        )
        return catalog.search(
            params.origin_city,
            params.destination_city,
            params.filters.price,
            params.filters.discount_percentage,
        )

    def flight_results_as_structured_content(params: FlightSearchInput) -> ResponseEnvelope:
        payload = FlightsData.from_domain(search(params)).to_payload()
        return ResponseEnvelope(content=[TextItem(json.dumps(payload))], structured_content=payload)

    def flight_results_as_raw_html(params: FlightSearchInput) -> ResponseEnvelope:
        resource = renderer.render(
            search(params), params.origin_city, params.destination_city, params.date_of_travel,
            UIEncoding.RAW_HTML,
        )
        return ResponseEnvelope(content=[resource])

    def flights_as_external_url(params: FlightSearchInput) -> ResponseEnvelope:
        resource = renderer.render(
            [], params.origin_city, params.destination_city, params.date_of_travel,
            UIEncoding.EXTERNAL_URL,
        )
        return ResponseEnvelope(content=[resource])

    def flight_results_as_uem(params: FlightSearchInput) -> ResponseEnvelope:
        # UEM is translated client-side from the same HTML for now.
        resource = renderer.render(
            search(params), params.origin_city, params.destination_city, params.date_of_travel,
            UIEncoding.RAW_HTML, uri="ui://uem-demo",
        )
        return ResponseEnvelope(content=[resource])

    def static_lwc(_params: None) -> ResponseEnvelope:
        html = lwc_handler.generate_component_html(DEFAULT_COMPONENT, {})
        return ResponseEnvelope(content=[RawHtml(uri="ui://lwcComponentAsRawHtml", html=html)])

    def flight_details_in_lwc(_params: FlightSearchInput) -> ResponseEnvelope:
        return ResponseEnvelope(content=[renderer.render_component_url(FLIGHT_DETAILS_COMPONENT)])

    def remote_dom(_params: None) -> ResponseEnvelope:
        resource = renderer.render([], "", "", "", UIEncoding.REMOTE_DOM)
        return ResponseEnvelope(content=[resource])

    def flight_search_form(_params: None) -> ResponseEnvelope:
        logger.info("Running Flight Search form tool to show User a rich UI for flight search")
        return ResponseEnvelope(content=[renderer.render_search_form(FLIGHT_SEARCH_TOOLS)])

    def address_manager(_params: None) -> ResponseEnvelope:
        logger.info("Running Address Manager - self-contained form and display")
        return ResponseEnvelope(content=[renderer.render_address_manager()])

    registry.register(ToolDescriptor(
        name="getFlightResultsAsStructuredContent",
        title="Search Flights",
        description=SEARCH_FLIGHTS_DESCRIPTION,
        handler=flight_results_as_structured_content,
        input_model=FlightSearchInput,
        output_model=FlightsData,
    ))
    registry.register(ToolDescriptor(
        name="getFlightResultsAsRawHtml",
        title="Search Flights",
        description=f"{SEARCH_FLIGHTS_DESCRIPTION}  Returns the results as raw HTML.",
        handler=flight_results_as_raw_html,
        input_model=FlightSearchInput,
    ))
    registry.register(ToolDescriptor(
        name="getFlightsAsExternalUrl",
        title="Search Flights",
        description=f"{SEARCH_FLIGHTS_DESCRIPTION}  Returns the results as a Lightning Out component",
        handler=flights_as_external_url,
        input_model=FlightSearchInput,
    ))
    registry.register(ToolDescriptor(
        name="getFlightResultsAsUem",
        title="Search Flights",
        description=f"{SEARCH_FLIGHTS_DESCRIPTION}  Returns the results as UEM that is translated client-side.",
        handler=flight_results_as_uem,
        input_model=FlightSearchInput,
    ))
    registry.register(ToolDescriptor(
        name="getStaticLwc",
        title="Get Static LWC Component",
        description="Static LWC Component",
        handler=static_lwc,
    ))
    registry.register(ToolDescriptor(
        name="getFlightDetailsAndRenderinLWC",
        title="Get LWC Component",
        description="LWC Component",
        handler=flight_details_in_lwc,
        input_model=FlightSearchInput,
    ))
    registry.register(ToolDescriptor(
        name="showRemoteDom",
        title="Show Remote DOM",
        description="Shows todays weather forecast using remote DOM script.",
        handler=remote_dom,
    ))
    registry.register(ToolDescriptor(
        name="showFlightSearchForm",
        title="Show Flight Search Form",
        description="Displays an interactive form to search for flights with tool selection.",
        handler=flight_search_form,
    ))
    registry.register(ToolDescriptor(
        name="addressManager",
        title="Address Manager",
        description="Self-contained address manager that allows entering and displaying address information in one UI.",
        handler=address_manager,
    ))
    return registry
