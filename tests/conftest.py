import pytest

from flights_ui.config import DEFAULT_LWC_BUNDLE_DIR, DEFAULT_TEMPLATE_DIR
from flights_ui.flight_tools import create_tool_registry
from flights_ui.lwc_handler import LwcHandler
from flights_ui.rendering import ResourceRenderer


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def renderer():
    return ResourceRenderer(DEFAULT_TEMPLATE_DIR, "http://localhost:3000")


@pytest.fixture
def lwc_handler():
    return LwcHandler(DEFAULT_LWC_BUNDLE_DIR)


@pytest.fixture
def registry(renderer, lwc_handler):
    return create_tool_registry(renderer, lwc_handler)


@pytest.fixture
def search_input():
    return {
        "originCity": "San Francisco",
        "destinationCity": "New York",
        "dateOfTravel": "2025-01-15",
        "filters": {"price": 400, "discountPercentage": 5},
    }
