import pytest

from flights_ui.errors import AssetLoadError, ClientError, NotFoundError
from flights_ui.lwc_handler import ComponentNameError, ComponentNotFoundError, LwcHandler


@pytest.mark.parametrize("name", ["bad-name-format", "flightDetails", "-app", "x-", "x-../app", ""])
def test_invalid_component_names(lwc_handler, name):
    with pytest.raises(ComponentNameError) as excinfo:
        lwc_handler.generate_component_html(name)
    assert isinstance(excinfo.value, ClientError)
    assert "namespace-component" in str(excinfo.value)


def test_bundle_path(tmp_path):
    handler = LwcHandler(tmp_path)
    assert handler.bundle_path("x-flightDetails") == tmp_path / "x" / "flightDetails.js"


def test_missing_bundle(tmp_path):
    handler = LwcHandler(tmp_path)
    assert not handler.is_bundle_available("x-nothing")
    with pytest.raises(ComponentNotFoundError) as excinfo:
        handler.generate_component_html("x-nothing")
    assert isinstance(excinfo.value, NotFoundError)
    assert isinstance(excinfo.value, AssetLoadError)
    assert excinfo.value.path == str(tmp_path / "x" / "nothing.js")


def test_generates_page_for_packaged_bundle(lwc_handler):
    html = lwc_handler.generate_component_html("x-flightDetails", {"flightId": "AA123"})

    assert html.startswith("<!DOCTYPE html>")
    assert "<title>x-flightDetails</title>" in html
    assert 'window.componentData = {"flightId": "AA123"};' in html
    assert "x-flight-details" in html


def test_missing_data_becomes_null(lwc_handler):
    html = lwc_handler.generate_component_html("x-app")
    assert "window.componentData = null;" in html


def test_component_data_cannot_close_the_script(lwc_handler):
    html = lwc_handler.generate_component_html("x-app", {"note": "</script><script>alert(1)"})
    assert "</script><script>alert(1)" not in html


def test_bundles_are_read_once(tmp_path):
    (tmp_path / "c").mkdir()
    bundle = tmp_path / "c" / "widget.js"
    bundle.write_text("// v1")
    handler = LwcHandler(tmp_path)

    assert "// v1" in handler.generate_component_html("c-widget")
    bundle.write_text("// v2")
    assert "// v1" in handler.generate_component_html("c-widget")
