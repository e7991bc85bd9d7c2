"""Serves prebuilt UI component bundles as standalone HTML pages.

Components are addressed as ``namespace-component`` (``x-flightDetails``) and
their bundles live at ``<bundle_dir>/<namespace>/<component>.js``. Each bundle
registers its custom element tag in ``window.LWCApp`` under the component name;
the page mounts that element once the bundle has run.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from flights_ui.errors import AssetLoadError, ClientError, NotFoundError
from flights_ui.rendering import fill_template, json_for_script

logger = logging.getLogger(__name__)

DEFAULT_COMPONENT = "x-app"
FLIGHT_DETAILS_COMPONENT = "x-flightDetails"

_COMPONENT_NAME = re.compile(r"^([A-Za-z][A-Za-z0-9]*)-([A-Za-z][A-Za-z0-9]*)$")

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{TITLE}}</title>
    <style>
        body {
            font-family: Arial, sans-serif;
            margin: 0;
            padding: 20px;
            background-color: #f5f5f5;
        }
        .container {
            max-width: 800px;
            margin: 0 auto;
            background: white;
            padding: 20px;
            border-radius: 8px;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
        }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px; text-align: left; border-bottom: 1px solid #e4e7eb; }
    </style>
</head>
<body>
    <div class="container">
        <div id="lwc-container">
            <p>Loading component...</p>
        </div>
    </div>
    <script>
        window.componentData = {{COMPONENT_DATA}};
    </script>
    <script>
{{BUNDLE}}
    </script>
    <script>
        (function () {
            const componentName = {{COMPONENT_NAME}};
            const tag = window.LWCApp && window.LWCApp[componentName];
            const container = document.getElementById('lwc-container');
            if (!tag) {
                container.textContent = 'Component ' + componentName + ' did not register itself.';
                return;
            }
            container.replaceChildren(document.createElement(tag));
        })();
    </script>
</body>
</html>"""


class ComponentNameError(ClientError):
    pass


class ComponentNotFoundError(NotFoundError, AssetLoadError):
    pass


class LwcHandler:
    def __init__(self, bundle_dir: Path):
        self._bundle_dir = Path(bundle_dir)
        self._bundles: Dict[str, str] = {}

    @staticmethod
    def parse_component_name(component_name: str) -> Tuple[str, str]:
        match = _COMPONENT_NAME.match(component_name)
        if not match:
            raise ComponentNameError(
                f"Invalid component name '{component_name}'. "
                "Expected format 'namespace-component', e.g. 'x-flightDetails'."
            )
        return match.group(1), match.group(2)

    def bundle_path(self, component_name: str) -> Path:
        namespace, component = self.parse_component_name(component_name)
        return self._bundle_dir / namespace / f"{component}.js"

    def is_bundle_available(self, component_name: str) -> bool:
        return self.bundle_path(component_name).is_file()

    def load_bundle(self, component_name: str) -> str:
        bundle = self._bundles.get(component_name)
        if bundle is not None:
            return bundle

        path = self.bundle_path(component_name)
        if not path.is_file():
            raise ComponentNotFoundError(path, f"no bundle for component '{component_name}'")
        try:
            bundle = path.read_text(encoding="utf-8")
        except OSError as e:
            raise AssetLoadError(path, e.strerror or str(e)) from e
        logger.debug("Loaded component bundle %s", path)
        self._bundles[component_name] = bundle
        return bundle

    def generate_component_html(self, component_name: str, component_data: Optional[Any] = None) -> str:
        """Render a full HTML page that loads ``component_name`` with ``component_data``.

        The data is exposed to the bundle as ``window.componentData``.
        """
        bundle = self.load_bundle(component_name)
        return fill_template(_PAGE_TEMPLATE, {
            "TITLE": component_name,
            "COMPONENT_DATA": json_for_script(component_data),
            "BUNDLE": bundle,
            "COMPONENT_NAME": json_for_script(component_name),
        })
