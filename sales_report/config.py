import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError

# Defaults for locating the unified sales extract and generated artifacts.
DEFAULT_DATA_FILENAME = "superstore_sales.parquet"
ENV_DATA_PATH = "SALES_DATA_PATH"
ENV_REPORT_DIR = "SALES_REPORT_DIR"
ENV_NAME_TEMPLATE = "SALES_REPORT_TEMPLATE"

# Output location for exported PDFs and their manifests.
DEFAULT_REPORT_DIR = Path(__file__).resolve().parent.parent / "reports"
DEFAULT_CONFIG_FILENAME = "report.toml"

DEFAULT_NAME_TEMPLATE = "Report_{date:%Y-%m-%d}.pdf"
DEFAULT_REPORT_TITLE = "Sales Performance Report"

# Display order of the sections in the exported document.
DEFAULT_VIEW_ORDER: Tuple[str, ...] = (
    "MonthlyTrend",
    "StateOrders",
    "ShipModeShare",
    "CategorySales",
    "SegmentSales",
)


@dataclass(frozen=True)
class ReportConfig:
    """Everything a run needs besides the filters and the views themselves."""

    view_order: Tuple[str, ...] = DEFAULT_VIEW_ORDER
    name_template: str = DEFAULT_NAME_TEMPLATE
    destination: Path = field(default=DEFAULT_REPORT_DIR)
    write_manifest: bool = True
    report_title: str = DEFAULT_REPORT_TITLE


_KNOWN_KEYS = {"view_order", "name_template", "destination", "write_manifest", "report_title"}


def _coerce(raw: Dict[str, Any], source: str) -> Dict[str, Any]:
    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown report option(s) in {source}: {', '.join(sorted(unknown))}")

    values: Dict[str, Any] = {}
    if "view_order" in raw:
        order = raw["view_order"]
        if not isinstance(order, (list, tuple)) or not all(isinstance(v, str) for v in order):
            raise ConfigurationError(f"view_order in {source} must be a list of view names")
        values["view_order"] = tuple(order)
    for key in ("name_template", "report_title"):
        if key in raw:
            if not isinstance(raw[key], str) or not raw[key].strip():
                raise ConfigurationError(f"{key} in {source} must be a non-empty string")
            values[key] = raw[key]
    if "destination" in raw:
        if not isinstance(raw["destination"], (str, Path)):
            raise ConfigurationError(f"destination in {source} must be a path")
        values["destination"] = Path(raw["destination"]).expanduser()
    if "write_manifest" in raw:
        if not isinstance(raw["write_manifest"], bool):
            raise ConfigurationError(f"write_manifest in {source} must be true or false")
        values["write_manifest"] = raw["write_manifest"]
    return values


def load_report_config(path: Optional[Path] = None) -> ReportConfig:
    """
    Build the report configuration from defaults, an optional TOML file and
    environment overrides, in that order. The TOML file keeps its options
    under a ``[report]`` table; a missing default file is not an error.
    """
    values: Dict[str, Any] = {}

    candidate = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    if candidate.exists():
        try:
            with open(candidate, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Could not parse {candidate}: {exc}") from exc
        values.update(_coerce(data.get("report", {}), str(candidate)))
    elif path:
        raise ConfigurationError(f"Config file not found: {candidate}")

    env_values = {}
    if os.getenv(ENV_REPORT_DIR, "").strip():
        env_values["destination"] = os.environ[ENV_REPORT_DIR].strip()
    if os.getenv(ENV_NAME_TEMPLATE, "").strip():
        env_values["name_template"] = os.environ[ENV_NAME_TEMPLATE].strip()
    values.update(_coerce(env_values, "environment"))

    return ReportConfig(**values)
