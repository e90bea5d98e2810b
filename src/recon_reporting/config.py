"""Configuration loader and validation for reporting settings."""

from pathlib import Path
from typing import Any, Literal, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CurrencyConfig(BaseModel):
    """Currency presentation settings."""

    symbol: str = "GHS "


class ReportHeaderConfig(BaseModel):
    """Header metadata printed on exported reports."""

    company_name: str = "Sample Logistics Ltd."
    as_at_date: str = ""
    title: str = "Reconciliation Report"
    product_name: str = "Reconciliation Report Pro"
    classification: str = "Protected"


class SectionsConfig(BaseModel):
    """Default section toggles for exports."""

    summary: bool = True
    matches: bool = True
    unmatched_bank: bool = True
    unmatched_ledger: bool = True


class ExportConfig(BaseModel):
    """Configuration for export artifacts."""

    csv_label: str = "ReconReport"
    pdf_label: str = "Reconciliation_Report"
    xlsx_label: str = "Reconciliation_Report"
    sections: SectionsConfig = Field(default_factory=SectionsConfig)
    output_dir: str = "."


class LayoutConfig(BaseModel):
    """Page geometry for the paged document, in millimetres."""

    page_width: float = 210.0
    page_height: float = 297.0
    margin: float = 14.0
    header_height: float = 42.0
    content_top: float = 55.0
    reserve_bottom: float = 40.0
    footer_zone: float = 20.0
    title_height: float = 8.0
    section_gap: float = 15.0
    head_row_height: float = 8.0
    row_height: float = 7.0
    summary_row_height: float = 10.0


class DashboardConfig(BaseModel):
    """Configuration for the dashboard view."""

    top_n: int = Field(default=5, ge=0)


class PreferencesConfig(BaseModel):
    """User preferences persisted by the CLI between runs."""

    processing_mode: Literal["fast", "precise"] = "fast"


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReportingConfig(BaseModel):
    """Main configuration model for the reporting engine."""

    currency: CurrencyConfig = Field(default_factory=CurrencyConfig)
    report: ReportHeaderConfig = Field(default_factory=ReportHeaderConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    preferences: PreferencesConfig = Field(default_factory=PreferencesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReportingConfig().model_dump(mode="json", exclude={"config_file_path"})


def load_config(config_path: Optional[Path] = None) -> ReportingConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReportingConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReportingConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    yaml_content = """# Reconciliation reporting configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(get_default_config(), default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")


def save_config(config: ReportingConfig, output_path: Path) -> None:
    """
    Persist a configuration, including updated preferences, to YAML.

    Args:
        config: Configuration to write
        output_path: Destination file
    """
    data = config.model_dump(mode="json", exclude={"config_file_path"})

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved preferences to: {output_path}")
