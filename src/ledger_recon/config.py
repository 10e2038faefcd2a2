"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StatementInputConfig(BaseModel):
    """Configuration for reading statement files."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_format: str = "%d/%m/%Y"
    column_mappings: dict[str, str] = Field(
        default_factory=lambda: {
            "date": "Date",
            "description": "Description",
            "amount": "Amount",
            "debit": "Debit",
            "credit": "Credit",
            "balance": "Balance",
        }
    )


class LedgerInputConfig(BaseModel):
    """Configuration for reading ledger CSV exports."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_format: str = "%Y-%m-%d"
    counter_account_id: str = "uncategorised"
    column_mappings: dict[str, str] = Field(
        default_factory=lambda: {
            "transaction_id": "Transaction_ID",
            "date": "Date",
            "payee": "Payee",
            "amount": "Amount",
            "memo": "Memo",
        }
    )


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    statement: StatementInputConfig = Field(default_factory=StatementInputConfig)
    ledger: LedgerInputConfig = Field(default_factory=LedgerInputConfig)


class ScoringConfig(BaseModel):
    """Points awarded by each independent match signal."""

    date_exact_points: int = 40
    date_one_day_points: int = 25
    date_three_days_points: int = 15
    amount_exact_points: int = 30
    amount_close_points: int = 15
    amount_exact_tolerance: float = 0.01
    amount_close_tolerance: float = 1.00
    description_high_points: int = 20
    description_medium_points: int = 10
    description_high_threshold: float = 0.8
    description_medium_threshold: float = 0.5


class TierThresholds(BaseModel):
    """Minimum score for each match tier."""

    exact: int = 80
    probable: int = 60
    possible: int = 40


class MatchingConfig(BaseModel):
    """Configuration for matching engine."""

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    tiers: TierThresholds = Field(default_factory=TierThresholds)
    date_padding_days: int = 7
    exclude_reconciled: bool = True


class SessionConfig(BaseModel):
    """Configuration for reconciliation sessions."""

    balance_tolerance: float = 0.01


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    exact: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Exact Matches"))
    probable: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Probable Matches"))
    possible: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Possible Matches"))
    unmatched_statement: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Statement")
    )
    unmatched_ledger: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Ledger")
    )


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": {
            "statement": {
                "encoding": "utf-8",
                "delimiter": ",",
                "date_format": "%d/%m/%Y",
                "column_mappings": {
                    "date": "Date",
                    "description": "Description",
                    "amount": "Amount",
                    "debit": "Debit",
                    "credit": "Credit",
                    "balance": "Balance",
                },
            },
            "ledger": {
                "encoding": "utf-8",
                "delimiter": ",",
                "date_format": "%Y-%m-%d",
                "counter_account_id": "uncategorised",
                "column_mappings": {
                    "transaction_id": "Transaction_ID",
                    "date": "Date",
                    "payee": "Payee",
                    "amount": "Amount",
                    "memo": "Memo",
                },
            },
        },
        "matching": {
            "scoring": {
                "date_exact_points": 40,
                "date_one_day_points": 25,
                "date_three_days_points": 15,
                "amount_exact_points": 30,
                "amount_close_points": 15,
                "amount_exact_tolerance": 0.01,
                "amount_close_tolerance": 1.00,
                "description_high_points": 20,
                "description_medium_points": 10,
                "description_high_threshold": 0.8,
                "description_medium_threshold": 0.5,
            },
            "tiers": {
                "exact": 80,
                "probable": 60,
                "possible": 40,
            },
            "date_padding_days": 7,
            "exclude_reconciled": True,
        },
        "session": {
            "balance_tolerance": 0.01,
        },
        "output": {
            "excel": {
                "filename_template": "reconciliation_report_{date}_{time}.xlsx",
                "include_timestamp": True,
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "exact": {"enabled": True, "name": "Exact Matches"},
                "probable": {"enabled": True, "name": "Probable Matches"},
                "possible": {"enabled": True, "name": "Possible Matches"},
                "unmatched_statement": {"enabled": True, "name": "Unmatched Statement"},
                "unmatched_ledger": {"enabled": True, "name": "Unmatched Ledger"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except PydanticValidationError as e:
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
    config_dict = get_default_config()

    yaml_content = """# Bank Statement to Ledger Reconciliation Configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
