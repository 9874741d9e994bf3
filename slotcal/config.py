"""
Configuration parser for slotcal.

Handles TOML file parsing into dataclasses.
"""

import tomllib
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from .event_model import Scope
from .event_storage import DEFAULT_STORAGE_KEY, get_default_storage_dir


@dataclass
class LabelsConfig:
    """Configuration for UI labels shown in scope prompts."""
    scope_single: str = "Only This Event"
    scope_future: str = "This and Future Events"
    scope_all: str = "All Events in Series"

    # Confirmation text for destructive scopes
    warning_future: str = "This will end the series at this point."
    warning_all: str = "This will delete the entire series."


@dataclass
class Config:
    """Main configuration container for slotcal."""

    storage_dir: Path = field(default_factory=get_default_storage_dir)
    storage_key: str = DEFAULT_STORAGE_KEY
    timezone: str = "UTC"
    labels: LabelsConfig = field(default_factory=LabelsConfig)

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'slotcal' / 'slotcal.toml'

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration from TOML file."""
        if config_path is None:
            config_path = cls.get_default_config_path()

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)

        # Parse General section
        general = data.get('General', {})
        storage_dir_str = general.get('storage_dir')
        storage_dir = (
            Path(os.path.expanduser(storage_dir_str)) if storage_dir_str
            else get_default_storage_dir()
        )

        # Parse Labels section
        labels_data = data.get('Labels', {})
        labels = LabelsConfig(
            scope_single=labels_data.get('scope_single', LabelsConfig.scope_single),
            scope_future=labels_data.get('scope_future', LabelsConfig.scope_future),
            scope_all=labels_data.get('scope_all', LabelsConfig.scope_all),
            warning_future=labels_data.get('warning_future', LabelsConfig.warning_future),
            warning_all=labels_data.get('warning_all', LabelsConfig.warning_all),
        )

        return cls(
            storage_dir=storage_dir,
            storage_key=general.get('storage_key', DEFAULT_STORAGE_KEY),
            timezone=general.get('timezone', 'UTC'),
            labels=labels,
        )


def scope_label(scope: Scope, labels: Optional[LabelsConfig] = None) -> str:
    """Prompt text for a scope choice."""
    labels = labels or LabelsConfig()
    return {
        Scope.SINGLE: labels.scope_single,
        Scope.FUTURE: labels.scope_future,
        Scope.ALL: labels.scope_all,
    }[Scope(scope)]


def scope_warning(scope: Scope, labels: Optional[LabelsConfig] = None) -> str:
    """Confirmation text for a delete with this scope, '' if none is needed."""
    labels = labels or LabelsConfig()
    return {
        Scope.SINGLE: "",
        Scope.FUTURE: labels.warning_future,
        Scope.ALL: labels.warning_all,
    }[Scope(scope)]
