"""Configuration manager for persistent settings."""
from __future__ import annotations

import copy
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .logger import get_logger
from .prompts import CorrectionStyle
from .providers import Provider

logger = get_logger(__name__)

CONFIG_DIR_NAME = ".polycorrect"
CONFIG_FILE_NAME = "polycorrect_config.json"
STARTUP_APP_NAME = "PolyCorrect"

DEFAULT_MODELS: Dict[Provider, str] = {
    Provider.OPENAI: "gpt-5-mini",
    Provider.ANTHROPIC: "claude-3-7-sonnet-latest",
    Provider.GEMINI: "gemini-2.5-flash",
    Provider.DEEPSEEK: "deepseek-chat",
}

API_KEY_ENV_VARS: Dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
    Provider.DEEPSEEK: "DEEPSEEK_API_KEY",
}

REASONING_EFFORTS = ("minimal", "low", "medium", "high")
VERBOSITY_LEVELS = ("low", "medium", "high")
STYLE_KEYS = tuple(style.value for style in CorrectionStyle)

# Validation schema per section: key -> (type, validator, message)
SchemaEntry = Tuple[type, Callable[[Any], bool], str]

CONFIG_SCHEMA: Dict[str, Dict[str, SchemaEntry]] = {
    "api_keys": {
        provider.display_name: (str, lambda x: True, "Must be a string") for provider in Provider
    },
    "models": {
        provider.display_name: (str, lambda x: len(x) > 0, "Must be a non-empty string") for provider in Provider
    },
    "settings": {
        "auto_startup": (bool, lambda x: True, "Must be a boolean"),
        "default_style": (str, lambda x: x in STYLE_KEYS, f"Must be one of {', '.join(STYLE_KEYS)}"),
        "highlight_diffs": (bool, lambda x: True, "Must be a boolean"),
        "streaming": (bool, lambda x: True, "Must be a boolean"),
        "hotkey": (str, lambda x: len(x) > 0, "Must be a non-empty string"),
        "minimize_to_tray": (bool, lambda x: True, "Must be a boolean"),
    },
    "ai_settings": {
        "reasoning_effort": (str, lambda x: x in REASONING_EFFORTS, f"Must be one of {', '.join(REASONING_EFFORTS)}"),
        "verbosity": (str, lambda x: x in VERBOSITY_LEVELS, f"Must be one of {', '.join(VERBOSITY_LEVELS)}"),
    },
}


def validate_config_value(section: str, key: str, value: Any) -> Tuple[bool, str]:
    """Validate a single configuration value.

    Args:
        section: Top-level section name (``settings``, ``models``...)
        key: Key inside the section
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    schema = CONFIG_SCHEMA.get(section, {})
    if key not in schema:
        return True, ""  # Unknown keys are allowed (for forward compatibility)

    expected_type, validator, error_msg = schema[key]

    if not isinstance(value, expected_type):
        return False, f"{section}.{key}: {error_msg} (got {type(value).__name__})"

    if not validator(value):
        return False, f"{section}.{key}: {error_msg} (value: {value})"

    return True, ""


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate an entire configuration dictionary.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    for section in CONFIG_SCHEMA:
        values = config.get(section)
        if values is None:
            continue
        if not isinstance(values, dict):
            errors.append(f"{section}: Must be an object (got {type(values).__name__})")
            continue
        for key, value in values.items():
            is_valid, error_msg = validate_config_value(section, key, value)
            if not is_valid:
                errors.append(error_msg)

    return len(errors) == 0, errors


def default_config() -> Dict[str, Any]:
    return {
        "api_keys": {provider.display_name: "" for provider in Provider},
        "models": {provider.display_name: DEFAULT_MODELS[provider] for provider in Provider},
        "settings": {
            "auto_startup": False,
            "default_style": CorrectionStyle.NORMAL.value,
            "highlight_diffs": False,
            "streaming": True,
            "hotkey": "ctrl+shift+c",
            "minimize_to_tray": True,
        },
        "ai_settings": {
            "reasoning_effort": "high",
            "verbosity": "medium",
        },
    }


ProviderKey = Union[Provider, str]


def _provider_name(provider: ProviderKey) -> str:
    if isinstance(provider, Provider):
        return provider.display_name
    return Provider.from_name(provider).display_name


class ConfigManager:
    """
    Manages application configuration with JSON persistence.

    The file lives in ``~/.polycorrect/`` and holds one API key and model per
    provider plus the application and AI settings. Missing keys are filled
    from the defaults on load; a missing or unreadable file yields the
    defaults. Empty API keys are not an error here, they fall back to the
    provider's environment variable and otherwise fail validation when a
    correction is dispatched.
    """

    def __init__(self, config_file: str = CONFIG_FILE_NAME, config_dir: Optional[Path] = None):
        """Initialize config manager."""
        self.config_dir = Path(config_dir) if config_dir is not None else Path.home() / CONFIG_DIR_NAME
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / config_file
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, merged over the defaults."""
        data = None
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

        config = default_config()
        if not isinstance(data, dict):
            return config

        for section, values in data.items():
            if isinstance(config.get(section), dict) and isinstance(values, dict):
                config[section].update(values)
            else:
                config[section] = values

        is_valid, errors = validate_config(config)
        if not is_valid:
            logger.warning(f"Config validation errors: {'; '.join(errors)}")
        return config

    def save(self) -> bool:
        """Save current configuration to file with validation."""
        is_valid, errors = validate_config(self.config)
        if not is_valid:
            logger.warning(f"Config validation errors: {'; '.join(errors)}")
            logger.warning("Saving anyway, but some values may be invalid")

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            return False

    def _section(self, section: str) -> Dict[str, Any]:
        values = self.config.get(section)
        if not isinstance(values, dict):
            values = copy.deepcopy(default_config()[section])
            self.config[section] = values
        return values

    # ── Providers ─────────────────────────────────────────────

    def get_api_key(self, provider: ProviderKey) -> Optional[str]:
        """Return the saved key, or the provider's environment variable."""
        name = _provider_name(provider)
        key = self._section("api_keys").get(name, "")
        if isinstance(key, str) and key.strip():
            return key.strip()
        env_key = os.environ.get(API_KEY_ENV_VARS[Provider.from_name(name)], "").strip()
        return env_key or None

    def set_api_key(self, provider: ProviderKey, api_key: str) -> bool:
        self._section("api_keys")[_provider_name(provider)] = api_key.strip()
        return self.save()

    def get_model(self, provider: ProviderKey) -> str:
        name = _provider_name(provider)
        model = self._section("models").get(name)
        if isinstance(model, str) and model.strip():
            return model.strip()
        return DEFAULT_MODELS[Provider.from_name(name)]

    def set_model(self, provider: ProviderKey, model: str) -> bool:
        self._section("models")[_provider_name(provider)] = model.strip()
        return self.save()

    # ── Settings ──────────────────────────────────────────────

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self._section("settings").get(key, default)

    def set_setting(self, key: str, value: Any) -> bool:
        is_valid, error_msg = validate_config_value("settings", key, value)
        if not is_valid:
            logger.warning(f"Rejected setting: {error_msg}")
            return False
        self._section("settings")[key] = value
        return self.save()

    def get_ai_setting(self, key: str, default: Any = None) -> Any:
        return self._section("ai_settings").get(key, default)

    def set_ai_setting(self, key: str, value: Any) -> bool:
        is_valid, error_msg = validate_config_value("ai_settings", key, value)
        if not is_valid:
            logger.warning(f"Rejected AI setting: {error_msg}")
            return False
        self._section("ai_settings")[key] = value
        return self.save()

    def get_default_style(self) -> CorrectionStyle:
        return CorrectionStyle.from_str(self.get_setting("default_style"))

    def is_streaming(self) -> bool:
        return bool(self.get_setting("streaming", True))

    def should_highlight_diffs(self) -> bool:
        return bool(self.get_setting("highlight_diffs", False))

    def should_minimize_to_tray(self) -> bool:
        return bool(self.get_setting("minimize_to_tray", True))

    def get_hotkey(self) -> str:
        return self.get_setting("hotkey") or "ctrl+shift+c"

    def is_auto_startup(self) -> bool:
        return bool(self.get_setting("auto_startup", False))

    def set_auto_startup(self, enabled: bool) -> bool:
        """Save the auto-startup flag and update the Windows Run key."""
        saved = self.set_setting("auto_startup", enabled)
        if sys.platform == "win32":
            self._update_startup_registry(enabled)
        return saved

    def _update_startup_registry(self, enabled: bool) -> bool:
        """Add/remove the app from the current user's Windows startup entries."""
        import winreg

        key_path = r"Software\Microsoft\Windows\CurrentVersion\Run"

        if getattr(sys, 'frozen', False):
            app_path = sys.executable
        else:
            app_path = f'"{sys.executable}" -m polycorrect.main'

        try:
            key = winreg.OpenKey(
                winreg.HKEY_CURRENT_USER,
                key_path,
                0,
                winreg.KEY_SET_VALUE | winreg.KEY_QUERY_VALUE
            )
        except OSError as e:
            logger.error(f"Failed to open startup registry key: {e}")
            return False

        try:
            if enabled:
                winreg.SetValueEx(key, STARTUP_APP_NAME, 0, winreg.REG_SZ, app_path)
                logger.info("Added to Windows startup")
            else:
                try:
                    winreg.DeleteValue(key, STARTUP_APP_NAME)
                    logger.info("Removed from Windows startup")
                except FileNotFoundError:
                    pass  # Already not in startup
            return True
        except OSError as e:
            logger.error(f"Failed to update startup registry: {e}")
            return False
        finally:
            winreg.CloseKey(key)

    def reset_to_defaults(self) -> bool:
        """Reset all settings to default values."""
        self.config = default_config()
        success = self.save()
        if success:
            logger.info("Configuration reset to defaults")
        return success

    def delete_config_file(self) -> bool:
        """Delete the configuration file completely."""
        try:
            if self.config_file.exists():
                self.config_file.unlink()
                logger.info("Configuration file deleted")
                return True
            return False
        except OSError as e:
            logger.error(f"Failed to delete config file: {e}")
            return False
