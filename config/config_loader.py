import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, List
import yaml

from utils.logger import setup_logger

logger = setup_logger(__name__)


class ConfigurationError(Exception):
    pass


class ConfigLoader:
    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None:
            base_dir = Path(__file__).resolve().parent
            config_path = base_dir / "config.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[Dict[str, Any]] = None
        self._last_loaded: Optional[float] = None

    def load(self, force_reload: bool = False) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise ConfigurationError(f"config file not found: {self.config_path}")

        current_mtime = self.config_path.stat().st_mtime

        if not force_reload and self._config is not None and self._last_loaded == current_mtime:
            return self._config

        logger.info(
            "Loading configuration from file",
            extra={"config_path": str(self.config_path)}
        )

        with open(self.config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raise ConfigurationError("config file is empty")

        self._config = self._interpolate_env_vars(raw_config)
        self._last_loaded = current_mtime

        logger.info("Configuration loaded successfully")

        return self._config

    def _interpolate_env_vars(self, config: Any) -> Any:
        if isinstance(config, dict):
            return {
                key: self._interpolate_env_vars(value)
                for key, value in config.items()
            }
        elif isinstance(config, list):
            return [self._interpolate_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._replace_env_vars_in_string(config)
        else:
            return config

    def _replace_env_vars_in_string(self, value: str) -> str:
        pattern = re.compile(r'\$\{([^}]+)\}')

        def replacer(match):
            env_var = match.group(1)
            env_value = os.getenv(env_var)

            if env_value is None:
                logger.warning(
                    f"Environment variable not found: {env_var}",
                    extra={"env_var": env_var}
                )
                return match.group(0)

            return env_value

        return pattern.sub(replacer, value)

    def get(self, path: str, default: Any = None) -> Any:
        if self._config is None:
            self.load()

        keys = path.split('.')
        current = self._config

        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current


def _is_unit_interval(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1


class ConfigValidator:
    @staticmethod
    def validate_text_extraction_config(config: Dict[str, Any]) -> List[str]:
        errors = []

        text = config.get('ingestion', {}).get('text_extraction', {})

        min_chars = text.get('native_min_chars')
        if not isinstance(min_chars, int) or min_chars < 0:
            errors.append(f"invalid native_min_chars: {min_chars}")

        floor = text.get('confidence_floor')
        if not _is_unit_interval(floor):
            errors.append(f"invalid text_extraction confidence_floor: {floor} (must be between 0 and 1)")

        return errors

    @staticmethod
    def validate_ocr_config(config: Dict[str, Any]) -> List[str]:
        errors = []

        ocr = config.get('ingestion', {}).get('ocr', {})

        for key in ['confidence_floor', 'confidence_factor']:
            value = ocr.get(key)
            if not _is_unit_interval(value):
                errors.append(f"invalid ocr {key}: {value} (must be between 0 and 1)")

        dpi = ocr.get('dpi')
        if dpi is not None and (not isinstance(dpi, int) or dpi < 72 or dpi > 1200):
            errors.append(f"invalid ocr dpi: {dpi}")

        language = ocr.get('language')
        if language is not None and (not isinstance(language, str) or not language.strip()):
            errors.append(f"invalid ocr language: {language!r}")

        return errors

    @staticmethod
    def validate(config: Dict[str, Any]) -> List[str]:
        all_errors = []

        all_errors.extend(ConfigValidator.validate_text_extraction_config(config))
        all_errors.extend(ConfigValidator.validate_ocr_config(config))

        return all_errors


def init_config_loader(config_path: Optional[Path] = None) -> ConfigLoader:
    config_loader = ConfigLoader(config_path=config_path)

    config = config_loader.load()

    validation_errors = ConfigValidator.validate(config)
    if validation_errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {err}" for err in validation_errors)
        logger.error(error_msg)
        raise ConfigurationError(error_msg)

    logger.info("Configuration validated successfully")

    return config_loader
