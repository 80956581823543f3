"""Defaults management for pipeline tuning parameters"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("AssetIntake")

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "asset-intake"
CONFIG_FILE = CONFIG_DIR / "config.json"
ENV_PREFIX = "ASSET_INTAKE_"

NAMESPACES = ("logo", "palette", "documents", "pipeline")

# Hard limits that runtime, config and env values cannot exceed
CLAMPS = {
    ("palette", "max_candidates"): (0, 5),
    ("palette", "max_palette_size"): (0, 6),
    ("palette", "num_colors"): (1, 16),
    ("palette", "max_iterations"): (1, 100),
    ("palette", "sample_stride"): (1, 1000),
    ("pipeline", "io_workers"): (1, 64),
    ("pipeline", "cluster_workers"): (1, 64),
    ("pipeline", "commit_attempts"): (1, 10),
}


def _hardcoded_defaults() -> Dict[str, Dict[str, Any]]:
    return {
        "logo": {
            "max_dimension": 500,
            "keywords": ["logo", "icon", "badge", "mark", "symbol", "emblem", "watermark"],
        },
        "palette": {
            "max_candidates": 5,
            "num_colors": 5,
            "max_iterations": 10,
            "max_dim": 1024,
            "sample_stride": 10,
            "max_palette_size": 6,
            "merge_distance": 0.0,
        },
        "documents": {
            "extract_first_page": False,
            "excerpt_chars": 500,
        },
        "pipeline": {
            "target_ms": 120000,
            "io_workers": 4,
            "cluster_workers": os.cpu_count() or 1,
            "commit_attempts": 3,
        },
    }


def _coerce(value: Any, template: Any) -> Any:
    """Convert value to the type of the hardcoded default it overrides"""
    if isinstance(template, bool):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"not a boolean: {value!r}")
        return bool(value)
    if isinstance(template, int):
        if isinstance(value, bool):
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    if isinstance(template, float):
        return float(value)
    if isinstance(template, list):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(part) for part in value]
        raise ValueError(f"not a list: {value!r}")
    return value


class DefaultsManager:
    """Manages default values with precedence: per-call > runtime > config > env > hardcoded"""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else CONFIG_FILE
        self._hardcoded_defaults = _hardcoded_defaults()
        self._runtime_defaults: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        self._config_defaults = self._load_config_defaults()

    def _validate(self, namespace: str, key: str, value: Any) -> Any:
        if namespace not in self._hardcoded_defaults:
            raise KeyError(f"Invalid namespace: {namespace}. Must be one of {', '.join(NAMESPACES)}")
        if key not in self._hardcoded_defaults[namespace]:
            raise KeyError(f"Unknown setting '{key}' in namespace '{namespace}'")
        coerced = _coerce(value, self._hardcoded_defaults[namespace][key])
        bounds = CLAMPS.get((namespace, key))
        if bounds is not None:
            low, high = bounds
            coerced = max(low, min(high, coerced))
        return coerced

    def _clean_layer(self, layer: Dict[str, Any], source: str) -> Dict[str, Dict[str, Any]]:
        cleaned: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        for namespace, values in layer.items():
            if not isinstance(values, dict):
                continue
            for key, value in values.items():
                try:
                    cleaned[namespace][key] = self._validate(namespace, key, value)
                except (KeyError, ValueError, TypeError) as e:
                    logger.warning(f"Ignoring {source} default {namespace}.{key}: {e}")
        return cleaned

    def _load_config_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from config file"""
        if not self.config_file.exists():
            return {ns: {} for ns in NAMESPACES}
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load config file {self.config_file}: {e}")
            return {ns: {} for ns in NAMESPACES}
        return self._clean_layer(config.get("defaults", {}), "config")

    def _get_env_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from ASSET_INTAKE_<NAMESPACE>_<KEY> environment variables"""
        raw: Dict[str, Dict[str, Any]] = {ns: {} for ns in NAMESPACES}
        for namespace in NAMESPACES:
            for key in self._hardcoded_defaults[namespace]:
                value = os.getenv(f"{ENV_PREFIX}{namespace.upper()}_{key.upper()}")
                if value is not None:
                    raw[namespace][key] = value
        return self._clean_layer(raw, "env")

    def get_default(self, namespace: str, key: str, provided_value: Any = None) -> Any:
        """Get default value with precedence: provided > runtime > config > env > hardcoded"""
        if provided_value is not None:
            return self._validate(namespace, key, provided_value)

        if key in self._runtime_defaults.get(namespace, {}):
            return self._runtime_defaults[namespace][key]

        if key in self._config_defaults.get(namespace, {}):
            return self._config_defaults[namespace][key]

        env_defaults = self._get_env_defaults()
        if key in env_defaults.get(namespace, {}):
            return env_defaults[namespace][key]

        return self._hardcoded_defaults.get(namespace, {}).get(key)

    def get_namespace(self, namespace: str) -> Dict[str, Any]:
        """Effective settings for one namespace"""
        return self.get_all_defaults()[namespace]

    def get_all_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Get all effective defaults (merged from all sources)"""
        env_defaults = self._get_env_defaults()
        result = {}
        for namespace in NAMESPACES:
            merged = dict(self._hardcoded_defaults[namespace])
            merged.update(env_defaults.get(namespace, {}))
            merged.update(self._config_defaults.get(namespace, {}))
            merged.update(self._runtime_defaults.get(namespace, {}))
            result[namespace] = merged
        return result

    def set_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Set runtime defaults for a namespace. Returns validation errors if any."""
        if namespace not in NAMESPACES:
            return {"error": f"Invalid namespace: {namespace}. Must be one of {', '.join(NAMESPACES)}"}

        errors: List[str] = []
        validated: Dict[str, Any] = {}
        for key, value in defaults.items():
            try:
                validated[key] = self._validate(namespace, key, value)
            except (KeyError, ValueError, TypeError) as e:
                errors.append(str(e))

        if errors:
            return {"errors": errors}

        self._runtime_defaults[namespace].update(validated)
        logger.info(f"Updated runtime defaults for {namespace}: {validated}")
        return {"success": True, "updated": validated}

    def persist_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Persist defaults to config file"""
        result = self.set_defaults(namespace, defaults)
        if not result.get("success"):
            return result

        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        config: Dict[str, Any] = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
            except (json.JSONDecodeError, IOError):
                config = {}

        config.setdefault("defaults", {}).setdefault(namespace, {}).update(result["updated"])

        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            return {"error": f"Failed to write config file: {e}"}

        self._config_defaults = self._load_config_defaults()
        return {"success": True, "persisted": result["updated"]}
