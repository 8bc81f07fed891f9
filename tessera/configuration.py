"""Layered configuration loader for Tessera."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigurationError
from .languages import normalize_language_code
from .policy import (
    DEFAULT_POLICY as FALLBACK_POLICY,
    LegacyOverwriteMode,
    OverwritePolicy,
    resolve_language_policies,
)

APP_NAME = "tessera"
ENV_PREFIX = "TESSERA_"
LIST_FIELDS = ("TARGET_LANGUAGES", "DO_NOT_TRANSLATE", "VERBATIM_FIELD_TYPES")


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_language_modes(value: Any) -> Dict[str, OverwritePolicy]:
    if isinstance(value, str):
        pairs = {}
        for item in _split_list(value):
            language, separator, mode = item.partition("=")
            if not separator or not language.strip():
                raise ValueError(
                    f"LANGUAGE_MODES entry {item!r} must look like 'fr-FR=keep'."
                )
            pairs[language] = mode
        value = pairs
    if not isinstance(value, Mapping):
        raise ValueError("LANGUAGE_MODES must be a mapping or a 'lang=mode,...' string.")
    return {
        normalize_language_code(str(language)): OverwritePolicy.parse(mode)
        for language, mode in value.items()
    }


class TesseraConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="ignore")

    SOURCE_LANGUAGE: Optional[str] = Field(
        default=None,
        description="Language code of the source column.",
    )
    TARGET_LANGUAGES: List[str] = Field(default_factory=list)
    DO_NOT_TRANSLATE: List[str] = Field(default_factory=list)
    OVERWRITE_MODE: Optional[LegacyOverwriteMode] = Field(
        default=None,
        description="Global mode used when a language has no explicit policy.",
    )
    LANGUAGE_MODES: Dict[str, OverwritePolicy] = Field(default_factory=dict)
    DEFAULT_POLICY: OverwritePolicy = FALLBACK_POLICY
    TM_FUZZY_THRESHOLD: int = Field(default=70, ge=0, le=100)
    TM_AUTO_APPLY_THRESHOLD: int = Field(default=95, ge=0, le=100)
    SOURCE_COLUMN: int = Field(default=3, ge=0)
    VERBATIM_FIELD_TYPES: List[str] = Field(default_factory=lambda: ["URL"])
    FIELD_TYPE_COLUMN: int = Field(default=2, ge=0)

    @model_validator(mode="before")
    @classmethod
    def normalise_inputs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name in LIST_FIELDS:
            raw_value = data.get(name)
            if isinstance(raw_value, str):
                data[name] = _split_list(raw_value)
        if isinstance(data.get("TARGET_LANGUAGES"), list):
            data["TARGET_LANGUAGES"] = [
                normalize_language_code(str(code)) for code in data["TARGET_LANGUAGES"]
            ]
        source = data.get("SOURCE_LANGUAGE")
        if isinstance(source, str):
            data["SOURCE_LANGUAGE"] = normalize_language_code(source) or None
        mode = data.get("OVERWRITE_MODE")
        if isinstance(mode, str):
            data["OVERWRITE_MODE"] = LegacyOverwriteMode.parse(mode) if mode.strip() else None
        if data.get("LANGUAGE_MODES") not in (None, ""):
            data["LANGUAGE_MODES"] = _parse_language_modes(data["LANGUAGE_MODES"])
        else:
            data.pop("LANGUAGE_MODES", None)
        return data

    @model_validator(mode="after")
    def resolve_policies(self) -> "TesseraConfig":
        if self.TM_AUTO_APPLY_THRESHOLD < self.TM_FUZZY_THRESHOLD:
            raise ValueError(
                "TM_AUTO_APPLY_THRESHOLD must be greater than or equal to "
                "TM_FUZZY_THRESHOLD."
            )
        self.LANGUAGE_MODES = resolve_language_policies(
            self.TARGET_LANGUAGES,
            self.LANGUAGE_MODES,
            self.OVERWRITE_MODE,
        )
        if self.OVERWRITE_MODE is not None:
            self.DEFAULT_POLICY = self.OVERWRITE_MODE.to_policy()
        return self

    def policy_for(self, language: str) -> OverwritePolicy:
        return self.LANGUAGE_MODES.get(
            normalize_language_code(language), self.DEFAULT_POLICY
        )


@dataclass(frozen=True)
class ConfigInstance:
    """A validated model together with where each value came from."""

    model: TesseraConfig
    provenance: Dict[str, str] = field(default_factory=dict)

    def source_of(self, key: str) -> Optional[str]:
        return self.provenance.get(key)


def load_config(
    app_dir: Optional[Path] = None,
    *,
    home_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ConfigInstance:
    """Read every configuration layer and validate the merged result."""

    base_dir = Path(app_dir) if app_dir else Path.cwd()
    home = Path(home_dir) if home_dir else Path.home()
    provenance: Dict[str, str] = {}

    combined = _load_discovered_yaml(
        [home / f".{APP_NAME}.yaml", base_dir / f"{APP_NAME}.yaml"],
        provenance=provenance,
    )
    _merge_env_sources(
        combined,
        provenance=provenance,
        app_dir=base_dir,
        environ=os.environ if environ is None else environ,
    )

    try:
        model = TesseraConfig.model_validate(combined)
    except ValidationError as exc:
        raise ConfigurationError(
            _format_validation_errors(exc.errors(), provenance)
        ) from exc
    return ConfigInstance(model=model, provenance=provenance)


def _load_discovered_yaml(
    paths: Sequence[Path],
    *,
    provenance: Dict[str, str],
) -> Dict[str, Any]:
    """Merge YAML files in order; later files win."""

    result: Dict[str, Any] = {}
    for path in paths:
        if not path.is_file():
            continue
        try:
            with path.open("r", encoding="utf-8") as handle:
                parsed = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Configuration file {path} could not be read: {exc}"
            ) from exc
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise ConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        for key, value in parsed.items():
            name = str(key).upper()
            result[name] = value
            provenance[name] = f"file:{path}"
    return result


def _merge_env_sources(
    target: Dict[str, Any],
    *,
    provenance: Dict[str, str],
    app_dir: Path,
    environ: Mapping[str, str],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(TesseraConfig.model_fields.keys())

    def merge_values(values: Mapping[str, Optional[str]], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None or not key.startswith(ENV_PREFIX):
                continue
            name = key[len(ENV_PREFIX):]
            if name not in allowed:
                continue
            target[name] = value
            provenance[name] = f"env:{source_prefix}:{key}"

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path), source_prefix=".env")

    merge_values(
        {k: v for k, v in environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _format_validation_errors(
    entries: Sequence[Mapping[str, Any]],
    provenance: Mapping[str, str],
) -> str:
    details: List[str] = []
    for entry in entries:
        path = entry.get("loc") or ()
        location = ".".join(str(part) for part in path if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        source = provenance.get(str(path[0])) if path else None
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=8)
def _load_config_instance(app_dir: Optional[Path] = None) -> ConfigInstance:
    """Load configuration layers once per directory and cache the result."""

    return load_config(app_dir)


def get_config(app_dir: Optional[Path] = None) -> ConfigInstance:
    """Return the cached configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Optional[Path] = None) -> TesseraConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model


def clear_settings_cache() -> None:
    _load_config_instance.cache_clear()
