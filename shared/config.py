"""
Carapace Configuration Management
==================================

Centralized configuration for the Carapace decoder and its command-line
front end, using Python dataclasses and TOML-based persistence.

Every section falls back to its dataclass defaults, so an absent or
partial ``carapace.toml`` yields a fully usable configuration.

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "carapace.toml"


# ========================== Decoder Settings ===============================


@dataclass(frozen=False, slots=True)
class DecoderConfig:
    """Configuration for the PE header chain and table decoders.

    Attributes:
        strict:          Reject a missing ``MZ`` signature or an unknown
                         optional-header magic instead of warning.
        max_sections:    Upper bound accepted for ``number_of_sections``.
        honor_rva_count: Read only ``number_of_rva_and_sizes`` data
                         directories; the remainder are zero entries.
        translate_rva:   Map the import directory RVA through the section
                         table.  When off, the RVA is used as a raw file
                         offset.
        max_name_length: Byte cap for null-terminated DLL names.
    """

    strict: bool = True
    max_sections: int = 4096
    honor_rva_count: bool = True
    translate_rva: bool = True
    max_name_length: int = 256


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings: logging verbosity and destinations."""

    log_level: str = "WARNING"
    log_file: str | None = None
    log_json: bool = False
    debug: bool = False
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class CarapaceConfig:
    """Master configuration aggregating global and decoder settings.

    Usage:
        >>> config = CarapaceConfig.load()                  # from default path
        >>> config = CarapaceConfig.load("custom.toml")     # from custom path
        >>> config.decoder.strict
        True
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> CarapaceConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``carapace.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`CarapaceConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            decoder=cls._build_section(DecoderConfig, raw.get("decoder", {})),
        )

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that newer config
        files still load.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


# ========================= Module-level convenience ========================

def get_config(path: str | Path | None = None) -> CarapaceConfig:
    """Module-level convenience wrapper around :meth:`CarapaceConfig.load`.

    Caches the result so that repeated calls share one instance.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = CarapaceConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
