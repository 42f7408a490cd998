"""
Configuration Loader (``portfolio_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``portfolio_config.schema`` types.  Runtime callers go through
``portfolio_config.get_active_settings()`` rather than calling this module.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections and unknown keys are rejected; a typo never silently
  falls back to a default.
* Amounts and ratios are parsed as ``Decimal`` from their string form.
* ``compute_checksum`` is a deterministic SHA-256 over the raw document.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad section, key or value  -> ``ConfigurationError(section, detail)``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from portfolio_config.schema import (
    BatchSettings,
    IntakeSettings,
    InvestmentSettings,
    MilestoneSettings,
    NormalizerSettings,
    RoundSettings,
    SynthesisSettings,
    ValuationSettings,
)
from portfolio_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", f"expected a mapping, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------


def parse_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse decimal from {value!r}") from exc


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal_range(value: Any) -> tuple[Decimal, Decimal]:
    low, high = _pair(value)
    low, high = parse_decimal(low), parse_decimal(high)
    if high <= low:
        raise ValueError(f"empty range [{low}, {high})")
    return low, high


def parse_date_window(value: Any) -> tuple[date, date]:
    start, end = _pair(value)
    start, end = parse_date(start), parse_date(end)
    if end < start:
        raise ValueError(f"window ends before it starts: {start} > {end}")
    return start, end


def _pair(value: Any) -> tuple[Any, Any]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"expected a two-item list, got {value!r}")
    return value[0], value[1]


def _positive_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"expected a positive integer, got {value!r}")
    return value


def _check_keys(section: str, data: Any, allowed: type) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(section, f"expected a mapping, got {data!r}")
    unknown = sorted(set(data) - set(allowed.__dataclass_fields__))
    if unknown:
        raise ConfigurationError(section, f"unknown keys: {', '.join(unknown)}")
    return data


def _section(section: str, data: Any, cls: type, parsers: dict[str, Any]) -> Any:
    """Build ``cls`` from ``data``, applying the per-key parser to present keys."""
    data = _check_keys(section, data, cls)
    kwargs = {}
    for key, value in data.items():
        parser = parsers.get(key)
        try:
            kwargs[key] = parser(value) if parser else value
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(section, f"{key}: {exc}") from exc
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def parse_normalizer(data: Any) -> NormalizerSettings:
    return _section("normalizer", data, NormalizerSettings, {
        "threshold": parse_decimal,
        "factor": parse_decimal,
        "ratio_ceiling": parse_decimal,
        "ratio_factor": parse_decimal,
    })


def parse_rounds(data: Any) -> RoundSettings:
    return _section("rounds", data, RoundSettings, {
        "labels": lambda v: tuple(str(label) for label in v),
        "default_latest_label": str,
        "raised_ratio": parse_decimal_range,
        "cap_ratio": parse_decimal_range,
        "minimum_investment_floor": parse_decimal,
        "minimum_investment_rate": parse_decimal,
        "start_window": parse_date_window,
        "end_window": parse_date_window,
    })


def parse_investments(data: Any) -> InvestmentSettings:
    return _section("investments", data, InvestmentSettings, {
        "investors_per_round": _positive_int,
        "max_investors": _positive_int,
        "ownership_cap": parse_decimal,
        "investment_type": str,
        "created_window": parse_date_window,
    })


def _parse_team_bands(value: Any) -> tuple[tuple[int, str], ...]:
    bands = []
    for item in value:
        if isinstance(item, dict):
            bands.append((int(item["threshold"]), str(item["label"])))
        else:
            threshold, label = _pair(item)
            bands.append((int(threshold), str(label)))
    return tuple(bands)


def parse_milestones(data: Any) -> MilestoneSettings:
    return _section("milestones", data, MilestoneSettings, {
        "acquisition_impact": parse_decimal,
        "revenue_threshold": parse_decimal,
        "revenue_high_impact": parse_decimal,
        "revenue_low_impact": parse_decimal,
        "profitability_impact": parse_decimal,
        "team_growth_impact": parse_decimal,
        "team_bands": _parse_team_bands,
        "acquisition_window": parse_date_window,
        "team_window": parse_date_window,
        "fiscal_year_close": parse_date,
    })


def parse_valuation(data: Any) -> ValuationSettings:
    return _section("valuation", data, ValuationSettings, {
        "seed_fraction": parse_decimal,
        "growth_ratio": parse_decimal_range,
        "base_year": int,
    })


def _non_negative_float(value: Any) -> float:
    parsed = float(value)
    if parsed < 0:
        raise ValueError(f"expected a non-negative number, got {value!r}")
    return parsed


def parse_batch(data: Any) -> BatchSettings:
    return _section("batch", data, BatchSettings, {
        "chunk_size": _positive_int,
        "delay_seconds": _non_negative_float,
        "seed": lambda v: None if v is None else int(v),
        "top_n": _positive_int,
    })


def parse_intake(data: Any) -> IntakeSettings:
    return _section("intake", data, IntakeSettings, {
        "chunk_size": _positive_int,
        "delay_seconds": _non_negative_float,
        "funding_unit_factor": parse_decimal,
        "owner_id": lambda v: None if v is None else str(v),
    })


_SECTION_PARSERS = {
    "normalizer": parse_normalizer,
    "rounds": parse_rounds,
    "investments": parse_investments,
    "milestones": parse_milestones,
    "valuation": parse_valuation,
    "batch": parse_batch,
    "intake": parse_intake,
}


def parse_settings(data: dict[str, Any], source: str = "<inline>") -> SynthesisSettings:
    """Parse a whole settings document.  Absent sections take their defaults."""
    unknown = sorted(set(data) - set(_SECTION_PARSERS))
    if unknown:
        raise ConfigurationError("<root>", f"unknown sections: {', '.join(unknown)}")
    sections = {
        name: parser(data.get(name)) for name, parser in _SECTION_PARSERS.items()
    }
    return SynthesisSettings(
        **sections,
        source=source,
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> SynthesisSettings:
    return parse_settings(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
