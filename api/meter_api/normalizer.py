"""
Maps the two producer formats onto one TelemetryIn.

Simple format:  {"deviceId", "nodeId", "current", "voltage", "powerFactor", "apparentPower"}
Wi-SUN format:  {"device", "parent", "chip", "running", ..., "current" | "Current", ...}

For every logical field the first defined key wins. A key is defined when it is
present and not null, so an explicit 0 is kept and never falls through to the alias.
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError
from .models import TelemetryIn

IDENTITY_KEYS: Dict[str, Tuple[str, ...]] = {
    "deviceId": ("deviceId", "device"),
    "nodeId": ("nodeId", "parent"),
}

MEASUREMENT_KEYS: Dict[str, Tuple[str, ...]] = {
    "current": ("current", "Current"),
    "voltage": ("voltage", "Voltage"),
    "powerFactor": ("powerFactor", "PowerFactor"),
    "apparentPower": ("apparentPower", "ApparentPower"),
}

# "parent" is also the mesh parent; it stays in the bag unless it supplied the node id
_CONSUMED = {
    key
    for aliases in list(IDENTITY_KEYS.values()) + list(MEASUREMENT_KEYS.values())
    for key in aliases
} - {"parent"}
_DROPPED = {"timestamp", "_id"}


def _first_defined(
    payload: Dict[str, Any], aliases: Tuple[str, ...], skip_blank: bool = False
) -> Tuple[Optional[str], Any]:
    for key in aliases:
        value = payload.get(key)
        if value is None or (skip_blank and value == ""):
            continue
        return key, value
    return None, None


def _as_identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def normalize(payload: Dict[str, Any]) -> TelemetryIn:
    if not isinstance(payload, dict):
        raise ValidationError(message="Payload must be a JSON object")

    missing: List[str] = []
    invalid: List[str] = []
    fields: Dict[str, Any] = {}
    used = set()

    for name, aliases in IDENTITY_KEYS.items():
        key, raw = _first_defined(payload, aliases, skip_blank=True)
        if raw is None:
            missing.append(name)
            continue
        used.add(key)
        identifier = _as_identifier(raw)
        if identifier is None:
            invalid.append(name)
        else:
            fields[name] = identifier

    for name, aliases in MEASUREMENT_KEYS.items():
        _, raw = _first_defined(payload, aliases)
        if raw is None:
            missing.append(name)
            continue
        number = _as_float(raw)
        if number is None:
            invalid.append(name)
        else:
            fields[name] = number

    if missing or invalid:
        raise ValidationError(missing=missing, invalid=invalid)

    diagnostics = {
        key: value
        for key, value in payload.items()
        if key not in _CONSUMED and key not in used and key not in _DROPPED
    }
    return TelemetryIn(diagnostics=diagnostics, **fields)
