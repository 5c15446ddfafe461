from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

DS2490_VENDOR_ID = 0x04FA
DS2490_PRODUCT_ID = 0x2490


@dataclass
class BridgeConfig:
    vendor_id: int = DS2490_VENDOR_ID
    product_id: int = DS2490_PRODUCT_ID
    configuration: int = 1
    interface: int = 0
    alt_setting: int = 3
    timeout_ms: int = 5000
    idle_timeout_s: float = 5.0


@dataclass
class SessionConfig:
    commit_delay_s: float = 1.0  # copy-scratchpad settle time
    require_single_device: bool = False


@dataclass
class IButtonConfig:
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)  # type: ignore[index]
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path | str] = None, overrides: Sequence[str] | None = None) -> IButtonConfig:
    """
    Load the bridge/session configuration from JSON and apply CLI-style overrides.

    Without a path the built-in defaults are used. Overrides are dotted
    `key=value` pairs, e.g.:
        ["bridge.timeout_ms=2000", "session.commit_delay_s=0.5"]
    """
    data: Dict[str, Any] = _load_json(Path(path)) if path is not None else {}
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    merged = _merge(data, override_data)
    bridge_data = merged.get("bridge") or {}
    session_data = merged.get("session") or {}
    unknown = set(merged) - {"bridge", "session"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    return IButtonConfig(
        bridge=BridgeConfig(
            vendor_id=int(bridge_data.get("vendor_id", DS2490_VENDOR_ID)),
            product_id=int(bridge_data.get("product_id", DS2490_PRODUCT_ID)),
            configuration=int(bridge_data.get("configuration", 1)),
            interface=int(bridge_data.get("interface", 0)),
            alt_setting=int(bridge_data.get("alt_setting", 3)),
            timeout_ms=int(bridge_data.get("timeout_ms", 5000)),
            idle_timeout_s=float(bridge_data.get("idle_timeout_s", 5.0)),
        ),
        session=SessionConfig(
            commit_delay_s=float(session_data.get("commit_delay_s", 1.0)),
            require_single_device=_as_bool(
                session_data.get("require_single_device", False), "session.require_single_device"
            ),
        ),
    )


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError("Override key may not be empty")
    value = _coerce_value(raw_value.strip())
    return key, value


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    if raw.lower().startswith("0x"):
        try:
            return int(raw, 16)
        except ValueError:
            return raw
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    if raw.startswith("{") and raw.endswith("}"):
        return json.loads(raw)
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
