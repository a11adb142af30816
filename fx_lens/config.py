"""Settings consumed by the conversion and annotation components.

Settings are immutable values. Hosts own a :class:`SettingsStore`; components
receive the current :class:`ExtensionSettings` explicitly and are told about
changes through ``on_change`` callbacks.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Mapping, Protocol

from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Mode(str, Enum):
    """How converted values are presented."""

    AUTO = "auto"
    SELECTION = "selection"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: "Mode | str") -> "Mode":
        if isinstance(value, Mode):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError("mode must be one of: auto, selection, manual") from None


# Keys used by the original key/value settings store.
_CAMEL_CASE_KEYS: dict[str, str] = {
    "targetCurrency": "target_currency",
    "baseCurrency": "base_currency",
    "decimalPlaces": "decimal_places",
    "rateOffset": "rate_offset_percent",
    "rateOffsetPercent": "rate_offset_percent",
    "extensionEnabled": "extension_enabled",
    "autoUpdate": "auto_update",
}


@dataclass(frozen=True, slots=True)
class ExtensionSettings:
    """Read-only configuration threaded into every component call."""

    mode: Mode = Mode.AUTO
    target_currency: str = "USD"
    base_currency: str = "USD"
    decimal_places: int = 2
    rate_offset_percent: float = 0.0
    extension_enabled: bool = True
    auto_update: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", Mode.parse(self.mode))
        object.__setattr__(self, "target_currency", self.target_currency.upper())
        object.__setattr__(self, "base_currency", self.base_currency.upper())
        if self.decimal_places < 0:
            raise ValueError("decimal_places must not be negative")

    @classmethod
    def from_mapping(cls, stored: Mapping[str, Any]) -> "ExtensionSettings":
        """Overlay stored values on the defaults, ignoring unknown keys."""

        known = set(cls.__dataclass_fields__)
        values: dict[str, Any] = {}
        for key, value in stored.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name in known:
                values[name] = value
        if "decimal_places" in values:
            values["decimal_places"] = int(values["decimal_places"])
        if "rate_offset_percent" in values:
            values["rate_offset_percent"] = float(values["rate_offset_percent"])
        return cls(**values)

    def to_mapping(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data


SettingsListener = Callable[[ExtensionSettings], None]


class SettingsStore(Protocol):
    """Read-only view of the host's settings."""

    def get(self) -> ExtensionSettings:
        ...  # pragma: no cover - protocol definition

    def on_change(self, callback: SettingsListener) -> Callable[[], None]:
        ...  # pragma: no cover - protocol definition


class InMemorySettingsStore:
    """Simple settings store for embedding hosts, scripts and tests."""

    def __init__(self, settings: ExtensionSettings | None = None) -> None:
        self._settings = settings or ExtensionSettings()
        self._listeners: list[SettingsListener] = []

    def get(self) -> ExtensionSettings:
        return self._settings

    def update(self, **changes: Any) -> ExtensionSettings:
        """Replace individual fields and notify every listener."""

        self._settings = replace(self._settings, **changes)
        LOGGER.debug("Settings updated: %s", sorted(changes))
        for listener in list(self._listeners):
            listener(self._settings)
        return self._settings

    def on_change(self, callback: SettingsListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe


__all__ = [
    "ExtensionSettings",
    "InMemorySettingsStore",
    "Mode",
    "SettingsListener",
    "SettingsStore",
]
