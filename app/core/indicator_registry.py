from __future__ import annotations

from dataclasses import dataclass
import importlib
import importlib.util
import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from indicators.models import IndicatorDefinition, IndicatorInstance, NumberParam
from indicators.runtime import run_calculation
from indicators.schema import default_config, definition_from_schema, resolve_config, validate_config


logger = logging.getLogger(__name__)


# Builtin calculator modules under indicators/builtins, in menu order.
BUILTIN_INDICATORS: Tuple[str, ...] = (
    # moving averages
    "sma",
    "ema",
    "wma",
    "vwma",
    # oscillators
    "rsi",
    "macd",
    "stoch",
    "stoch_rsi",
    "williams_r",
    "cci",
    "roc",
    "momentum",
    "mfi",
    # volatility
    "bb",
    "keltner",
    "atr",
    "stddev",
    "hv",
    # volume
    "obv",
    "vwap",
    "ad",
)

# Config keys treated as lookback windows by max_lookback().
_LOOKBACK_NAMES = ("fast", "slow", "signal")
MIN_LOOKBACK = 200


@dataclass
class IndicatorInfo:
    indicator_id: str
    definition: IndicatorDefinition
    module: object
    path: str = ""
    load_error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.definition.name

    def calculate(self, data: Iterable, config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        resolved = resolve_config(self.definition, config)
        return run_calculation(data, resolved, getattr(self.module, "calculate"))


# Keep last-good indicator definition per file path so a broken edit doesn't drop a plug-in.
_LAST_GOOD_BY_PATH: Dict[str, IndicatorInfo] = {}


def load_builtin(name: str) -> IndicatorInfo:
    module = importlib.import_module(f"indicators.builtins.{name}")
    definition = definition_from_schema(module.schema())
    return IndicatorInfo(
        indicator_id=definition.id,
        definition=definition,
        module=module,
        path=str(getattr(module, "__file__", "") or ""),
    )


def discover_indicators(root_paths: str | Iterable[str]) -> List[IndicatorInfo]:
    indicators: List[IndicatorInfo] = []
    paths = [root_paths] if isinstance(root_paths, str) else list(root_paths)

    for root_path in paths:
        if not root_path or not os.path.isdir(root_path):
            continue
        for entry in sorted(os.listdir(root_path)):
            if not entry.endswith(".py"):
                continue
            if entry.startswith("_"):
                continue
            info = _load_info(os.path.join(root_path, entry))
            if info is not None:
                indicators.append(info)

    indicators.sort(key=lambda info: info.name.lower())
    return indicators


def _load_info(path: str) -> Optional[IndicatorInfo]:
    module, err = _load_module_from_path(path)
    definition = None
    if module is not None:
        definition, err = _safe_definition(module)
    if module is None or definition is None:
        logger.warning("Indicator %s failed to load: %s", path, err)
        last_good = _LAST_GOOD_BY_PATH.get(path)
        if last_good is None:
            return None
        return IndicatorInfo(
            indicator_id=last_good.indicator_id,
            definition=last_good.definition,
            module=last_good.module,
            path=last_good.path,
            load_error=(err or "schema/load failed"),
        )
    out = IndicatorInfo(
        indicator_id=definition.id,
        definition=definition,
        module=module,
        path=path,
        load_error=None,
    )
    _LAST_GOOD_BY_PATH[path] = out
    return out


def _load_module_from_path(path: str) -> tuple[Optional[object], Optional[str]]:
    try:
        spec = importlib.util.spec_from_file_location(f"indicator_{os.path.basename(path)}", path)
        if spec is None or spec.loader is None:
            return None, "no spec/loader"
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module, None
    except Exception as e:
        return None, f"{type(e).__name__}: {e}"


def _safe_definition(module: object) -> tuple[Optional[IndicatorDefinition], Optional[str]]:
    schema_fn = getattr(module, "schema", None)
    if schema_fn is None:
        return None, "missing schema()"
    if not callable(getattr(module, "calculate", None)):
        return None, "missing calculate()"
    try:
        return definition_from_schema(schema_fn()), None
    except Exception as e:
        return None, f"{type(e).__name__}: {e}"


class IndicatorRegistry:
    """Indicator id -> (definition, calculator). Adding an indicator is one register() call."""

    def __init__(self, infos: Iterable[IndicatorInfo] = ()) -> None:
        self._by_id: Dict[str, IndicatorInfo] = {}
        for info in infos:
            self.register(info)

    def __contains__(self, indicator_id: str) -> bool:
        return indicator_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def register(self, info: IndicatorInfo) -> None:
        if info.indicator_id in self._by_id:
            logger.debug("Replacing indicator %s", info.indicator_id)
        self._by_id[info.indicator_id] = info

    def get(self, indicator_id: str) -> Optional[IndicatorInfo]:
        return self._by_id.get(indicator_id)

    def require(self, indicator_id: str) -> IndicatorInfo:
        info = self._by_id.get(indicator_id)
        if info is None:
            raise KeyError(f"Unknown indicator: {indicator_id}")
        return info

    def definition(self, indicator_id: str) -> Optional[IndicatorDefinition]:
        info = self._by_id.get(indicator_id)
        return info.definition if info is not None else None

    def definitions(self) -> List[IndicatorDefinition]:
        return [info.definition for info in self._by_id.values()]

    def by_category(self, category: str) -> List[IndicatorDefinition]:
        return [d for d in self.definitions() if d.category == category]

    def grouped(self) -> List[Tuple[str, str, List[IndicatorDefinition]]]:
        """(category, group, definitions), overlay groups first, then by group name."""
        groups: Dict[Tuple[str, str], List[IndicatorDefinition]] = {}
        for definition in self.definitions():
            groups.setdefault((definition.category, definition.group), []).append(definition)
        ordered = sorted(groups.items(), key=lambda item: (item[0][0] != "overlay", item[0][1].lower()))
        return [(category, group, defs) for (category, group), defs in ordered]

    def default_config(self, indicator_id: str) -> Dict[str, Any]:
        definition = self.definition(indicator_id)
        if definition is None:
            return {}
        return default_config(definition)

    def validate_config(self, indicator_id: str, config: Mapping[str, Any]) -> Tuple[bool, List[str]]:
        definition = self.definition(indicator_id)
        if definition is None:
            return False, ["Unknown indicator"]
        return validate_config(definition, config)

    def calculate(
        self,
        indicator_id: str,
        data: Iterable,
        config: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        info = self._by_id.get(indicator_id)
        if info is None:
            logger.warning("No calculator found for indicator: %s", indicator_id)
            return None
        return info.calculate(data, config)

    def max_lookback(self, instances: Sequence[IndicatorInstance]) -> int:
        """Largest period-like setting across instances; never below MIN_LOOKBACK."""
        max_period = 0
        for instance in instances:
            definition = self.definition(instance.indicator_id)
            if definition is None:
                continue
            for param in definition.parameters:
                if not isinstance(param, NumberParam):
                    continue
                key = param.key.lower()
                if "period" in key or "length" in key or key in _LOOKBACK_NAMES:
                    value = instance.config.get(param.key, param.default)
                    if isinstance(value, (int, float)) and not isinstance(value, bool):
                        max_period = max(max_period, int(value))
        return max(max_period, MIN_LOOKBACK)

    def load_plugins(self, root_paths: str | Iterable[str]) -> List[IndicatorInfo]:
        infos = discover_indicators(root_paths)
        for info in infos:
            self.register(info)
        return infos


_DEFAULT_REGISTRY: Optional[IndicatorRegistry] = None


def builtin_registry() -> IndicatorRegistry:
    return IndicatorRegistry(load_builtin(name) for name in BUILTIN_INDICATORS)


def default_registry() -> IndicatorRegistry:
    """Process-wide registry of the builtin calculators, built on first use."""
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = builtin_registry()
    return _DEFAULT_REGISTRY
