from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import uuid

from core.candles import candle_fingerprint
from core.indicator_registry import IndicatorRegistry, default_registry
from core.models import Candle
from indicators.models import CalculatedIndicator, IndicatorInstance
from indicators.schema import config_key


logger = logging.getLogger(__name__)

# Replay precomputes this many bars past the cursor, and recomputes when the cursor gets this close to the end.
REPLAY_BUFFER_AHEAD = 50
REPLAY_BUFFER_THRESHOLD = 10


@dataclass
class _OhlcvCache:
    signature: Tuple[Any, ...]
    data: List[Dict[str, Any]]


@dataclass
class _ResultCache:
    config_key: str
    signature: Tuple[Any, ...]
    result: CalculatedIndicator


@dataclass
class _ReplayBuffer:
    configs_key: str
    signature: Tuple[Any, ...]
    end_index: int
    results: List[CalculatedIndicator]


def data_signature(candles: Sequence[Candle]) -> Tuple[Any, ...]:
    """(count, newest ts, oldest ts, newest OHLCV) for a newest-first candle set."""
    if not candles:
        return (0, None, None, None)
    return (len(candles), candles[0].timestamp, candles[-1].timestamp, candle_fingerprint(candles[0]))


def filter_output_by_time(output: Optional[Dict[str, Any]], max_time: Optional[int]) -> Optional[Dict[str, Any]]:
    if output is None or max_time is None:
        return output

    def keep(points: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [p for p in points if p["time"] <= max_time]

    out = dict(output)
    kind = output.get("type")
    if kind in ("line", "histogram"):
        out["data"] = keep(output["data"])
    elif kind == "band":
        for name in ("upper", "middle", "lower"):
            out[name] = keep(output[name])
    elif kind == "multi-line":
        out["series"] = {name: keep(points) for name, points in output["series"].items()}
    return out


class IndicatorSet:
    """
    Active indicator instances for one chart plus their computed outputs.

    Several instances of one indicator may coexist with different configs. Results
    are cached per instance and reused while neither the config nor the candle set
    changed.
    """

    def __init__(self, registry: Optional[IndicatorRegistry] = None) -> None:
        self.registry = registry or default_registry()
        self._instances: List[IndicatorInstance] = []
        self._ohlcv: Optional[_OhlcvCache] = None
        self._results: Dict[str, _ResultCache] = {}
        self._replay: Optional[_ReplayBuffer] = None
        self._last: List[CalculatedIndicator] = []

    @property
    def instances(self) -> List[IndicatorInstance]:
        return list(self._instances)

    def _find(self, instance_id: str) -> Optional[IndicatorInstance]:
        for instance in self._instances:
            if instance.instance_id == instance_id:
                return instance
        return None

    def add(self, indicator_id: str, config: Optional[Mapping[str, Any]] = None) -> str:
        self.registry.require(indicator_id)
        merged = self.registry.default_config(indicator_id)
        merged.update(config or {})
        instance = IndicatorInstance(instance_id=uuid.uuid4().hex, indicator_id=indicator_id, config=merged)
        self._instances.append(instance)
        return instance.instance_id

    def remove(self, instance_id: str) -> bool:
        instance = self._find(instance_id)
        if instance is None:
            return False
        self._instances.remove(instance)
        self._results.pop(instance_id, None)
        return True

    def update_config(self, instance_id: str, config: Mapping[str, Any]) -> bool:
        instance = self._find(instance_id)
        if instance is None:
            return False
        instance.config = {**instance.config, **dict(config)}
        return True

    def reset_defaults(self, instance_id: str) -> bool:
        instance = self._find(instance_id)
        if instance is None:
            return False
        instance.config = self.registry.default_config(instance.indicator_id)
        return True

    def toggle_visibility(self, instance_id: str) -> bool:
        instance = self._find(instance_id)
        if instance is None:
            return False
        instance.visible = not instance.visible
        return True

    def has_indicator(self, indicator_id: str) -> bool:
        return any(i.indicator_id == indicator_id for i in self._instances)

    def instances_of(self, indicator_id: str) -> List[IndicatorInstance]:
        return [i for i in self._instances if i.indicator_id == indicator_id]

    def ohlcv(self, candles: Sequence[Candle]) -> List[Dict[str, Any]]:
        """Chronological OHLCV points, rebuilt only when the candle set changed."""
        signature = data_signature(candles)
        if self._ohlcv is not None and self._ohlcv.signature == signature:
            return self._ohlcv.data
        data = [c.to_point() for c in reversed(candles)]
        self._ohlcv = _OhlcvCache(signature, data)
        return data

    def _calculate(self, instance: IndicatorInstance, data: List[Dict[str, Any]]) -> Optional[CalculatedIndicator]:
        info = self.registry.get(instance.indicator_id)
        if info is None:
            return None
        definition = info.definition
        if len(data) < definition.min_data_points:
            return CalculatedIndicator(
                instance=instance,
                definition=definition,
                output=None,
                error=f"Insufficient data: requires {definition.min_data_points} points",
            )
        try:
            output = info.calculate(data, instance.config)
        except Exception as exc:
            logger.warning("Indicator %s (%s) failed: %s", instance.indicator_id, instance.instance_id, exc)
            return CalculatedIndicator(
                instance=instance,
                definition=definition,
                output=None,
                error=f"Calculation error: {exc}",
            )
        return CalculatedIndicator(instance=instance, definition=definition, output=output)

    def compute(self, candles: Sequence[Candle], replay_index: Optional[int] = None) -> List[CalculatedIndicator]:
        """
        Evaluate every visible instance over `candles` (newest-first).

        With `replay_index` (1-based, chronological) outputs are cut at the time of
        that candle, as if the chart had only been loaded up to it.
        """
        data = self.ohlcv(candles)
        if not data:
            self._last = []
            return []
        if replay_index is not None and replay_index > 0:
            self._last = self._compute_replay(candles, data, replay_index)
            return list(self._last)

        signature = data_signature(candles)
        results: List[CalculatedIndicator] = []
        fresh: Dict[str, _ResultCache] = {}
        for instance in self._instances:
            if not instance.visible:
                continue
            key = config_key(instance.config)
            cached = self._results.get(instance.instance_id)
            if cached is not None and cached.config_key == key and cached.signature == signature:
                result = cached.result
            else:
                result = self._calculate(replace(instance, config=dict(instance.config)), data)
                if result is None:
                    continue
            fresh[instance.instance_id] = _ResultCache(key, signature, result)
            results.append(result)
        self._results = fresh
        self._replay = None
        self._last = results
        return list(results)

    def _configs_key(self) -> str:
        parts = sorted(f"{i.instance_id}:{config_key(i.config)}" for i in self._instances if i.visible)
        return "|".join(parts)

    def _compute_replay(
        self,
        candles: Sequence[Candle],
        data: List[Dict[str, Any]],
        replay_index: int,
    ) -> List[CalculatedIndicator]:
        index = min(replay_index, len(data))
        max_time = data[index - 1]["time"]
        configs_key = self._configs_key()
        signature = data_signature(candles)
        buf = self._replay
        stale = (
            buf is None
            or buf.configs_key != configs_key
            or buf.signature != signature
            or index > buf.end_index - REPLAY_BUFFER_THRESHOLD
        )
        if stale:
            end = min(index + REPLAY_BUFFER_AHEAD, len(data))
            window = data[:end]
            results = []
            for instance in self._instances:
                if not instance.visible:
                    continue
                result = self._calculate(replace(instance, config=dict(instance.config)), window)
                if result is not None:
                    results.append(result)
            buf = _ReplayBuffer(configs_key, signature, end, results)
            self._replay = buf
        return [replace(calc, output=filter_output_by_time(calc.output, max_time)) for calc in buf.results]

    @property
    def results(self) -> List[CalculatedIndicator]:
        return list(self._last)

    def overlays(self) -> List[CalculatedIndicator]:
        return [calc for calc in self._last if calc.definition.category == "overlay"]

    def panels(self) -> List[CalculatedIndicator]:
        return [calc for calc in self._last if calc.definition.category == "panel"]
