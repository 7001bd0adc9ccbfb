"""
Schema handling for indicator modules.

Indicator modules describe themselves with a plain `schema()` dict so plug-in files
stay free of imports. This module turns that dict into typed definitions and
resolves user configs against it.

Input types understood in `schema()["inputs"]`:
- "int" / "float": numeric with optional min/max/step
- "color": hex color string
- "select": one of `options`
- "bool": checkbox
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import (
    CATEGORIES,
    LINE_STYLES,
    OUTPUT_TYPES,
    BooleanParam,
    ColorParam,
    IndicatorDefinition,
    NumberParam,
    OutputSeries,
    Parameter,
    ReferenceLine,
    SelectParam,
    ValueRange,
)


def _label_for(key: str) -> str:
    return key.replace("_", " ").strip().capitalize()


def _parse_input(key: str, spec: Mapping[str, Any]) -> Parameter:
    if not isinstance(spec, Mapping):
        raise ValueError(f"Input '{key}' must be a dict")
    kind = str(spec.get("type", "float"))
    label = str(spec.get("label") or _label_for(key))
    description = str(spec.get("description") or "")
    if "default" not in spec:
        raise ValueError(f"Input '{key}' has no default")
    default = spec["default"]

    if kind in ("int", "float"):
        lo = spec.get("min")
        hi = spec.get("max")
        if lo is not None and hi is not None and float(lo) > float(hi):
            raise ValueError(f"Input '{key}' has min > max")
        if isinstance(default, bool) or not isinstance(default, (int, float)):
            raise ValueError(f"Input '{key}' default must be numeric")
        if (lo is not None and default < lo) or (hi is not None and default > hi):
            raise ValueError(f"Input '{key}' default {default} outside [{lo}, {hi}]")
        return NumberParam(
            key=key,
            label=label,
            default=int(default) if kind == "int" else float(default),
            min=None if lo is None else float(lo),
            max=None if hi is None else float(hi),
            step=None if spec.get("step") is None else float(spec["step"]),
            integer=(kind == "int"),
            description=description,
        )
    if kind == "color":
        return ColorParam(key=key, label=label, default=str(default), description=description)
    if kind == "select":
        options = tuple(str(o) for o in (spec.get("options") or ()))
        if str(default) not in options:
            raise ValueError(f"Input '{key}' default '{default}' not in options")
        return SelectParam(key=key, label=label, default=str(default), options=options, description=description)
    if kind == "bool":
        return BooleanParam(key=key, label=label, default=bool(default), description=description)
    raise ValueError(f"Input '{key}' has unknown type '{kind}'")


def _parse_output(spec: Mapping[str, Any]) -> OutputSeries:
    key = str(spec.get("key") or "")
    if not key:
        raise ValueError("Output without key")
    out_type = str(spec.get("type", "line"))
    if out_type not in OUTPUT_TYPES:
        raise ValueError(f"Output '{key}' has unknown type '{out_type}'")
    style = str(spec.get("style", "solid"))
    if style not in LINE_STYLES:
        raise ValueError(f"Output '{key}' has unknown style '{style}'")
    return OutputSeries(
        key=key,
        label=str(spec.get("label") or key),
        type=out_type,
        default_color=str(spec.get("color", "#3B82F6")),
        line_width=int(spec.get("width", 1)),
        line_style=style,
    )


def _parse_value_range(spec: Optional[Mapping[str, Any]]) -> Optional[ValueRange]:
    if not spec:
        return None
    return ValueRange(
        min=None if spec.get("min") is None else float(spec["min"]),
        max=None if spec.get("max") is None else float(spec["max"]),
        symmetric=bool(spec.get("symmetric", False)),
    )


def definition_from_schema(schema: Mapping[str, Any]) -> IndicatorDefinition:
    if not isinstance(schema, Mapping):
        raise ValueError("schema() must return a dict")
    indicator_id = str(schema.get("id") or "")
    if not indicator_id:
        raise ValueError("schema() has no id")
    category = str(schema.get("category", "panel"))
    if category not in CATEGORIES:
        raise ValueError(f"{indicator_id}: unknown category '{category}'")
    inputs = schema.get("inputs") or {}
    if not isinstance(inputs, Mapping):
        raise ValueError(f"{indicator_id}: inputs must be a dict")
    outputs = tuple(_parse_output(o) for o in (schema.get("outputs") or ()))
    if not outputs:
        raise ValueError(f"{indicator_id}: at least one output is required")
    levels = tuple(
        ReferenceLine(
            value=float(level["value"]),
            label=str(level.get("label", "")),
            color=str(level.get("color", "#6B7280")),
            style=str(level.get("style", "dashed")),
        )
        for level in (schema.get("levels") or ())
    )
    name = str(schema.get("name") or indicator_id)
    return IndicatorDefinition(
        id=indicator_id,
        name=name,
        short_name=str(schema.get("short_name") or indicator_id),
        category=category,
        parameters=tuple(_parse_input(str(k), v) for k, v in inputs.items()),
        outputs=outputs,
        min_data_points=max(1, int(schema.get("min_data_points", 1))),
        description=str(schema.get("description") or ""),
        group=str(schema.get("group") or ""),
        reference_lines=levels,
        value_range=_parse_value_range(schema.get("value_range")),
    )


def default_config(definition: IndicatorDefinition) -> Dict[str, Any]:
    return {param.key: param.default for param in definition.parameters}


def _resolve_number(param: NumberParam, value: Any) -> Any:
    if isinstance(value, bool):
        return param.default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return param.default
    if math.isnan(num) or math.isinf(num):
        return param.default
    if param.min is not None:
        num = max(param.min, num)
    if param.max is not None:
        num = min(param.max, num)
    if param.integer:
        return int(round(num))
    return num


def _resolve_bool(param: BooleanParam, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        return param.default
    if isinstance(value, (int, float)):
        return bool(value)
    return param.default


def resolve_config(definition: IndicatorDefinition, config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Build the config a calculator receives.

    Unknown keys are dropped, missing or ill-typed values fall back to the default,
    numbers are clamped into [min, max].
    """
    raw = dict(config or {})
    out: Dict[str, Any] = {}
    for param in definition.parameters:
        if param.key not in raw or raw[param.key] is None:
            out[param.key] = param.default
            continue
        value = raw[param.key]
        if isinstance(param, NumberParam):
            out[param.key] = _resolve_number(param, value)
        elif isinstance(param, BooleanParam):
            out[param.key] = _resolve_bool(param, value)
        elif isinstance(param, SelectParam):
            out[param.key] = str(value) if str(value) in param.options else param.default
        else:
            out[param.key] = str(value) if isinstance(value, str) and value else param.default
    return out


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def validate_config(definition: IndicatorDefinition, config: Mapping[str, Any]) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    for param in definition.parameters:
        if param.key not in config:
            continue
        value = config[param.key]
        if isinstance(param, NumberParam):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{param.label} must be a number")
                continue
            lo = param.min if param.min is not None else -math.inf
            hi = param.max if param.max is not None else math.inf
            if value < lo or value > hi:
                errors.append(f"{param.label} must be between {_fmt(lo)} and {_fmt(hi)}")
        elif isinstance(param, SelectParam):
            if value not in param.options:
                errors.append(f"{param.label} must be one of: {', '.join(param.options)}")
        elif isinstance(param, BooleanParam):
            if not isinstance(value, bool):
                errors.append(f"{param.label} must be true or false")
        elif isinstance(param, ColorParam):
            if not isinstance(value, str) or not value:
                errors.append(f"{param.label} must be a color string")
    return len(errors) == 0, errors


def config_key(config: Mapping[str, Any]) -> str:
    """Stable cache key for a resolved config."""
    return json.dumps(dict(config), sort_keys=True, default=str)
