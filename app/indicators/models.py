from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


CATEGORIES = ("overlay", "panel")
OUTPUT_TYPES = ("line", "histogram")
LINE_STYLES = ("solid", "dotted", "dashed")


@dataclass(frozen=True)
class NumberParam:
    kind: ClassVar[str] = "number"
    key: str
    label: str
    default: float
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    integer: bool = False
    description: str = ""


@dataclass(frozen=True)
class ColorParam:
    kind: ClassVar[str] = "color"
    key: str
    label: str
    default: str
    description: str = ""


@dataclass(frozen=True)
class SelectParam:
    kind: ClassVar[str] = "select"
    key: str
    label: str
    default: str
    options: Tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class BooleanParam:
    kind: ClassVar[str] = "boolean"
    key: str
    label: str
    default: bool
    description: str = ""


Parameter = Union[NumberParam, ColorParam, SelectParam, BooleanParam]


@dataclass(frozen=True)
class OutputSeries:
    key: str
    label: str
    type: str = "line"
    default_color: str = "#3B82F6"
    line_width: int = 1
    line_style: str = "solid"


@dataclass(frozen=True)
class ReferenceLine:
    value: float
    label: str = ""
    color: str = "#6B7280"
    style: str = "dashed"


@dataclass(frozen=True)
class ValueRange:
    min: Optional[float] = None
    max: Optional[float] = None
    # Scale symmetrically around zero (MACD, CCI, ROC).
    symmetric: bool = False


@dataclass(frozen=True)
class IndicatorDefinition:
    id: str
    name: str
    short_name: str
    category: str
    parameters: Tuple[Parameter, ...]
    outputs: Tuple[OutputSeries, ...]
    min_data_points: int
    description: str = ""
    group: str = ""
    reference_lines: Tuple[ReferenceLine, ...] = ()
    value_range: Optional[ValueRange] = None

    @property
    def is_overlay(self) -> bool:
        return self.category == "overlay"

    def parameter(self, key: str) -> Optional[Parameter]:
        for param in self.parameters:
            if param.key == key:
                return param
        return None


@dataclass
class IndicatorInstance:
    instance_id: str
    indicator_id: str
    config: Dict[str, Any] = field(default_factory=dict)
    visible: bool = True


@dataclass
class CalculatedIndicator:
    instance: IndicatorInstance
    definition: IndicatorDefinition
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.output is not None and self.error is None
