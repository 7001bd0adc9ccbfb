import numpy as np


def schema():
    return {
        "id": "Momentum",
        "name": "Momentum",
        "short_name": "MOM",
        "description": "Close minus the close `period` bars ago.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 10,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 10, "min": 1, "max": 100, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#14B8A6"},
        },
        "outputs": [{"key": "momentum", "label": "Momentum", "type": "line", "color": "#14B8A6", "width": 2}],
        "levels": [{"value": 0, "label": "Zero", "color": "#6B7280", "style": "solid"}],
        "value_range": {"symmetric": True},
    }


def calculate(bars, config, ctx):
    period = int(config.get("period", 10))
    close = ctx.series("close")
    values = np.full(close.size, np.nan, dtype=np.float64)
    if close.size > period:
        values[period:] = close[period:] - close[:-period]
    return ctx.line(values)
