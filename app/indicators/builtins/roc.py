import numpy as np


def schema():
    return {
        "id": "ROC",
        "name": "Rate of Change",
        "short_name": "ROC",
        "description": "Percent change of the close over the lookback.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 12,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 12, "min": 1, "max": 100, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#EC4899"},
        },
        "outputs": [{"key": "roc", "label": "ROC", "type": "line", "color": "#EC4899", "width": 2}],
        "levels": [{"value": 0, "label": "Zero", "color": "#6B7280", "style": "solid"}],
        "value_range": {"symmetric": True},
    }


def calculate(bars, config, ctx):
    period = int(config.get("period", 12))
    close = ctx.series("close")
    values = np.full(close.size, np.nan, dtype=np.float64)
    if close.size > period:
        past = close[:-period]
        curr = close[period:]
        with np.errstate(divide="ignore", invalid="ignore"):
            values[period:] = np.where(past == 0, 0.0, (curr - past) / past * 100.0)
    return ctx.line(values)
