import numpy as np


def schema():
    return {
        "id": "CCI",
        "name": "Commodity Channel Index",
        "short_name": "CCI",
        "description": "Distance of the typical price from its average, scaled by mean absolute deviation.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 20,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 5, "max": 100, "step": 1},
            "overbought": {"type": "float", "label": "Overbought level", "default": 100, "min": 50, "max": 200, "step": 10},
            "oversold": {"type": "float", "label": "Oversold level", "default": -100, "min": -200, "max": -50, "step": 10},
            "color": {"type": "color", "label": "Line color", "default": "#06B6D4"},
        },
        "outputs": [{"key": "cci", "label": "CCI", "type": "line", "color": "#06B6D4", "width": 2}],
        "levels": [
            {"value": 100, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": 0, "label": "Zero", "color": "#6B7280", "style": "solid"},
            {"value": -100, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"symmetric": True},
    }


def calculate(bars, config, ctx):
    period = int(config.get("period", 20))
    tp = ctx.typical_price()
    ma = ctx.sma(tp, period)
    values = np.full(tp.size, np.nan, dtype=np.float64)
    for i in range(period - 1, tp.size):
        window = tp[i + 1 - period: i + 1]
        dev = np.mean(np.abs(window - ma[i]))
        values[i] = 0.0 if dev == 0 else (tp[i] - ma[i]) / (0.015 * dev)
    out = ctx.line(values)
    out["levels"] = [
        {"value": float(config.get("overbought", 100)), "color": "#EF4444", "style": "dashed"},
        {"value": float(config.get("oversold", -100)), "color": "#10B981", "style": "dashed"},
    ]
    return out
