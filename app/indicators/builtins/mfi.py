import numpy as np


def schema():
    return {
        "id": "MFI",
        "name": "Money Flow Index",
        "short_name": "MFI",
        "description": "Volume-weighted RSI over typical-price money flow.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 15,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 14, "min": 5, "max": 100, "step": 1},
            "overbought": {"type": "float", "label": "Overbought level", "default": 80, "min": 60, "max": 95, "step": 1},
            "oversold": {"type": "float", "label": "Oversold level", "default": 20, "min": 5, "max": 40, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#10B981"},
        },
        "outputs": [{"key": "mfi", "label": "MFI", "type": "line", "color": "#10B981", "width": 2}],
        "levels": [
            {"value": 80, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": 50, "label": "Middle", "color": "#6B7280", "style": "dotted"},
            {"value": 20, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"min": 0, "max": 100},
    }


def calculate(bars, config, ctx):
    period = int(config.get("period", 14))
    tp = ctx.typical_price()
    flow = tp * ctx.series("volume")
    n = tp.size
    positive = np.zeros(n, dtype=np.float64)
    negative = np.zeros(n, dtype=np.float64)
    if n > 1:
        up = tp[1:] > tp[:-1]
        down = tp[1:] < tp[:-1]
        positive[1:] = np.where(up, flow[1:], 0.0)
        negative[1:] = np.where(down, flow[1:], 0.0)
    values = np.full(n, np.nan, dtype=np.float64)
    for i in range(period, n):
        pos = positive[i + 1 - period: i + 1].sum()
        neg = negative[i + 1 - period: i + 1].sum()
        values[i] = 100.0 if neg == 0 else 100.0 - 100.0 / (1.0 + pos / neg)
    out = ctx.line(values)
    out["levels"] = [
        {"value": float(config.get("overbought", 80)), "color": "#EF4444", "style": "dashed"},
        {"value": float(config.get("oversold", 20)), "color": "#10B981", "style": "dashed"},
    ]
    return out
