import numpy as np


def schema():
    return {
        "id": "VWAP",
        "name": "Volume Weighted Average Price",
        "short_name": "VWAP",
        "description": "Cumulative typical price weighted by volume.",
        "category": "overlay",
        "group": "Volume",
        "min_data_points": 1,
        "inputs": {
            "anchor": {
                "type": "select",
                "label": "Anchor",
                "default": "none",
                "options": ["none", "session"],
                "description": "'none' accumulates from the first loaded bar, 'session' restarts each UTC day",
            },
            "color": {"type": "color", "label": "Line color", "default": "#8B5CF6"},
        },
        "outputs": [{"key": "vwap", "label": "VWAP", "type": "line", "color": "#8B5CF6", "width": 2}],
    }


SECONDS_PER_DAY = 86400


def calculate(bars, config, ctx):
    tp = ctx.typical_price()
    volume = ctx.series("volume")
    n = tp.size
    values = np.empty(n, dtype=np.float64)
    session = ctx.time() // SECONDS_PER_DAY
    anchored = config.get("anchor", "none") == "session"
    cum_pv = 0.0
    cum_vol = 0.0
    for i in range(n):
        if anchored and i > 0 and session[i] != session[i - 1]:
            cum_pv = 0.0
            cum_vol = 0.0
        cum_pv += tp[i] * volume[i]
        cum_vol += volume[i]
        values[i] = tp[i] if cum_vol == 0 else cum_pv / cum_vol
    return ctx.line(values)
