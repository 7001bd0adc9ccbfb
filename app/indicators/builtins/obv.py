import numpy as np


def schema():
    return {
        "id": "OBV",
        "name": "On-Balance Volume",
        "short_name": "OBV",
        "description": "Running volume total, added on up closes and subtracted on down closes.",
        "category": "panel",
        "group": "Volume",
        "min_data_points": 2,
        "inputs": {
            "obv_color": {"type": "color", "label": "OBV color", "default": "#0EA5E9"},
            "show_signal_line": {"type": "bool", "label": "Show signal line", "default": True},
            "signal_period": {"type": "int", "label": "Signal period", "default": 21, "min": 5, "max": 100, "step": 1},
            "signal_color": {"type": "color", "label": "Signal color", "default": "#F59E0B"},
        },
        "outputs": [
            {"key": "obv", "label": "OBV", "type": "line", "color": "#0EA5E9", "width": 2},
            {"key": "signal", "label": "Signal", "type": "line", "color": "#F59E0B", "width": 1, "style": "dashed"},
        ],
    }


def calculate(bars, config, ctx):
    close = ctx.series("close")
    volume = ctx.series("volume")
    n = close.size
    obv = np.zeros(n, dtype=np.float64)
    if n:
        direction = np.zeros(n, dtype=np.float64)
        direction[1:] = np.sign(close[1:] - close[:-1])
        # The first bar seeds the total with its own volume.
        direction[0] = 1.0
        obv = np.cumsum(direction * volume)
    signal = None
    if config.get("show_signal_line", True):
        signal = ctx.points(ctx.ema(obv, int(config.get("signal_period", 21))))
    return ctx.multi_line(obv=ctx.points(obv), signal=signal)
