import numpy as np


def schema():
    return {
        "id": "MACD",
        "name": "Moving Average Convergence Divergence",
        "short_name": "MACD",
        "description": "Trend-following momentum indicator built from two EMAs, with a signal line and histogram.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 26,
        "inputs": {
            "fast_period": {"type": "int", "label": "Fast period", "default": 12, "min": 2, "max": 50, "step": 1},
            "slow_period": {"type": "int", "label": "Slow period", "default": 26, "min": 5, "max": 100, "step": 1},
            "signal_period": {"type": "int", "label": "Signal period", "default": 9, "min": 2, "max": 50, "step": 1},
            "macd_color": {"type": "color", "label": "MACD line color", "default": "#3B82F6"},
            "signal_color": {"type": "color", "label": "Signal line color", "default": "#EF4444"},
            "hist_up": {"type": "color", "label": "Histogram positive", "default": "#22C55E"},
            "hist_down": {"type": "color", "label": "Histogram negative", "default": "#EF4444"},
        },
        "outputs": [
            {"key": "macd", "label": "MACD", "type": "line", "color": "#3B82F6", "width": 2},
            {"key": "signal", "label": "Signal", "type": "line", "color": "#EF4444", "width": 2},
            {"key": "histogram", "label": "Histogram", "type": "histogram", "color": "#8B5CF6"},
        ],
        "levels": [{"value": 0, "label": "Zero", "color": "#6B7280", "style": "solid"}],
        "value_range": {"symmetric": True},
    }


def calculate(bars, config, ctx):
    close = ctx.series("close")
    fast = ctx.ema(close, int(config.get("fast_period", 12)))
    slow = ctx.ema(close, int(config.get("slow_period", 26)))
    macd_line = fast - slow
    # Seeds on the first defined MACD value, so the signal stays index-aligned.
    signal = ctx.ema(macd_line, int(config.get("signal_period", 9)))
    hist = macd_line - signal
    # Every series starts where the signal does so the three share timestamps.
    macd_line = np.where(np.isnan(signal), np.nan, macd_line)
    return ctx.multi_line(
        macd=ctx.points(macd_line),
        signal=ctx.points(signal),
        histogram=ctx.colored_points(hist, config.get("hist_up", "#22C55E"), config.get("hist_down", "#EF4444")),
    )
