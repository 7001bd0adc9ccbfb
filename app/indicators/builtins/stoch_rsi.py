import numpy as np


def schema():
    return {
        "id": "StochasticRSI",
        "name": "Stochastic RSI",
        "short_name": "StochRSI",
        "description": "Stochastic formula applied to RSI values instead of price.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 28,
        "inputs": {
            "rsi_period": {"type": "int", "label": "RSI period", "default": 14, "min": 5, "max": 50, "step": 1},
            "stoch_period": {"type": "int", "label": "Stochastic period", "default": 14, "min": 5, "max": 50, "step": 1},
            "k_period": {"type": "int", "label": "%K smoothing", "default": 3, "min": 1, "max": 10, "step": 1},
            "d_period": {"type": "int", "label": "%D smoothing", "default": 3, "min": 1, "max": 10, "step": 1},
            "k_color": {"type": "color", "label": "%K color", "default": "#3B82F6"},
            "d_color": {"type": "color", "label": "%D color", "default": "#EF4444"},
        },
        "outputs": [
            {"key": "k", "label": "%K", "type": "line", "color": "#3B82F6", "width": 2},
            {"key": "d", "label": "%D", "type": "line", "color": "#EF4444", "width": 1, "style": "dashed"},
        ],
        "levels": [
            {"value": 80, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": 20, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"min": 0, "max": 100},
    }


def calculate(bars, config, ctx):
    close = ctx.series("close")
    rsi = ctx.rsi(close, int(config.get("rsi_period", 14)))
    length = int(config.get("stoch_period", 14))
    highest = ctx.highest(rsi, length)
    lowest = ctx.lowest(rsi, length)
    rng = highest - lowest
    with np.errstate(divide="ignore", invalid="ignore"):
        raw = np.where(rng == 0, 50.0, (rsi - lowest) / rng * 100.0)
    raw[np.isnan(rng)] = np.nan
    k = ctx.sma(raw, int(config.get("k_period", 3)))
    d = ctx.sma(k, int(config.get("d_period", 3)))
    return ctx.multi_line(k=ctx.points(k), d=ctx.points(d))
