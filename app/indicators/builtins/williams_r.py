import numpy as np


def schema():
    return {
        "id": "Williams%R",
        "name": "Williams %R",
        "short_name": "%R",
        "description": "Inverted stochastic: where the close sits inside the lookback range, from -100 to 0.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 14,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 14, "min": 5, "max": 100, "step": 1},
            "overbought": {"type": "float", "label": "Overbought level", "default": -20, "min": -50, "max": 0, "step": 1},
            "oversold": {"type": "float", "label": "Oversold level", "default": -80, "min": -100, "max": -50, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#8B5CF6"},
        },
        "outputs": [{"key": "williams_r", "label": "%R", "type": "line", "color": "#8B5CF6", "width": 2}],
        "levels": [
            {"value": -20, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": -50, "label": "Middle", "color": "#6B7280", "style": "dotted"},
            {"value": -80, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"min": -100, "max": 0},
    }


def calculate(bars, config, ctx):
    period = int(config.get("period", 14))
    hh = ctx.highest(ctx.series("high"), period)
    ll = ctx.lowest(ctx.series("low"), period)
    close = ctx.series("close")
    rng = hh - ll
    with np.errstate(divide="ignore", invalid="ignore"):
        values = np.where(rng == 0, -50.0, (hh - close) / rng * -100.0)
    values[np.isnan(rng)] = np.nan
    out = ctx.line(values)
    out["levels"] = [
        {"value": float(config.get("overbought", -20)), "color": "#EF4444", "style": "dashed"},
        {"value": float(config.get("oversold", -80)), "color": "#10B981", "style": "dashed"},
    ]
    return out
