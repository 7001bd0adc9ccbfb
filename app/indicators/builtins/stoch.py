def schema():
    return {
        "id": "Stochastic",
        "name": "Stochastic Oscillator",
        "short_name": "Stoch",
        "description": "Compares the close to the high/low range of the lookback. "
        "%K is the main line, %D its moving average.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 14,
        "inputs": {
            "k_period": {"type": "int", "label": "%K period", "default": 14, "min": 3, "max": 100, "step": 1},
            "d_period": {"type": "int", "label": "%D period", "default": 3, "min": 1, "max": 20, "step": 1},
            "smooth": {"type": "int", "label": "Smooth %K", "default": 3, "min": 1, "max": 10, "step": 1},
            "overbought": {"type": "float", "label": "Overbought level", "default": 80, "min": 60, "max": 95, "step": 1},
            "oversold": {"type": "float", "label": "Oversold level", "default": 20, "min": 5, "max": 40, "step": 1},
            "k_color": {"type": "color", "label": "%K color", "default": "#3B82F6"},
            "d_color": {"type": "color", "label": "%D color", "default": "#EF4444"},
        },
        "outputs": [
            {"key": "k", "label": "%K", "type": "line", "color": "#3B82F6", "width": 2},
            {"key": "d", "label": "%D", "type": "line", "color": "#EF4444", "width": 1, "style": "dashed"},
        ],
        "levels": [
            {"value": 80, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": 50, "label": "Middle", "color": "#6B7280", "style": "dotted"},
            {"value": 20, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"min": 0, "max": 100},
    }


def calculate(bars, config, ctx):
    raw_k = ctx.stochastic(int(config.get("k_period", 14)))
    k = ctx.sma(raw_k, int(config.get("smooth", 3)))
    d = ctx.sma(k, int(config.get("d_period", 3)))
    out = ctx.multi_line(k=ctx.points(k), d=ctx.points(d))
    out["levels"] = [
        {"value": float(config.get("overbought", 80)), "color": "#EF4444", "style": "dashed"},
        {"value": float(config.get("oversold", 20)), "color": "#10B981", "style": "dashed"},
    ]
    return out
