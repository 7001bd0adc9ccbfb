def schema():
    return {
        "id": "RSI",
        "name": "Relative Strength Index",
        "short_name": "RSI",
        "description": "Momentum oscillator measuring the speed and magnitude of price moves. "
        "Above 70 reads overbought, below 30 oversold.",
        "category": "panel",
        "group": "Momentum",
        "min_data_points": 15,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 14, "min": 2, "max": 100, "step": 1},
            "overbought": {"type": "float", "label": "Overbought level", "default": 70, "min": 50, "max": 95, "step": 1},
            "oversold": {"type": "float", "label": "Oversold level", "default": 30, "min": 5, "max": 50, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#F59E0B"},
            "show_zones": {"type": "bool", "label": "Show overbought/oversold zones", "default": True},
        },
        "outputs": [{"key": "rsi", "label": "RSI", "type": "line", "color": "#F59E0B", "width": 2}],
        "levels": [
            {"value": 70, "label": "Overbought", "color": "#EF4444", "style": "dashed"},
            {"value": 50, "label": "Middle", "color": "#6B7280", "style": "dotted"},
            {"value": 30, "label": "Oversold", "color": "#10B981", "style": "dashed"},
        ],
        "value_range": {"min": 0, "max": 100},
    }


def calculate(bars, config, ctx):
    close = ctx.series("close")
    out = ctx.line(ctx.rsi(close, int(config.get("period", 14))))
    if config.get("show_zones", True):
        out["levels"] = [
            {"value": float(config.get("overbought", 70)), "color": "#EF4444", "style": "dashed"},
            {"value": 50.0, "color": "#6B7280", "style": "dotted"},
            {"value": float(config.get("oversold", 30)), "color": "#10B981", "style": "dashed"},
        ]
    return out
