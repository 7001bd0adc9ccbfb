def schema():
    return {
        "id": "KeltnerChannel",
        "name": "Keltner Channel",
        "short_name": "KC",
        "description": "EMA envelope widened by a multiple of the EMA-smoothed true range.",
        "category": "overlay",
        "group": "Volatility Bands",
        "min_data_points": 20,
        "inputs": {
            "ema_period": {"type": "int", "label": "EMA period", "default": 20, "min": 5, "max": 100, "step": 1},
            "atr_period": {"type": "int", "label": "ATR period", "default": 10, "min": 5, "max": 50, "step": 1},
            "multiplier": {"type": "float", "label": "Multiplier", "default": 2.0, "min": 0.5, "max": 5.0, "step": 0.1},
            "upper_color": {"type": "color", "label": "Upper band", "default": "#10B981"},
            "middle_color": {"type": "color", "label": "Middle band", "default": "#6366F1"},
            "lower_color": {"type": "color", "label": "Lower band", "default": "#EF4444"},
        },
        "outputs": [
            {"key": "upper", "label": "Upper", "type": "line", "color": "#10B981", "width": 1, "style": "dashed"},
            {"key": "middle", "label": "Middle", "type": "line", "color": "#6366F1", "width": 1},
            {"key": "lower", "label": "Lower", "type": "line", "color": "#EF4444", "width": 1, "style": "dashed"},
        ],
    }


def calculate(bars, config, ctx):
    middle = ctx.ema(ctx.series("close"), int(config.get("ema_period", 20)))
    channel = ctx.ema(ctx.true_range(), int(config.get("atr_period", 10))) * float(config.get("multiplier", 2.0))
    return ctx.band(middle + channel, middle, middle - channel)
