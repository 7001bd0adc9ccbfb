def schema():
    return {
        "id": "BollingerBands",
        "name": "Bollinger Bands",
        "short_name": "BB",
        "description": "SMA envelope widened by a multiple of the rolling standard deviation.",
        "category": "overlay",
        "group": "Volatility Bands",
        "min_data_points": 20,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 5, "max": 100, "step": 1},
            "std_dev": {"type": "float", "label": "Std dev multiplier", "default": 2.0, "min": 0.5, "max": 5.0, "step": 0.1},
            "upper_color": {"type": "color", "label": "Upper band", "default": "#F59E0B"},
            "middle_color": {"type": "color", "label": "Middle band", "default": "#3B82F6"},
            "lower_color": {"type": "color", "label": "Lower band", "default": "#EF4444"},
            "fill_opacity": {"type": "float", "label": "Fill opacity", "default": 0.1, "min": 0.0, "max": 0.5, "step": 0.05},
        },
        "outputs": [
            {"key": "upper", "label": "Upper", "type": "line", "color": "#F59E0B", "width": 1, "style": "dashed"},
            {"key": "middle", "label": "Middle", "type": "line", "color": "#3B82F6", "width": 1},
            {"key": "lower", "label": "Lower", "type": "line", "color": "#EF4444", "width": 1, "style": "dashed"},
        ],
    }


def calculate(bars, config, ctx):
    close = ctx.series("close")
    period = int(config.get("period", 20))
    middle = ctx.sma(close, period)
    dev = ctx.std_dev(close, period) * float(config.get("std_dev", 2.0))
    return ctx.band(middle + dev, middle, middle - dev)
