def schema():
    return {
        "id": "ATR",
        "name": "Average True Range",
        "short_name": "ATR",
        "description": "Wilder-smoothed true range.",
        "category": "panel",
        "group": "Volatility",
        "min_data_points": 14,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 14, "min": 2, "max": 100, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#3B82F6"},
            "show_percentage": {"type": "bool", "label": "Show as % of close", "default": False},
        },
        "outputs": [{"key": "atr", "label": "ATR", "type": "line", "color": "#3B82F6", "width": 2}],
    }


def calculate(bars, config, ctx):
    values = ctx.wilder(ctx.true_range(), int(config.get("period", 14)))
    if config.get("show_percentage", False):
        values = values / ctx.series("close") * 100.0
    return ctx.line(values)
