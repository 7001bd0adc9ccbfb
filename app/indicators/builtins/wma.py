def schema():
    return {
        "id": "WMA",
        "name": "Weighted Moving Average",
        "short_name": "WMA",
        "description": "Linearly weighted average, newest bar weighted highest.",
        "category": "overlay",
        "group": "Moving Averages",
        "min_data_points": 2,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 2, "max": 500, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#8B5CF6"},
            "line_width": {"type": "int", "label": "Line width", "default": 2, "min": 1, "max": 5, "step": 1},
        },
        "outputs": [{"key": "wma", "label": "WMA", "type": "line", "color": "#8B5CF6", "width": 2}],
    }


def calculate(bars, config, ctx):
    return ctx.line(ctx.wma(ctx.series("close"), int(config.get("period", 20))))
