def schema():
    return {
        "id": "VWMA",
        "name": "Volume Weighted Moving Average",
        "short_name": "VWMA",
        "description": "Trailing average of the close weighted by bar volume.",
        "category": "overlay",
        "group": "Moving Averages",
        "min_data_points": 2,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 2, "max": 500, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#06B6D4"},
            "line_width": {"type": "int", "label": "Line width", "default": 2, "min": 1, "max": 5, "step": 1},
        },
        "outputs": [{"key": "vwma", "label": "VWMA", "type": "line", "color": "#06B6D4", "width": 2}],
    }


def calculate(bars, config, ctx):
    return ctx.line(ctx.vwma(ctx.series("close"), int(config.get("period", 20))))
