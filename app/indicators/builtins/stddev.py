def schema():
    return {
        "id": "StandardDeviation",
        "name": "Standard Deviation",
        "short_name": "StdDev",
        "description": "Rolling population standard deviation of the close.",
        "category": "panel",
        "group": "Volatility",
        "min_data_points": 20,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 2, "max": 100, "step": 1},
            "color": {"type": "color", "label": "Line color", "default": "#A855F7"},
        },
        "outputs": [{"key": "std_dev", "label": "StdDev", "type": "line", "color": "#A855F7", "width": 2}],
    }


def calculate(bars, config, ctx):
    return ctx.line(ctx.std_dev(ctx.series("close"), int(config.get("period", 20))))
