def schema():
    return {
        "id": "EMA",
        "name": "Exponential Moving Average",
        "short_name": "EMA",
        "description": "Exponential average seeded with the SMA of its first window.",
        "category": "overlay",
        "group": "Moving Averages",
        "min_data_points": 2,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 20, "min": 2, "max": 500, "step": 1},
            "source": {
                "type": "select",
                "label": "Source",
                "default": "close",
                "options": ["close", "open", "high", "low", "hl2", "hlc3", "ohlc4"],
            },
            "color": {"type": "color", "label": "Line color", "default": "#FBBF24"},
            "line_width": {"type": "int", "label": "Line width", "default": 2, "min": 1, "max": 5, "step": 1},
        },
        "outputs": [{"key": "ema", "label": "EMA", "type": "line", "color": "#FBBF24", "width": 2}],
    }


def calculate(bars, config, ctx):
    src = ctx.series(config.get("source", "close"))
    return ctx.line(ctx.ema(src, int(config.get("period", 20))))
