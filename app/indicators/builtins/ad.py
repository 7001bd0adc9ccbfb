import numpy as np


def schema():
    return {
        "id": "AccumulationDistribution",
        "name": "Accumulation/Distribution",
        "short_name": "A/D",
        "description": "Cumulative money-flow multiplier times volume.",
        "category": "panel",
        "group": "Volume",
        "min_data_points": 1,
        "inputs": {
            "color": {"type": "color", "label": "Line color", "default": "#0EA5E9"},
        },
        "outputs": [{"key": "ad", "label": "A/D", "type": "line", "color": "#0EA5E9", "width": 2}],
    }


def calculate(bars, config, ctx):
    high = ctx.series("high")
    low = ctx.series("low")
    close = ctx.series("close")
    rng = high - low
    with np.errstate(divide="ignore", invalid="ignore"):
        mfm = np.where(rng != 0, ((close - low) - (high - close)) / rng, 0.0)
    return ctx.line(np.cumsum(mfm * ctx.series("volume")))
