import numpy as np


def schema():
    return {
        "id": "HistoricalVolatility",
        "name": "Historical Volatility",
        "short_name": "HV",
        "description": "Sample standard deviation of log returns, optionally annualised as a percentage.",
        "category": "panel",
        "group": "Volatility",
        "min_data_points": 22,
        "inputs": {
            "period": {"type": "int", "label": "Period", "default": 21, "min": 5, "max": 100, "step": 1},
            "annualize": {"type": "bool", "label": "Annualize", "default": True},
            "color": {"type": "color", "label": "Line color", "default": "#F97316"},
        },
        "outputs": [{"key": "hv", "label": "HV", "type": "line", "color": "#F97316", "width": 2}],
    }


TRADING_DAYS = 252


def calculate(bars, config, ctx):
    period = int(config.get("period", 21))
    close = ctx.series("close")
    n = close.size
    returns = np.full(n, np.nan, dtype=np.float64)
    if n > 1:
        with np.errstate(divide="ignore", invalid="ignore"):
            returns[1:] = np.log(close[1:] / close[:-1])
    values = np.full(n, np.nan, dtype=np.float64)
    for i in range(period, n):
        window = returns[i + 1 - period: i + 1]
        values[i] = np.std(window, ddof=1)
    if config.get("annualize", True):
        values = values * np.sqrt(TRADING_DAYS) * 100.0
    return ctx.line(values)
