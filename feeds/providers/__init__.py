from .awesomeapi import AwesomeQuoteAdapter
from .infomoney import InfoMoneyAdapter
from .investing import InvestingAdapter
from .tradingview import ScreenerQuery, TradingViewAdapter

__all__ = [
    "AwesomeQuoteAdapter",
    "InfoMoneyAdapter",
    "InvestingAdapter",
    "ScreenerQuery",
    "TradingViewAdapter",
]
