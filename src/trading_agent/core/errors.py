"""
交易代理异常定义
"""

from typing import Optional


class TradingAgentError(Exception):
    """所有交易代理异常的基类"""


class NotInitializedError(TradingAgentError):
    """账户上下文尚未建立时尝试交易"""


class NotFoundError(TradingAgentError, LookupError):
    """行情快照、提醒或策略不存在"""


class InvalidParameterError(TradingAgentError, ValueError):
    """参数非法：非有限/非正价格、格式错误的数量等"""


class MarketDataError(TradingAgentError):
    """价格源刷新失败"""


class EvaluatorFailure(TradingAgentError):
    """单个策略评估时抛出的异常（在周期内捕获并上报）"""

    def __init__(self, strategy_id: str, kind: str, cause: Optional[BaseException] = None):
        self.strategy_id = strategy_id
        self.kind = kind
        self.cause = cause
        super().__init__(f"策略 {strategy_id} ({kind}) 评估失败: {cause}")
