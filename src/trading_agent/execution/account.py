"""
账户提供者 - 在交易前建立账户上下文
"""

import secrets
from typing import Optional

from alpaca.trading.client import TradingClient

from trading_agent.models.trade_data import AccountContext
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='EXECUTION')


class AccountProvider:
    """账户提供者接口"""

    def create_account(self) -> AccountContext:
        raise NotImplementedError


class LocalAccountProvider(AccountProvider):
    """本地模拟账户，生成形如0x...的地址"""

    def __init__(self, address: Optional[str] = None):
        self.address = address

    def create_account(self) -> AccountContext:
        address = self.address or "0x" + secrets.token_hex(20)
        return AccountContext(address=address, provider='local')


class AlpacaAccountProvider(AccountProvider):
    """
    通过Alpaca TradingClient获取账户
    使用账户编号作为地址标识
    """

    def __init__(self, api_key: str, secret_key: str, paper: bool = True,
                 client: Optional[TradingClient] = None):
        self.client = client or TradingClient(
            api_key=api_key,
            secret_key=secret_key,
            paper=paper
        )

    def create_account(self) -> AccountContext:
        try:
            account = self.client.get_account()
        except Exception as exc:
            log.error(f"[EXECUTION] 获取Alpaca账户失败: {exc}")
            raise
        return AccountContext(address=str(account.account_number), provider='alpaca')
