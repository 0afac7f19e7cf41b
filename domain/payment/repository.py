"""
交易仓储接口 - 定义交易数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Document, SnapshotSource, Transaction, TransactionStatus


class TransactionRepository(ABC):
    """交易仓储抽象接口 - 只定义能做什么，不管怎么做

    实现必须保证同一 transaction_id 上的 create / update_status 串行执行，
    状态迁移规则由 Transaction.transition_to 统一执行。
    """

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """创建交易记录，状态强制为 PENDING；ID 已存在时抛出 DuplicateTransactionException"""
        pass

    @abstractmethod
    async def get(self, transaction_id: str) -> Transaction:
        """根据ID获取交易；不存在时抛出 TransactionNotFoundException"""
        pass

    @abstractmethod
    async def exists(self, transaction_id: str) -> bool:
        """判断交易ID是否已被占用"""
        pass

    @abstractmethod
    async def update_status(
        self,
        transaction_id: str,
        new_status: Optional[TransactionStatus],
        *,
        snapshot: Optional[Document] = None,
        source: SnapshotSource = SnapshotSource.CALLBACK,
    ) -> Transaction:
        """原子地应用状态迁移；终态冲突时抛出 InvalidTransitionException 且记录不变"""
        pass

    @abstractmethod
    async def list(self) -> List[Transaction]:
        """列出全部交易（顺序不保证，仅用于诊断）"""
        pass


class CallbackLedger(ABC):
    """已处理回调的登记簿，用于过滤网关的重复投递"""

    @abstractmethod
    async def seen(self, key: str) -> bool:
        """该通知是否已处理过"""
        pass

    @abstractmethod
    async def mark(self, key: str) -> None:
        """登记已处理的通知"""
        pass
