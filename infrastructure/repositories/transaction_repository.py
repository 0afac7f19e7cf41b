"""
交易仓储的内存实现

单进程内有效：每个 transaction_id 一把 asyncio.Lock，跨键无锁。
读-改-写在副本上完成，迁移成功后才提交，失败时原记录不变。
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from domain.common.exceptions import DuplicateTransactionException, TransactionNotFoundException
from domain.payment.entity import Document, SnapshotSource, Transaction, TransactionStatus
from domain.payment.repository import TransactionRepository
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self) -> None:
        self._items: Dict[str, Transaction] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, transaction_id: str) -> asyncio.Lock:
        lock = self._locks.get(transaction_id)
        if lock is None:
            lock = self._locks.setdefault(transaction_id, asyncio.Lock())
        return lock

    async def create(self, transaction: Transaction) -> Transaction:  # type: ignore[override]
        tid = transaction.transaction_id
        async with self._lock_for(tid):
            if tid in self._items:
                raise DuplicateTransactionException(tid)
            record = transaction.copy()
            record.status = TransactionStatus.PENDING
            record.updated_at = record.created_at
            self._items[tid] = record
        logger.info("transaction_created", transaction_id=tid, amount=record.amount)
        return record.copy()

    async def get(self, transaction_id: str) -> Transaction:  # type: ignore[override]
        record = self._items.get(transaction_id)
        if record is None:
            raise TransactionNotFoundException(transaction_id)
        return record.copy()

    async def exists(self, transaction_id: str) -> bool:  # type: ignore[override]
        return transaction_id in self._items

    async def update_status(
        self,
        transaction_id: str,
        new_status: Optional[TransactionStatus],
        *,
        snapshot: Optional[Document] = None,
        source: SnapshotSource = SnapshotSource.CALLBACK,
    ) -> Transaction:  # type: ignore[override]
        async with self._lock_for(transaction_id):
            current = self._items.get(transaction_id)
            if current is None:
                raise TransactionNotFoundException(transaction_id)
            previous = current.status
            working = current.copy()
            working.transition_to(new_status, snapshot=snapshot, source=source)
            self._items[transaction_id] = working
        if working.status is not previous:
            logger.info(
                "transaction_status_changed",
                transaction_id=transaction_id,
                previous=previous.value,
                status=working.status.value,
                source=SnapshotSource(source).value,
            )
        return working.copy()

    async def list(self) -> List[Transaction]:  # type: ignore[override]
        return [record.copy() for record in self._items.values()]
