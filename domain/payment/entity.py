"""
支付领域实体 - 交易聚合根
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException, InvalidTransitionException


# 不透明文档：用户信息、预约信息以及网关原始快照，核心层不解释其内容
Document = dict[str, Any]


class TransactionStatus(str, Enum):
    """交易状态枚举"""
    PENDING = "PENDING"    # 待支付
    SUCCESS = "SUCCESS"    # 支付成功（终态）
    FAILED = "FAILED"      # 支付失败（终态）

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class SnapshotSource(str, Enum):
    """网关快照来源：异步回调或主动查询"""
    CALLBACK = "callback"
    STATUS = "status"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


def freeze_document(doc: Optional[Document]) -> Optional[Document]:
    """深拷贝外部文档，避免调用方在入库后继续修改"""
    if doc is None:
        return None
    return copy.deepcopy(dict(doc))


@dataclass
class Transaction:
    """
    交易聚合根 - 一次支付尝试及其结果

    业务规则：
    1. transaction_id 全局唯一，创建后不可变
    2. 金额（最小货币单位）必须大于0，创建后不再计算
    3. 状态从 PENDING 开始，最多一次迁移到终态（SUCCESS / FAILED）
    4. 重复应用同一终态是幂等刷新；终态之间的迁移被拒绝
    """

    transaction_id: str
    appointment_id: str
    amount: int  # 最小货币单位（paisa）
    user_details: Document
    appointment_details: Optional[Document] = None
    status: TransactionStatus = TransactionStatus.PENDING

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # 网关快照，仅用于审计与对账
    gateway_create_response: Optional[Document] = None
    gateway_callback_payload: Optional[Document] = None
    gateway_status_payload: Optional[Document] = None

    def __post_init__(self):
        """初始化后验证"""
        self._validate_amount()
        if not self.transaction_id:
            raise DomainValidationException("transaction_id is required", field="transaction_id")
        self.status = TransactionStatus(self.status)
        self.user_details = freeze_document(self.user_details) or {}
        self.appointment_details = freeze_document(self.appointment_details)
        self.gateway_create_response = freeze_document(self.gateway_create_response)
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)
        self.updated_at = _ensure_utc(self.updated_at)

    def _validate_amount(self) -> None:
        """业务规则：金额必须为正整数"""
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount <= 0:
            raise DomainValidationException(
                f"Amount must be a positive integer in minor units: {self.amount}",
                field="amount",
            )

    def is_final_status(self) -> bool:
        """检查是否为终态"""
        return self.status.is_terminal

    def transition_to(
        self,
        new_status: Optional[TransactionStatus],
        *,
        snapshot: Optional[Document] = None,
        source: SnapshotSource = SnapshotSource.CALLBACK,
    ) -> None:
        """
        应用状态迁移并附加网关快照

        new_status 为 None 时仅刷新快照（例如网关返回未识别的状态）。
        校验先于任何修改，失败时记录保持不变。
        """
        if new_status is not None:
            new_status = TransactionStatus(new_status)
            if self.status.is_terminal and new_status is not self.status:
                raise InvalidTransitionException(
                    self.transaction_id, self.status.value, new_status.value
                )
            self.status = new_status

        if snapshot is not None:
            frozen = freeze_document(snapshot)
            if SnapshotSource(source) is SnapshotSource.CALLBACK:
                self.gateway_callback_payload = frozen
            else:
                self.gateway_status_payload = frozen
        self.updated_at = datetime.now(timezone.utc)

    def copy(self) -> "Transaction":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """渲染为对外的 camelCase 结构"""
        return {
            "transactionId": self.transaction_id,
            "appointmentId": self.appointment_id,
            "amountMinorUnits": self.amount,
            "status": self.status.value,
            "userDetails": copy.deepcopy(self.user_details),
            "appointmentDetails": copy.deepcopy(self.appointment_details),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "gatewayCreateResponse": copy.deepcopy(self.gateway_create_response),
            "gatewayCallbackPayload": copy.deepcopy(self.gateway_callback_payload),
            "gatewayStatusPayload": copy.deepcopy(self.gateway_status_payload),
        }
