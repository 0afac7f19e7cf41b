"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class TransactionNotFoundException(BusinessException):
    def __init__(self, transaction_id: Optional[str] = None):
        details = {"transaction_id": transaction_id} if transaction_id else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Transaction not found",
            error_type="NotFound",
            details=details,
        )


class DuplicateTransactionException(BusinessException):
    def __init__(self, transaction_id: str):
        super().__init__(
            code=PaymentCode.TRANSACTION_CONFLICT,
            message=f"Transaction {transaction_id} already exists",
            error_type="DuplicateId",
            details={"transaction_id": transaction_id},
            field="transaction_id",
        )


class InvalidTransitionException(BusinessException):
    """终态之间的状态迁移（SUCCESS <-> FAILED）被拒绝"""

    def __init__(self, transaction_id: str, current: str, requested: str):
        super().__init__(
            code=PaymentCode.TRANSACTION_CONFLICT,
            message=f"Cannot transition transaction from {current} to {requested}",
            error_type="InvalidTransition",
            details={"transaction_id": transaction_id, "current": current, "requested": requested},
            field="status",
        )


class TransactionIdExhaustedException(BusinessException):
    def __init__(self, attempts: int):
        super().__init__(
            code=PaymentCode.ID_EXHAUSTED,
            message="Unable to allocate a unique transaction id",
            error_type="IdentifierExhausted",
            details={"attempts": attempts},
        )


class CallbackAuthenticationException(BusinessException):
    """回调鉴权失败：缺少数据、校验和不匹配或载荷无法解析"""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="AuthError",
            details=details,
        )
