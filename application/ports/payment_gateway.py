"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import PayRequest, PayResult, StatusResult


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the third-party payment provider.

    Implementations should be async and side-effect free beyond IO.
    Failures are raised as PaymentProviderError (upstream rejected the call)
    or PaymentRecoverableError (network failure / timeout after retries).
    """

    provider: str

    async def pay(self, req: PayRequest) -> PayResult: ...

    async def query_status(self, transaction_id: str) -> StatusResult: ...

    async def aclose(self) -> None: ...
