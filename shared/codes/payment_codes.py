"""
Payment specific codes and PhonePe vocabulary mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002

    # Transaction lifecycle errors (7xxxx)
    TRANSACTION_CONFLICT = 70000
    ID_EXHAUSTED = 70001


# PhonePe endpoint paths; also the strings covered by the X-VERIFY checksum
PHONEPE_PAY_ENDPOINT = "/pg/v1/pay"
PHONEPE_STATUS_ENDPOINT = "/pg/v1/status"

# Callback result code treated as a successful payment
PHONEPE_SUCCESS_CODE = "PAYMENT_SUCCESS"

# Provider state -> internal TransactionStatus value. States absent from the
# mapping (PENDING, INTERNAL_SERVER_ERROR, ...) leave the local record as is.
PROVIDER_STATUS_TO_INTERNAL = {
    "phonepe": {
        "COMPLETED": "SUCCESS",
        "FAILED": "FAILED",
    },
}
