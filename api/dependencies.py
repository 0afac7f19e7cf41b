"""
API依赖项 - 从应用状态中取出在 lifespan 中组装好的服务
"""
from fastapi import Request

from application.services.payment_service import PaymentService


async def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_callback_url(request: Request) -> str:
    """根据当前服务的访问地址推导网关回调地址"""
    return str(request.url_for("phonepe_callback"))
