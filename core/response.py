"""
统一响应格式定义

对外信封：成功 {success: true, data?, count?, message?}，失败 {success: false, message}。
"""
from typing import Any, Optional
from pydantic import BaseModel


class Response(BaseModel):
    """统一响应模型"""
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    count: Optional[int] = None
    error: Optional[Any] = None


def success_response(data: Any = None, message: Optional[str] = None, count: Optional[int] = None) -> dict:
    """
    创建成功响应，只输出显式给出的字段

    Args:
        data: 返回数据
        message: 成功消息
        count: 列表条数

    Returns:
        dict: 可直接序列化的响应体
    """
    fields: dict[str, Any] = {"success": True}
    if data is not None:
        fields["data"] = data
    if message is not None:
        fields["message"] = message
    if count is not None:
        fields["count"] = count
    return Response(**fields).model_dump(mode="json", exclude_unset=True)


def error_response(message: str, error: Any = None) -> dict:
    """
    创建错误响应

    Args:
        message: 错误消息
        error: 调试信息，仅 DEBUG 模式下输出

    Returns:
        dict: 可直接序列化的响应体
    """
    fields: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        fields["error"] = error
    return Response(**fields).model_dump(mode="json", exclude_unset=True)
