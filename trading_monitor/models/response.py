"""错误响应模型：/api/data 刷新失败与全局异常处理共用"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """{"success": false, "error": ..., "message": ...}"""
    success: bool = False
    error: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException, message: str) -> "ErrorResponse":
        return cls(error=str(exc) or exc.__class__.__name__, message=message)
