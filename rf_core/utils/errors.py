"""
RentFlow 错误处理系统
遵循 RFC7807 Problem Details 标准
"""
from typing import Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class ProblemDetail(BaseModel):
    """RFC7807 Problem Details 模型"""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "type": "about:blank",
                "title": "Validation Failed",
                "status": 422,
                "detail": "rule ranges overlap: [0, 10] and [5, 20]",
                "code": "COMMISSION_RULE_OVERLAP"
            }
        },
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None  # 业务错误码


class RentFlowException(Exception):
    """RentFlow 基础异常类"""

    def __init__(
        self,
        status: int,
        code: str,
        title: str,
        detail: Optional[str] = None,
        **kwargs
    ):
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail
        self.extra = kwargs
        super().__init__(detail or title)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        return ProblemDetail(
            type="about:blank",
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance,
            code=self.code,
            **self.extra
        )

    def to_response(self, request: Optional[Request] = None) -> JSONResponse:
        """转换为 JSON 响应"""
        instance = str(request.url) if request else None
        problem = self.to_problem_detail(instance)

        return JSONResponse(
            status_code=self.status,
            content={
                "ok": False,
                "error": problem.model_dump(exclude_none=True)
            }
        )


class BadRequestError(RentFlowException):
    """400 错误请求"""
    def __init__(self, code: str, detail: str):
        super().__init__(status=400, code=code, title="Bad Request", detail=detail)


class NotFoundError(RentFlowException):
    """404 未找到"""
    def __init__(self, code: str, resource: str):
        super().__init__(status=404, code=code, title="Not Found", detail=f"{resource} not found")


class ConflictError(RentFlowException):
    """409 冲突"""
    def __init__(self, code: str, detail: str):
        super().__init__(status=409, code=code, title="Conflict", detail=detail)


class ValidationError(RentFlowException):
    """422 验证失败"""
    def __init__(self, code: str, detail: str):
        super().__init__(status=422, code=code, title="Validation Failed", detail=detail)


class InternalServerError(RentFlowException):
    """500 内部错误"""
    def __init__(self, code: str = "INTERNAL_ERROR", detail: str = "An internal error occurred"):
        super().__init__(status=500, code=code, title="Internal Server Error", detail=detail)
