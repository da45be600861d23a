from pydantic import BaseModel


class DeleteResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str | None = None  # 400 and 5xx
    message: str | None = None  # 404
    request_id: str | None = None
