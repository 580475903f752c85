from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    count: Optional[int] = None
    warnings: Optional[list[str]] = None
