from pydantic import BaseModel
from typing import Optional


class ApiErrorResponse(BaseModel):
    title: str
    status: int
    detail: str
    url: Optional[str] = None

    def is_transient(self) -> bool:
        return self.status in (502, 503, 504)
