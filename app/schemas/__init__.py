from .response import BaseResponse, api_response, error_response
from .pagination import Pagination, PaginatedResponse

__all__ = [
    "BaseResponse", "api_response", "error_response",
    "Pagination", "PaginatedResponse",
]
