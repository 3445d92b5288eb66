from typing import Any, Dict, List, Optional
from fastapi import status, Request
from fastapi.responses import JSONResponse
from app.schemas.response_schemas import ApiResponse, PaginationMeta, ResponseStatus
from app.utils.context import get_request_id


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or get_request_id()


class ResponseBuilder:
    """Builder class for creating standardized responses"""

    @staticmethod
    def _build(
        request: Request, status_code: int, **fields: Any
    ) -> JSONResponse:
        request_id = _request_id(request)
        if request_id:
            fields["request_id"] = request_id
        response = ApiResponse(path=str(request.url.path), **fields)
        return JSONResponse(
            status_code=status_code, content=response.model_dump(exclude_none=True)
        )

    @staticmethod
    def success(
        request: Request,
        data: Any = None,
        message: str = "Request successful",
        meta: Optional[Dict[str, Any]] = None,
        pagination: Optional[PaginationMeta] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        """Create a success response"""
        return ResponseBuilder._build(
            request,
            status_code,
            success=True,
            status=ResponseStatus.SUCCESS,
            message=message,
            data=data,
            meta=meta,
            pagination=pagination,
        )

    @staticmethod
    def error(
        request: Request,
        message: str = "An error occurred",
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """Create an error response"""
        response_meta = meta or {}
        if error_code:
            response_meta["error_code"] = error_code

        return ResponseBuilder._build(
            request,
            status_code,
            success=False,
            status=ResponseStatus.ERROR,
            message=message,
            data=data,
            meta=response_meta if response_meta else None,
            errors=errors,
        )

    @staticmethod
    def warning(
        request: Request,
        data: Any = None,
        message: str = "Request completed with warnings",
        warnings: Optional[List[str]] = None,
        meta: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        """Create a warning response ("nothing to do" outcomes use this)"""
        return ResponseBuilder._build(
            request,
            status_code,
            success=True,
            status=ResponseStatus.WARNING,
            message=message,
            data=data,
            meta=meta,
            warnings=warnings,
        )

    @staticmethod
    def paginated(
        request: Request,
        results: List[Any],
        page: int,
        page_size: int,
        total: int,
        message: str = "Data retrieved successfully",
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """Create a paginated response with the list envelope used by the dashboards"""
        total_pages = max(1, (total + page_size - 1) // page_size)
        has_next = page < total_pages
        has_prev = page > 1

        pagination = PaginationMeta(
            page=page,
            per_page=page_size,
            total=total,
            total_pages=total_pages,
            has_next=has_next,
            has_prev=has_prev,
            next_page=page + 1 if has_next else None,
            prev_page=page - 1 if has_prev else None,
        )

        return ResponseBuilder.success(
            request=request,
            data={
                "results": results,
                "total": total,
                "totalPages": total_pages,
                "page": page,
                "pageSize": page_size,
            },
            message=message,
            meta=meta,
            pagination=pagination,
        )
