"""
Standard API response helpers.

Provides the shared envelope ``{success, message?, data?, errors?}`` for
success and error cases.

Example:
    from common.utils import success_response, error_response

    @app.get("/surveys/{id}")
    async def get_survey(id: str):
        survey = await surveys.find_one({"_id": ObjectId(id)})
        if not survey:
            return JSONResponse(
                status_code=404,
                content=error_response("Survey not found", code="SURVEY_NOT_FOUND")
            )
        return success_response(survey, message="Survey retrieved")
"""

from typing import Any, Optional, Dict


def success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a standard success response.

    Args:
        data: The response data (can be dict, list, or any serializable type)
        message: Optional success message

    Returns:
        Dictionary with success=True and optional data/message
    """
    response: Dict[str, Any] = {"success": True}

    if message:
        response["message"] = message

    if data is not None:
        response["data"] = data

    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
    errors: Optional[list] = None,
) -> Dict[str, Any]:
    """
    Create a standard error response.

    Args:
        message: Human-readable error message
        code: Machine-readable error code (e.g., "SURVEY_CLOSED")
        details: Additional error details
        errors: List of specific errors (for validation errors)

    Returns:
        Dictionary with success=False and error info
    """
    response: Dict[str, Any] = {"success": False, "message": message}

    if code:
        response["code"] = code

    if details is not None:
        response["details"] = details

    if errors:
        response["errors"] = errors

    return response


def paginated_response(
    items: list,
    total: int,
    page: int = 1,
    limit: int = 20,
    message: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a paginated success response.

    Args:
        items: List of items for current page
        total: Total number of items across all pages
        page: Current page number (1-indexed)
        limit: Items per page
        message: Optional success message
        extra: Additional keys merged into ``data``

    Returns:
        Dictionary with success=True, items and pagination metadata
    """
    total_pages = (total + limit - 1) // limit if limit > 0 else 0

    data: Dict[str, Any] = {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPreviousPage": page > 1,
        },
    }
    if extra:
        data.update(extra)

    return success_response(data, message=message)
