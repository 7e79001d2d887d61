"""Global error handlers."""
from fastapi import Request
from fastapi.responses import JSONResponse


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=422,
        content={"error": str(exc), "code": "VALIDATION_ERROR", "details": {}},
    )


def not_found(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": message, "code": "NOT_FOUND", "details": {}},
    )
