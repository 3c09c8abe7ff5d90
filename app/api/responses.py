from fastapi.responses import JSONResponse


def success_response() -> JSONResponse:
    return JSONResponse({"status": "success"})


def error_response(message: str, status_code: int = 400, error_type: str | None = None) -> JSONResponse:
    """send-code 只带 message，whitelist-apply 额外带 type"""
    error = {"message": message} if error_type is None else {"type": error_type, "message": message}
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "error": error},
    )
