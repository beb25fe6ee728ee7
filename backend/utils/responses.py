from typing import Any, List, Optional
from fastapi.responses import JSONResponse

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data: Any, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)

def failure_json(message: str, status_code: int = 400, errors: Optional[List[dict]] = None):
    """Uniform ``{"success": false, "message": ...}`` body used by every error path."""
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return no_store_json(body, status_code=status_code)
