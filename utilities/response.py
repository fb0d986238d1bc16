from typing import Any, Dict, Optional
from pydantic import BaseModel

class APIResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None

def error_response(message: str, data: Any = None) -> Dict:
    """Create an error response"""
    return APIResponse(success=False, data=data, message=message).model_dump(mode="json")
