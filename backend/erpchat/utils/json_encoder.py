from datetime import datetime, date
from decimal import Decimal
import json
from typing import Any


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert driver values into JSON-safe ones:
    - Decimal objects (converted to float)
    - Datetime and Date objects (converted to ISO format)
    - Bytes (decoded as UTF-8)
    """
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, bytes):
        return obj.decode("utf-8", "replace")
    if isinstance(obj, dict):
        return {k: to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]
    return obj


class CustomJSONEncoder(json.JSONEncoder):
    """JSON encoder for ERP rows and order views"""
    def default(self, obj: Any) -> Any:
        if isinstance(obj, (Decimal, datetime, date, bytes)):
            return to_json_safe(obj)
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if hasattr(obj, "model_dump"):  # Pydantic v2
            return obj.model_dump(mode="json")

        return super().default(obj)


def json_dumps(obj: Any, **kwargs) -> str:
    """Helper function to dump JSON with CustomJSONEncoder"""
    kwargs.setdefault('cls', CustomJSONEncoder)
    return json.dumps(obj, **kwargs)
