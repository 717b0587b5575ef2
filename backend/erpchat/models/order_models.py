"""
Order Status Read Models

Pydantic views returned by the order-status read path. Only the fields the
status presenter sets are emitted by ``to_dict()``, so hidden fields are
absent rather than null.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from erpchat.utils.json_encoder import json_dumps, to_json_safe


class DispatchDetail(BaseModel):
    """One dispatch of an order"""
    despatch_number: str
    weight: float = 0.0
    completion_date: Optional[Any] = None
    completed: bool = False

    @field_serializer("completion_date")
    def _serialize_completion_date(self, value: Any) -> Any:
        return to_json_safe(value)


class DispatchSummary(BaseModel):
    dispatches: List[DispatchDetail] = Field(default_factory=list)
    total_dispatched: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class DispatchRecord(BaseModel):
    """Dispatch found by number, with its weight and invoice state"""
    dispatch_number: str
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    weight: float = 0.0
    completion_date: Optional[Any] = None
    invoice_status: str = "Not invoiced"

    @field_serializer("completion_date")
    def _serialize_completion_date(self, value: Any) -> Any:
        return to_json_safe(value)


class OrderStatusView(BaseModel):
    """
    Status-conditional view of one order.

    pending hides material status, expected date and dispatch; in_progress
    shows all three; completed shows dispatch and whether it is fully
    dispatched.
    """
    model_config = ConfigDict(extra="forbid")

    found: bool
    error: Optional[bool] = None
    message: Optional[str] = None

    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    order_status: Optional[str] = None
    order_qty: Optional[float] = None
    data: Optional[Dict[str, Any]] = None

    material_status: Optional[str] = None
    expected_date: Optional[Any] = None
    show_material_status: Optional[bool] = None
    show_expected_date: Optional[bool] = None
    show_dispatch: Optional[bool] = None
    dispatch_info: Optional[List[DispatchDetail]] = None
    total_dispatched: Optional[float] = None
    remaining_qty: Optional[float] = None
    is_fully_dispatched: Optional[bool] = None

    @field_serializer("data", "expected_date")
    def _serialize_raw(self, value: Any) -> Any:
        return to_json_safe(value)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dictionary of the fields set by the presenter"""
        return self.model_dump(mode="json", exclude_unset=True)

    def to_json(self) -> str:
        return json_dumps(self.to_dict())
