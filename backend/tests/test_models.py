import datetime
import json
from decimal import Decimal

from erpchat.models.order_models import DispatchDetail, DispatchSummary, OrderStatusView
from erpchat.models.query_models import AccessScope, ExecutionResult, FormattedReply, QueryResult, ReplyKind
from erpchat.utils.formatting import display_value, format_quantity, to_number
from erpchat.utils.json_encoder import json_dumps, to_json_safe


class TestAccessScope:

    def test_normalization(self):
        assert AccessScope.of(None).is_unrestricted
        assert AccessScope.of("").is_unrestricted
        assert AccessScope.of([" Ravi ", "", "Ravi", None, "Anu"]).values == ("Ravi", "Anu")
        scope = AccessScope.of("Ravi")
        assert AccessScope.of(scope) is scope

    def test_str(self):
        assert str(AccessScope.of(None)) == "unrestricted"
        assert str(AccessScope.of(["Ravi", "Anu"])) == "Ravi, Anu"

    def test_predicate_custom_column(self):
        assert AccessScope.of("Ravi").predicate("o.marketing_person") == "o.marketing_person = 'Ravi'"
        assert AccessScope.of(None).predicate() is None


class TestResults:

    def test_from_execution_carries_flags(self):
        result = QueryResult.from_execution("SELECT 1", ExecutionResult.ok([{"a": 1}]), is_stock_query=True)

        assert result.success is True
        assert result.count == 1
        assert result.is_stock_query is True

    def test_failure(self):
        result = QueryResult.failure("boom")

        assert result.success is False
        assert result.data == []
        assert result.count == 0

    def test_direct_reply_message_is_question_only(self):
        reply = FormattedReply(ReplyKind.DIRECT, "Stock Summary")

        assert reply.as_user_message("stock?") == "stock?"


class TestJsonSafety:

    def test_nested_values(self):
        value = {
            "qty": Decimal("1.5"),
            "when": datetime.datetime(2026, 1, 2, 3, 4),
            "raw": b"abc",
            "items": ({"d": datetime.date(2026, 1, 2)},),
        }

        assert to_json_safe(value) == {
            "qty": 1.5,
            "when": "2026-01-02T03:04:00",
            "raw": "abc",
            "items": [{"d": "2026-01-02"}],
        }

    def test_json_dumps_handles_models(self):
        summary = DispatchSummary(dispatches=[DispatchDetail(despatch_number="D-1", weight=5)], total_dispatched=5)

        assert json.loads(json_dumps({"summary": summary, "qty": Decimal("2")})) == {
            "summary": {
                "dispatches": [{"despatch_number": "D-1", "weight": 5.0, "completion_date": None, "completed": False}],
                "total_dispatched": 5.0,
            },
            "qty": 2.0,
        }

    def test_order_view_to_json(self):
        view = OrderStatusView(found=True, order_number="TBI-1", expected_date=datetime.date(2026, 5, 1))

        assert json.loads(view.to_json()) == {"found": True, "order_number": "TBI-1", "expected_date": "2026-05-01"}


class TestFormatting:

    def test_format_quantity(self):
        assert format_quantity(1234.5) == "1,234.5"
        assert format_quantity(Decimal("300.000")) == "300"
        assert format_quantity("12.3456") == "12.346"
        assert format_quantity(None) == "0"
        assert format_quantity("n/a") == "n/a"

    def test_to_number(self):
        assert to_number("7.5") == 7.5
        assert to_number("") is None
        assert to_number("x") is None

    def test_display_value(self):
        assert display_value(Decimal("700.00")) == "700"
        assert display_value(2.25) == "2.25"
        assert display_value(False) == "false"
        assert display_value(datetime.date(2026, 1, 2)) == "2026-01-02"
