# =============================================================================
# tests/unit/test_remote_services.py
# Unit Tests for the remote record service adapters
# =============================================================================

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pandas as pd
import pytest

from invoice_core.config import Settings
from invoice_core.errors import (
    ConfigurationError,
    ConnectivityError,
    PermissionDeniedError,
    RemoteServiceError,
)
from invoice_core.remote.base import Subscription
from invoice_core.remote.supabase_service import SupabaseRemoteService, create_supabase_client


class FakeAPIError(Exception):
    """Shape of postgrest's APIError (code + message attributes)"""

    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


class TestSubscription:

    def test_deliver_until_cancelled(self):
        received = []
        subscription = Subscription(received.append)

        assert subscription.deliver([{"id": "a"}]) is True
        subscription.cancel()
        assert subscription.deliver([{"id": "b"}]) is False

        assert received == [[{"id": "a"}]]

    def test_on_cancel_runs_once(self):
        released = []
        subscription = Subscription(lambda records: None, on_cancel=lambda: released.append(True))

        subscription()
        subscription.cancel()

        assert released == [True]

    def test_callback_error_is_contained(self):
        def broken(records):
            raise ValueError("bad callback")

        assert Subscription(broken).deliver([]) is True

    def test_cancel_from_inside_callback(self):
        received = []

        def once(records):
            received.append(records)
            subscription.cancel()

        subscription = Subscription(once)
        subscription.deliver([1])
        subscription.deliver([2])

        assert received == [[1]]


class TestInMemoryRemoteService:

    def test_add_assigns_id(self, remote):
        record_id = remote.add("clients", {"id": "ignored", "name": "Acme"})

        assert record_id != "ignored"
        assert remote.get("clients", record_id) == {"id": record_id, "name": "Acme"}

    def test_list_applies_equality_filters(self, remote, sample_clients):
        remote.seed("clients", sample_clients + [{"id": "x", "companyId": "co2"}])

        assert len(remote.list("clients", {"companyId": "co1"})) == 3
        assert len(remote.list("clients")) == 4

    def test_update_missing_record_raises(self, remote):
        with pytest.raises(RemoteServiceError):
            remote.update("clients", "missing", {"name": "A"})

    def test_offline_switch(self, remote):
        remote.offline = True

        with pytest.raises(ConnectivityError):
            remote.list("clients")

    def test_fail_with_switch(self, remote):
        remote.fail_with = PermissionDeniedError("denied")

        with pytest.raises(PermissionDeniedError):
            remote.get("clients", "a")

    def test_returned_records_are_copies(self, remote):
        remote.seed("clients", [{"id": "a", "tags": ["x"]}])

        remote.get("clients", "a")["tags"].append("y")

        assert remote.records("clients")["a"]["tags"] == ["x"]

    def test_native_timestamp(self, remote):
        ts = pd.Timestamp("2024-01-01T00:00:00")

        assert remote.is_remote_timestamp(ts)
        converted = remote.to_datetime(ts)
        assert type(converted) is datetime
        assert not remote.is_remote_timestamp(converted)


class TestSupabaseRemoteService:

    @pytest.fixture
    def service(self, mock_supabase):
        return SupabaseRemoteService(mock_supabase, poll_interval=60)

    def test_get(self, service, mock_supabase):
        mock_supabase.query.execute.return_value = MagicMock(data=[{"id": "c1", "name": "Acme"}])

        assert service.get("clients", "c1") == {"id": "c1", "name": "Acme"}
        mock_supabase.table.assert_called_with("clients")
        mock_supabase.query.eq.assert_called_with("id", "c1")

    def test_get_missing(self, service):
        assert service.get("clients", "nope") is None

    def test_list_applies_filters_and_pages(self, service, mock_supabase):
        service.BATCH_SIZE = 2
        mock_supabase.query.execute.side_effect = [
            MagicMock(data=[{"id": "a"}, {"id": "b"}]),
            MagicMock(data=[{"id": "c"}]),
        ]

        records = service.list("clients", {"companyId": "co1"})

        assert [r["id"] for r in records] == ["a", "b", "c"]
        mock_supabase.query.eq.assert_any_call("companyId", "co1")
        mock_supabase.query.range.assert_any_call(0, 1)
        mock_supabase.query.range.assert_any_call(2, 3)

    def test_add_returns_assigned_id(self, service, mock_supabase):
        mock_supabase.query.execute.return_value = MagicMock(data=[{"id": 42}])

        record_id = service.add("clients", {
            "id": "clients_1_abc",
            "name": "Acme",
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        })

        assert record_id == "42"
        mock_supabase.query.insert.assert_called_once_with({
            "name": "Acme",
            "createdAt": "2024-01-01T00:00:00+00:00",
        })

    def test_update_sends_dates_and_amounts_as_text(self, service, mock_supabase):
        mock_supabase.query.execute.return_value = MagicMock(data=[{"id": "INV-1"}])

        service.update("invoices", "INV-1", {"dueDate": date(2024, 3, 1), "total": Decimal("10.50")})

        mock_supabase.query.update.assert_called_once_with({"dueDate": "2024-03-01", "total": "10.50"})

    def test_update_without_match_raises(self, service):
        with pytest.raises(RemoteServiceError):
            service.update("clients", "missing", {"name": "A"})

    def test_transport_error_is_connectivity(self, service, mock_supabase):
        mock_supabase.query.execute.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ConnectivityError):
            service.list("clients")

    @pytest.mark.parametrize("code", ["42501", "PGRST301", "401", "403"])
    def test_permission_codes(self, service, mock_supabase, code):
        mock_supabase.query.execute.side_effect = FakeAPIError(code, "permission denied")

        with pytest.raises(PermissionDeniedError) as exc_info:
            service.get("clients", "c1")

        assert exc_info.value.details["remote_code"] == code

    def test_other_errors_are_remote_errors(self, service, mock_supabase):
        mock_supabase.query.execute.side_effect = FakeAPIError("23505", "duplicate key")

        with pytest.raises(RemoteServiceError) as exc_info:
            service.add("clients", {"name": "A"})

        assert type(exc_info.value) is RemoteServiceError
        assert exc_info.value.kind == "remote"

    @pytest.mark.parametrize("value, expected", [
        ("2024-01-15T10:30:00+00:00", True),
        ("2024-01-15T10:30:00.123456Z", True),
        ("2024-01-15 10:30:00", True),
        ("2024-01-15", False),
        ("Acme", False),
        (1705314600, False),
        (None, False),
    ])
    def test_is_remote_timestamp(self, service, value, expected):
        assert service.is_remote_timestamp(value) is expected

    def test_to_datetime(self, service):
        converted = service.to_datetime("2024-01-15T10:30:00+00:00")

        assert type(converted) is datetime
        assert converted == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert not service.is_remote_timestamp(converted)

    def test_subscribe_delivers_first_snapshot_and_cancels(self, service, mock_supabase):
        mock_supabase.query.execute.return_value = MagicMock(data=[{"id": "c1"}])
        received = []

        subscription = service.subscribe("clients", received.append, {"companyId": "co1"})
        subscription.cancel()

        assert received == [[{"id": "c1"}]]
        assert subscription.cancelled

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            create_supabase_client(Settings())
