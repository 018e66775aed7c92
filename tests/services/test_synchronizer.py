"""Tests for CalendarEventSynchronizer routing and failure handling."""

import logging
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from tests.conftest import EchoProfileResolver, create_event_record
from trainingsync.api_clients.base import BaseTokenAcquisition
from trainingsync.api_clients.exchange import ExchangeCalendarBackend
from trainingsync.api_clients.microsoft import GraphCalendarBackend, RequestContext
from trainingsync.config import AppConfig
from trainingsync.errors import (
    BackendTransportError,
    DirectoryLookupError,
    EventPreconditionError,
    FailureKind,
    SyncResult,
)
from trainingsync.localization import Localizer
from trainingsync.models import BackendRoute, CalendarEvent, EventAudience, EventType
from trainingsync.secrets_manager import (
    EXCHANGE_SERVICE_ACCOUNT,
    SecretsManager,
    ServiceAccount,
    get_secrets_manager,
)
from trainingsync.services import (
    AttendeeResolver,
    BackendSelector,
    CalendarEventSynchronizer,
    EventMapper,
)


def _echo_created(event: CalendarEvent) -> SyncResult[CalendarEvent]:
    return SyncResult.success(event.model_copy(update={"id": "graph-id"}))


class TestCalendarEventSynchronizer:
    """Test suite for the synchronizer with mocked backends."""

    @pytest.fixture
    def selector(self):
        selector = Mock(spec=BackendSelector)
        selector.resolve_route = AsyncMock(return_value=BackendRoute.CLOUD)
        selector.resolve_user_principal_name = AsyncMock(
            return_value="creator@contoso.com"
        )
        return selector

    @pytest.fixture
    def graph_backend(self):
        backend = Mock(spec=GraphCalendarBackend)
        backend.create = AsyncMock(side_effect=_echo_created)
        backend.update = AsyncMock(
            side_effect=lambda event_id, user_id, event: SyncResult.success(
                event.model_copy(update={"id": event_id})
            )
        )
        backend.cancel = AsyncMock(return_value=SyncResult.success(True))
        backend.create_online_meeting = AsyncMock(
            return_value=SyncResult.success("<div>Join Microsoft Teams Meeting</div>")
        )
        return backend

    @pytest.fixture
    def exchange_backend(self):
        backend = Mock(spec=ExchangeCalendarBackend)
        backend.connect = AsyncMock(return_value=Mock(name="account"))
        backend.create = AsyncMock(return_value=SyncResult.success("AAMkAD="))
        backend.update = AsyncMock(return_value=SyncResult.success("AAMkAD="))
        backend.delete = AsyncMock(return_value=SyncResult.success(True))
        return backend

    @pytest.fixture
    def profile_resolver(self):
        return EchoProfileResolver()

    @pytest.fixture
    def synchronizer(self, selector, graph_backend, exchange_backend, profile_resolver):
        return CalendarEventSynchronizer(
            selector=selector,
            mapper=EventMapper(Localizer("en-US")),
            attendee_resolver=AttendeeResolver(profile_resolver),
            graph_backend=graph_backend,
            exchange_backend=exchange_backend,
        )

    # Create

    @pytest.mark.asyncio
    async def test_create_cloud_event(self, synchronizer, graph_backend, exchange_backend):
        created = await synchronizer.create_event(create_event_record())

        assert created is not None
        assert created.id == "graph-id"
        graph_backend.create.assert_awaited_once()
        exchange_backend.connect.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_public_event_has_no_attendees(
        self, synchronizer, graph_backend, profile_resolver
    ):
        record = create_event_record(
            is_auto_register=True, registered_attendees="a@x.com"
        )

        await synchronizer.create_event(record)

        event = graph_backend.create.await_args.args[0]
        assert event.attendees == []
        assert profile_resolver.batches == []

    @pytest.mark.asyncio
    async def test_create_private_auto_register_event_invites(
        self, synchronizer, graph_backend
    ):
        record = create_event_record(
            is_auto_register=True,
            audience=EventAudience.PRIVATE,
            registered_attendees="a@x.com;b@x.com",
        )

        await synchronizer.create_event(record)

        event = graph_backend.create.await_args.args[0]
        assert [a.address for a in event.attendees] == ["a@x.com", "b@x.com"]

    @pytest.mark.asyncio
    async def test_create_rejects_missing_record_before_any_call(
        self, synchronizer, selector
    ):
        with pytest.raises(EventPreconditionError):
            await synchronizer.create_event(None)

        selector.resolve_route.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_route_failure_propagates(self, synchronizer, selector):
        selector.resolve_route.side_effect = DirectoryLookupError("lookup failed")

        with pytest.raises(DirectoryLookupError):
            await synchronizer.create_event(create_event_record())

    @pytest.mark.asyncio
    async def test_create_graph_failure_returns_none_and_reports(
        self, synchronizer, graph_backend
    ):
        error = BackendTransportError("boom", status=500)
        graph_backend.create.side_effect = None
        graph_backend.create.return_value = SyncResult.from_exception(error)
        telemetry = Mock()

        created = await synchronizer.create_event(create_event_record(), telemetry)

        assert created is None
        telemetry.track_exception.assert_called_once()
        exception, properties = telemetry.track_exception.call_args.args
        assert exception is error
        assert properties["failure_kind"] == FailureKind.BACKEND_TRANSPORT.value
        assert properties["operation"] == "create_event"

    @pytest.mark.asyncio
    async def test_create_on_premises_event(
        self, synchronizer, selector, graph_backend, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        record = create_event_record(description="Hands-on lab")

        created = await synchronizer.create_event(record)

        assert created is not None
        assert created.id == "AAMkAD="
        graph_backend.create.assert_not_called()
        graph_backend.create_online_meeting.assert_not_called()
        selector.resolve_user_principal_name.assert_awaited_once_with(None)
        exchange_backend.connect.assert_awaited_once_with("creator@contoso.com")
        _, event, body = exchange_backend.create.await_args.args
        assert body == "Hands-on lab"
        assert event.subject == record.name

    @pytest.mark.asyncio
    async def test_create_on_premises_teams_event_uses_join_information(
        self, synchronizer, selector, graph_backend, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        record = create_event_record(type=EventType.TEAMS)

        await synchronizer.create_event(record)

        graph_backend.create_online_meeting.assert_awaited_once()
        _, _, body = exchange_backend.create.await_args.args
        assert body == "<div>Join Microsoft Teams Meeting</div>"

    @pytest.mark.asyncio
    async def test_create_on_premises_without_connection_returns_none(
        self, synchronizer, selector, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        exchange_backend.connect.return_value = None

        assert await synchronizer.create_event(create_event_record()) is None
        exchange_backend.create.assert_not_called()

    # Update

    @pytest.mark.asyncio
    async def test_update_routes_on_creator(self, synchronizer, selector, graph_backend):
        record = create_event_record(graph_event_id="evt-graph-1")

        updated = await synchronizer.update_event(record)

        selector.resolve_route.assert_awaited_once_with("creator-oid")
        graph_backend.update.assert_awaited_once()
        event_id, user_id, _ = graph_backend.update.await_args.args
        assert (event_id, user_id) == ("evt-graph-1", "creator-oid")
        assert updated is not None and updated.id == "evt-graph-1"

    @pytest.mark.asyncio
    async def test_update_recomputes_full_attendee_list(
        self, synchronizer, graph_backend
    ):
        first = create_event_record(
            graph_event_id="evt-graph-1", registered_attendees="a@x.com"
        )
        second = create_event_record(
            graph_event_id="evt-graph-1",
            registered_attendees="b@x.com",
            auto_registered_attendees="c@x.com",
        )

        await synchronizer.update_event(first)
        await synchronizer.update_event(second)

        event = graph_backend.update.await_args.args[2]
        assert [a.address for a in event.attendees] == ["b@x.com", "c@x.com"]

    @pytest.mark.asyncio
    async def test_update_public_event_still_invites(self, synchronizer, graph_backend):
        record = create_event_record(
            graph_event_id="evt-graph-1",
            audience=EventAudience.PUBLIC,
            registered_attendees="a@x.com",
        )

        await synchronizer.update_event(record)

        event = graph_backend.update.await_args.args[2]
        assert [a.address for a in event.attendees] == ["a@x.com"]

    @pytest.mark.asyncio
    async def test_update_requires_backend_event_id(self, synchronizer, selector):
        with pytest.raises(EventPreconditionError):
            await synchronizer.update_event(create_event_record())

        selector.resolve_route.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_on_premises(self, synchronizer, selector, exchange_backend):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        record = create_event_record(
            graph_event_id="AAMkAD=",
            number_of_occurrences=2,
            end_date=date(2024, 5, 2),
        )

        updated = await synchronizer.update_event(record)

        selector.resolve_user_principal_name.assert_awaited_once_with("creator-oid")
        _, event_id, event = exchange_backend.update.await_args.args
        assert event_id == "AAMkAD="
        assert event.recurrence is not None
        assert updated is not None and updated.id == "AAMkAD="

    @pytest.mark.asyncio
    async def test_update_failure_returns_none(self, synchronizer, graph_backend):
        graph_backend.update.side_effect = None
        graph_backend.update.return_value = SyncResult.failure(
            FailureKind.BACKEND_TRANSPORT, "timeout"
        )

        record = create_event_record(graph_event_id="evt-graph-1")
        assert await synchronizer.update_event(record) is None

    # Cancel

    @pytest.mark.asyncio
    async def test_cancel_cloud_event(self, synchronizer, graph_backend):
        cancelled = await synchronizer.cancel_event(
            "evt-graph-1", "creator-oid", "Trainer unavailable"
        )

        assert cancelled is True
        graph_backend.cancel.assert_awaited_once_with(
            "evt-graph-1", "creator-oid", "Trainer unavailable"
        )

    @pytest.mark.asyncio
    async def test_cancel_cloud_failure_returns_false(self, synchronizer, graph_backend):
        graph_backend.cancel.return_value = SyncResult.failure(
            FailureKind.AUTHENTICATION, "forbidden"
        )

        assert await synchronizer.cancel_event("evt", "creator-oid", "") is False

    @pytest.mark.asyncio
    async def test_cancel_on_premises_deletes(
        self, synchronizer, selector, graph_backend, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES

        cancelled = await synchronizer.cancel_event("AAMkAD=", "creator-oid", "")

        assert cancelled is True
        exchange_backend.delete.assert_awaited_once()
        assert exchange_backend.delete.await_args.args[1] == "AAMkAD="
        graph_backend.cancel.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_on_premises_without_connection_returns_false(
        self, synchronizer, selector, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        exchange_backend.connect.return_value = None

        cancelled = await synchronizer.cancel_event("AAMkAD=", "creator-oid", "")

        assert cancelled is False
        exchange_backend.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_on_premises_principal_lookup_failure_returns_false(
        self, synchronizer, selector, exchange_backend
    ):
        selector.resolve_route.return_value = BackendRoute.ON_PREMISES
        selector.resolve_user_principal_name.side_effect = DirectoryLookupError("gone")

        assert await synchronizer.cancel_event("AAMkAD=", "creator-oid", "") is False
        exchange_backend.connect.assert_not_called()

    # Record annotation

    @pytest.mark.asyncio
    async def test_create_event_record_annotates_backend_id(self, synchronizer):
        record = create_event_record()

        annotated = await synchronizer.create_event_record(record)

        assert annotated is not None
        assert annotated.graph_event_id == "graph-id"
        assert annotated.event_id == record.event_id
        assert record.graph_event_id is None

    @pytest.mark.asyncio
    async def test_create_event_record_failure_returns_none(
        self, synchronizer, graph_backend
    ):
        graph_backend.create.side_effect = None
        graph_backend.create.return_value = SyncResult.failure(
            FailureKind.BACKEND_TRANSPORT, "timeout"
        )

        assert await synchronizer.create_event_record(create_event_record()) is None

    # Lifecycle

    @pytest.mark.asyncio
    async def test_async_with_closes_backends(
        self, synchronizer, graph_backend, exchange_backend
    ):
        async with synchronizer as active:
            assert active is synchronizer

        graph_backend.close.assert_awaited_once()
        exchange_backend.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_releases_exchange_even_if_graph_close_fails(
        self, synchronizer, graph_backend, exchange_backend
    ):
        graph_backend.close.side_effect = RuntimeError("session already closed")

        with pytest.raises(RuntimeError):
            await synchronizer.close()

        exchange_backend.close.assert_called_once()


class TestSynchronizerFromConfig:
    """Tests for the production wiring built by from_config."""

    @pytest.fixture(autouse=True)
    def reset_secrets_manager(self):
        SecretsManager._instance = None
        yield
        SecretsManager._instance = None

    @pytest.fixture
    def tokens(self):
        tokens = AsyncMock(spec=BaseTokenAcquisition)
        tokens.get_user_access_token.return_value = "user-token"
        tokens.get_application_access_token.return_value = "app-token"
        return tokens

    @pytest.fixture
    def context(self):
        return RequestContext(user_object_id="user-oid", bearer_token="incoming")

    def _config(self, **overrides):
        values = {
            "tenant_id": "tenant",
            "client_id": "client",
            "client_secret": "secret",
            "graph_base_url": "https://graph.microsoft.com/v1.0",
            "graph_beta_base_url": "https://graph.microsoft.com/beta",
            "ews_service_url": "https://mail.contoso.com/EWS/Exchange.asmx",
            "secrets_database_url": "sqlite:///:memory:",
        }
        values.update(overrides)
        return AppConfig(**values)

    @pytest.mark.asyncio
    async def test_delegated_client_uses_request_user_token(self, tokens, context):
        synchronizer = CalendarEventSynchronizer.from_config(
            self._config(), context, tokens
        )
        delegated = synchronizer.graph_backend.delegated_client

        assert delegated.base_url == "https://graph.microsoft.com/v1.0"
        assert await delegated.token_provider() == "user-token"
        tokens.get_user_access_token.assert_awaited_once_with("user-oid", "incoming")
        # Routing and attendee lookups run as the signed-in user too
        assert synchronizer.selector.directory.graph_client is delegated
        assert synchronizer.attendee_resolver.profile_resolver.graph_client is delegated

    @pytest.mark.asyncio
    async def test_update_and_cancel_use_application_clients(self, tokens, context):
        synchronizer = CalendarEventSynchronizer.from_config(
            self._config(), context, tokens
        )
        application = synchronizer.graph_backend.application_client
        beta = synchronizer.graph_backend.beta_application_client

        assert application.base_url == "https://graph.microsoft.com/v1.0"
        assert beta.base_url == "https://graph.microsoft.com/beta"
        assert await application.token_provider() == "app-token"
        assert await beta.token_provider() == "app-token"
        tokens.get_user_access_token.assert_not_called()

    def test_configured_service_account_wins_over_store(self, tokens, context):
        config = self._config(
            ews_service_email="env@contoso.com", ews_service_password="env-pw"
        )
        get_secrets_manager(config.secrets_database_url).store_service_account(
            EXCHANGE_SERVICE_ACCOUNT, "stored@contoso.com", "stored-pw"
        )

        synchronizer = CalendarEventSynchronizer.from_config(config, context, tokens)

        assert synchronizer.exchange_backend.service_url == config.ews_service_url
        assert synchronizer.exchange_backend.service_account == ServiceAccount(
            email="env@contoso.com", password="env-pw"
        )

    def test_stored_service_account_used_when_not_configured(self, tokens, context):
        config = self._config()
        get_secrets_manager(config.secrets_database_url).store_service_account(
            EXCHANGE_SERVICE_ACCOUNT, "stored@contoso.com", "stored-pw"
        )

        synchronizer = CalendarEventSynchronizer.from_config(config, context, tokens)

        assert synchronizer.exchange_backend.service_account == ServiceAccount(
            email="stored@contoso.com", password="stored-pw"
        )

    def test_repeated_wiring_does_not_warn(self, tokens, context, caplog):
        config = self._config(
            ews_service_email="env@contoso.com", ews_service_password="env-pw"
        )

        with caplog.at_level(logging.WARNING, logger="trainingsync.secrets_manager"):
            CalendarEventSynchronizer.from_config(config, context, tokens)
            CalendarEventSynchronizer.from_config(config, context, tokens)

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    @pytest.mark.asyncio
    async def test_close_releases_sessions_and_threads(self, tokens, context):
        synchronizer = CalendarEventSynchronizer.from_config(
            self._config(), context, tokens
        )
        backend = synchronizer.graph_backend
        clients = [
            backend.delegated_client,
            backend.application_client,
            backend.beta_application_client,
        ]
        sessions = [client._ensure_session() for client in clients]

        await synchronizer.close()

        assert all(session.closed for session in sessions)
        assert all(client.session is None for client in clients)
        with pytest.raises(RuntimeError):
            synchronizer.exchange_backend._executor.submit(lambda: None)
