"""Calendar event synchronization across Graph and Exchange."""

import logging
from typing import Any, Dict, Optional

from exchangelib import Account

from trainingsync.api_clients.base import BaseTokenAcquisition
from trainingsync.api_clients.exchange import ExchangeCalendarBackend
from trainingsync.api_clients.microsoft import (
    GraphCalendarBackend,
    GraphDirectoryClient,
    MicrosoftGraphClient,
    RequestContext,
    TokenAcquisitionHelper,
)
from trainingsync.config import AppConfig
from trainingsync.errors import (
    DirectoryLookupError,
    EventPreconditionError,
    FailureKind,
    SyncResult,
)
from trainingsync.localization import Localizer
from trainingsync.models import BackendRoute, CalendarEvent, EventRecord, EventType
from trainingsync.secrets_manager import (
    get_secrets_manager,
    resolve_exchange_service_account,
)
from trainingsync.telemetry import TelemetrySink, track_failure

from .attendees import AttendeeResolver
from .mapper import EventMapper, attendees_required_on_create, require_event
from .routing import BackendSelector

logger = logging.getLogger(__name__)


class CalendarEventSynchronizer:
    """Creates, updates and cancels the calendar event behind a training event.

    Users synced from on-premises are served through Exchange, everyone else
    through Graph. The route is resolved once per call and handed down to the
    adapter; nothing about a user or an appointment is kept on the instance.

    The public methods keep the collapsed contract callers rely on (``None``
    or ``False`` on failure) and log the typed failure reason.
    """

    def __init__(
        self,
        selector: BackendSelector,
        mapper: EventMapper,
        attendee_resolver: AttendeeResolver,
        graph_backend: GraphCalendarBackend,
        exchange_backend: ExchangeCalendarBackend,
    ):
        self.selector = selector
        self.mapper = mapper
        self.attendee_resolver = attendee_resolver
        self.graph_backend = graph_backend
        self.exchange_backend = exchange_backend

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        context: RequestContext,
        token_acquisition: Optional[BaseTokenAcquisition] = None,
    ) -> "CalendarEventSynchronizer":
        """Wire up the Graph clients and backends for one request.

        The caller owns the result and must close it, e.g. with ``async with``.
        """
        tokens = token_acquisition or TokenAcquisitionHelper.from_config(config)

        async def user_token() -> str:
            return await tokens.get_user_access_token(
                context.user_object_id, context.bearer_token
            )

        delegated_client = MicrosoftGraphClient(user_token, config.graph_base_url)
        application_client = MicrosoftGraphClient(
            tokens.get_application_access_token, config.graph_base_url
        )
        beta_application_client = MicrosoftGraphClient(
            tokens.get_application_access_token, config.graph_beta_base_url
        )
        directory = GraphDirectoryClient(delegated_client)

        service_account = resolve_exchange_service_account(
            config.ews_service_email,
            config.ews_service_password,
            get_secrets_manager(config.secrets_database_url),
        )

        return cls(
            selector=BackendSelector(directory),
            mapper=EventMapper(Localizer(config.locale)),
            attendee_resolver=AttendeeResolver(directory),
            graph_backend=GraphCalendarBackend(
                delegated_client, application_client, beta_application_client
            ),
            exchange_backend=ExchangeCalendarBackend(
                config.ews_service_url, service_account
            ),
        )

    async def __aenter__(self) -> "CalendarEventSynchronizer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the Graph sessions and the Exchange worker threads."""
        try:
            await self.graph_backend.close()
        finally:
            self.exchange_backend.close()

    def _report(
        self,
        operation: str,
        result: SyncResult[Any],
        telemetry: Optional[TelemetrySink],
        properties: Dict[str, Any],
    ) -> None:
        kind = result.failure_kind.value if result.failure_kind else "none"
        logger.error(f"{operation} failed ({kind}): {result.message}")
        if result.exception is not None:
            track_failure(
                telemetry,
                result.exception,
                {"operation": operation, "failure_kind": kind, **properties},
            )

    async def _connect(self, user_id: Optional[str]) -> SyncResult[Account]:
        """Open an Exchange connection to ``user_id``'s mailbox."""
        try:
            principal_name = await self.selector.resolve_user_principal_name(user_id)
        except DirectoryLookupError as e:
            return SyncResult.from_exception(e)

        account = await self.exchange_backend.connect(principal_name)
        if account is None:
            return SyncResult.failure(
                FailureKind.CONNECTION, f"No EWS connection for {principal_name}"
            )
        return SyncResult.success(account)

    async def _on_premises_body(
        self, record: EventRecord, event: CalendarEvent
    ) -> SyncResult[str]:
        if record.type != EventType.TEAMS:
            return SyncResult.success(event.body_content)
        # Exchange cannot provision Teams meetings; Graph supplies the join details
        return await self.graph_backend.create_online_meeting(event)

    async def _create_on_premises(
        self, record: EventRecord, event: CalendarEvent
    ) -> SyncResult[CalendarEvent]:
        body = await self._on_premises_body(record, event)
        if not body.ok:
            return _failed(body)

        connection = await self._connect(None)
        if not connection.ok or connection.value is None:
            return _failed(connection)

        created = await self.exchange_backend.create(
            connection.value, event, body.value or ""
        )
        if not created.ok:
            return _failed(created)
        return SyncResult.success(event.model_copy(update={"id": created.value}))

    async def _update_on_premises(
        self, record: EventRecord, event: CalendarEvent
    ) -> SyncResult[CalendarEvent]:
        connection = await self._connect(record.created_by)
        if not connection.ok or connection.value is None:
            return _failed(connection)

        updated = await self.exchange_backend.update(
            connection.value, record.graph_event_id or "", event
        )
        if not updated.ok:
            return _failed(updated)
        return SyncResult.success(event.model_copy(update={"id": updated.value}))

    async def _delete_on_premises(
        self, event_id: str, created_by: str
    ) -> SyncResult[bool]:
        connection = await self._connect(created_by)
        if not connection.ok or connection.value is None:
            return _failed(connection)
        return await self.exchange_backend.delete(connection.value, event_id)

    async def create_event(
        self, record: Optional[EventRecord], telemetry: Optional[TelemetrySink] = None
    ) -> Optional[CalendarEvent]:
        """Create the calendar event for ``record`` as the acting user.

        Returns the created event carrying the backend event id, or None when
        the backend call failed.

        Raises:
            EventPreconditionError: ``record`` is missing or incomplete.
            DirectoryLookupError: The route or the attendees could not be resolved.
        """
        record = require_event(record)
        event = self.mapper.map_to_calendar_event(record)

        route = await self.selector.resolve_route()

        if attendees_required_on_create(record):
            attendees = await self.attendee_resolver.resolve_attendees(record)
            event = event.model_copy(update={"attendees": attendees})

        if route == BackendRoute.ON_PREMISES:
            result = await self._create_on_premises(record, event)
        else:
            result = await self.graph_backend.create(event)

        if not result.ok:
            self._report("create_event", result, telemetry, {"event_id": record.event_id})
            return None
        return result.value

    async def create_event_record(
        self, record: Optional[EventRecord], telemetry: Optional[TelemetrySink] = None
    ) -> Optional[EventRecord]:
        """Create the calendar event and return ``record`` annotated with its id.

        Returns None when the backend call failed; raises as :meth:`create_event`.
        """
        created = await self.create_event(record, telemetry)
        if created is None or record is None or not created.id:
            return None
        return record.with_backend_event_id(created.id)

    async def update_event(
        self, record: Optional[EventRecord], telemetry: Optional[TelemetrySink] = None
    ) -> Optional[CalendarEvent]:
        """Overwrite the creator's calendar event with the current record state.

        The attendee list is always rebuilt from the record.

        Raises:
            EventPreconditionError: ``record`` is missing or incomplete.
            DirectoryLookupError: The route or the attendees could not be resolved.
        """
        record = require_event(record)
        event = self.mapper.map_to_calendar_event(record)
        if not record.graph_event_id:
            raise EventPreconditionError(
                f"Event {record.event_id} has no backend event id to update"
            )

        route = await self.selector.resolve_route(record.created_by)

        attendees = await self.attendee_resolver.resolve_attendees(record)
        event = event.model_copy(update={"attendees": attendees})

        if route == BackendRoute.ON_PREMISES:
            result = await self._update_on_premises(record, event)
        else:
            result = await self.graph_backend.update(
                record.graph_event_id, record.created_by, event
            )

        if not result.ok:
            self._report("update_event", result, telemetry, {"event_id": record.event_id})
            return None
        return result.value

    async def cancel_event(
        self,
        event_id: str,
        created_by: str,
        comment: str,
        telemetry: Optional[TelemetrySink] = None,
    ) -> bool:
        """Cancel ``event_id`` in ``created_by``'s calendar.

        Graph cancels with ``comment``; Exchange moves the appointment to the
        deleted items folder. Returns False when the backend call failed.

        The route follows ``created_by``'s directory flag, not the acting user's.

        Raises:
            DirectoryLookupError: The creator's route could not be resolved.
        """
        route = await self.selector.resolve_route(created_by)

        if route == BackendRoute.ON_PREMISES:
            result = await self._delete_on_premises(event_id, created_by)
        else:
            result = await self.graph_backend.cancel(event_id, created_by, comment)

        if not result.ok:
            self._report("cancel_event", result, telemetry, {"graph_event_id": event_id})
            return False
        return bool(result.value)


def _failed(result: SyncResult[Any]) -> SyncResult[Any]:
    """Carry a failure over to a result of another value type."""
    return SyncResult(
        failure_kind=result.failure_kind or FailureKind.UNKNOWN,
        message=result.message,
        exception=result.exception,
    )
