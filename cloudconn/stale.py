"""Refreshing of inventory stale timestamps for long-lived connections."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from cloudconn.handlers import AccountIdResolver, ConnectedClientRecorder, ConnectionState

log = logging.getLogger(__name__)

WINDOW_TO_UPDATE_BEFORE_GOING_STALE = timedelta(hours=1)


class StaleConnectionRepository(Protocol):
    def record_failed_tenant_lookup(self, client: ConnectionState) -> None: ...

    def record_updated_stale_timestamp(self, client: ConnectionState) -> None: ...


def calculate_stale_cutoff_time(
    stale_time_offset: timedelta, now: datetime | None = None
) -> datetime:
    """Hosts whose stale timestamp is before the returned time need refreshing."""
    if now is None:
        now = datetime.now(timezone.utc)
    offset = stale_time_offset - WINDOW_TO_UPDATE_BEFORE_GOING_STALE
    return now - offset


def update_stale_connection(
    client: ConnectionState,
    resolver: AccountIdResolver,
    recorder: ConnectedClientRecorder,
    repository: StaleConnectionRepository,
) -> None:
    """Re-report one connection to inventory; raises if it could not be done."""
    log.debug(
        "Processing stale connection (client_id=%s, account=%s, org_id=%s)",
        client.client_id,
        client.account,
        client.org_id,
    )

    try:
        identity, _, _ = resolver.map_client_id_to_account_id(client.client_id)
    except Exception as err:
        log.error("Unable to retrieve identity for connection %s: %s", client.client_id, err)
        try:
            repository.record_failed_tenant_lookup(client)
        except Exception as db_err:  # noqa: BLE001 - the lookup error is what gets raised
            log.error(
                "Unable to record failed tenant lookup for connection %s: %s",
                client.client_id,
                db_err,
            )
        raise

    try:
        recorder.record_connected_client(identity, client)
    except Exception as err:
        log.error("Unable to send host info to inventory for %s: %s", client.client_id, err)
        raise

    try:
        repository.record_updated_stale_timestamp(client)
    except Exception as err:  # noqa: BLE001 - a missed update is retried next run
        log.error("Unable to record updated stale timestamp for %s: %s", client.client_id, err)