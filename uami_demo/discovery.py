"""
Discovery session — device-code login, then subscriptions → identities → key vaults.

Runs as a background task per SSE connection and pushes events into an
EventStream in strict step order. Only the first subscription returned by the
provider is explored further: the wizard configures one subscription, it does
not survey the tenant.

Blocking provider calls (credential acquisition, each page fetch) run on a
dedicated pool of DISCOVERY_MAX_WORKERS threads, never the loop's default
executor; every one of those awaits is a cancellation point. A cancelled
session emits nothing further and is not an error. A device code poll that
is already running cannot be interrupted: its thread stays busy until the
sign-in completes or the poll times out, and only discovery waits on it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from concurrent.futures import Executor, ThreadPoolExecutor
from enum import StrEnum
from typing import Any, TypeVar

from uami_demo.azure_provider import DiscoveryProvider
from uami_demo.errors import AuthenticationError
from uami_demo.events import (
    Complete,
    DeviceCode,
    DiscoveryEvent,
    Error,
    Identities,
    IdentityInfo,
    KeyVaultInfo,
    KeyVaults,
    Progress,
    SubscriptionInfo,
    Subscriptions,
)
from uami_demo.streaming import EventStream

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISCOVERY_MAX_WORKERS = 8

_executor = ThreadPoolExecutor(max_workers=DISCOVERY_MAX_WORKERS, thread_name_prefix="discovery")

MSG_AUTHENTICATING = (
    "Authenticating with Azure (checking az login, developer tools, environment "
    "credentials, then device code)…"
)
MSG_NO_SUBSCRIPTIONS = (
    "⚠ No subscriptions found. Ensure you are authenticated and have access to "
    "at least one subscription."
)
MSG_IDENTITIES = "Enumerating User-Assigned Managed Identities…"
MSG_KEY_VAULTS = "Enumerating Key Vaults…"


class DiscoveryState(StrEnum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    ENUMERATING_SUBSCRIPTIONS = "enumerating_subscriptions"
    ENUMERATING_IDENTITIES = "enumerating_identities"
    ENUMERATING_KEY_VAULTS = "enumerating_key_vaults"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_NO_PAGE = object()


def _next_page(pages: Iterator[list[Any]]) -> Any:
    return next(pages, _NO_PAGE)


class DiscoverySession:
    """One discovery run. Create per request; call ``run()`` once."""

    def __init__(
        self,
        provider: DiscoveryProvider,
        stream: EventStream,
        tenant_id: str | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.provider = provider
        self.stream = stream
        self.executor = executor or _executor
        self.tenant_hint = tenant_id.strip() if tenant_id and tenant_id.strip() else None
        self.state = DiscoveryState.IDLE
        self.subscription_id: str | None = None
        self.detected_tenant: str | None = None

    def _transition(self, state: DiscoveryState) -> None:
        logger.debug("Discovery %s -> %s", self.state, state)
        self.state = state

    async def _emit(self, event: DiscoveryEvent) -> None:
        await self.stream.put(event)

    def _on_device_code(self, event: DeviceCode) -> None:
        # Called from the executor thread running authenticate().
        self.stream.put_threadsafe(event)

    async def _call(self, fn: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, fn, *args)

    async def _collect(self, pages: Iterator[list[T]]) -> list[T]:
        items: list[T] = []
        while True:
            page = await self._call(_next_page, pages)
            if page is _NO_PAGE:
                return items
            items.extend(page)

    async def run(self) -> None:
        """Drive the session to a terminal state, then close the stream."""
        try:
            await self._run()
        except asyncio.CancelledError:
            if self.state == DiscoveryState.AUTHENTICATING:
                logger.warning(
                    "Discovery cancelled during sign-in; the pending device code poll "
                    "runs until it completes or times out"
                )
            else:
                logger.info("Discovery cancelled (client disconnected)")
            self._transition(DiscoveryState.CANCELLED)
            raise
        except AuthenticationError as e:
            self._transition(DiscoveryState.FAILED)
            logger.warning("Discovery authentication failed: %s", e.__cause__ or e)
            await self._emit(Error(message=str(e)))
        except Exception as e:
            self._transition(DiscoveryState.FAILED)
            logger.error("Discovery error: %s", e, exc_info=True)
            await self._emit(Error(message=str(e)))
        finally:
            self.stream.close()

    async def _run(self) -> None:
        self._transition(DiscoveryState.AUTHENTICATING)
        await self._emit(Progress(message=MSG_AUTHENTICATING))
        await self._call(self.provider.authenticate, self.tenant_hint, self._on_device_code)

        self._transition(DiscoveryState.ENUMERATING_SUBSCRIPTIONS)
        subscriptions = await self._enumerate_subscriptions()
        if not subscriptions:
            await self._emit(Progress(message=MSG_NO_SUBSCRIPTIONS))
        await self._emit(Subscriptions(data=subscriptions))

        if self.subscription_id is not None:
            self._transition(DiscoveryState.ENUMERATING_IDENTITIES)
            await self._emit(Progress(message=MSG_IDENTITIES))
            identities: list[IdentityInfo] = await self._collect(
                self.provider.identity_pages(self.subscription_id)
            )
            await self._emit(Identities(data=identities))

            self._transition(DiscoveryState.ENUMERATING_KEY_VAULTS)
            await self._emit(Progress(message=MSG_KEY_VAULTS))
            vaults: list[KeyVaultInfo] = await self._collect(
                self.provider.key_vault_pages(self.subscription_id)
            )
            await self._emit(KeyVaults(data=vaults))

        await self._emit(
            Complete(
                tenant_id=self.detected_tenant or self.tenant_hint,
                subscription_id=self.subscription_id,
            )
        )
        self._transition(DiscoveryState.COMPLETED)
        logger.info(
            "Discovery complete — subscription: %s, tenant: %s",
            self.subscription_id,
            self.detected_tenant or self.tenant_hint,
        )

    async def _enumerate_subscriptions(self) -> list[SubscriptionInfo]:
        subscriptions: list[SubscriptionInfo] = await self._collect(
            self.provider.subscription_pages()
        )
        if subscriptions:
            # First one wins, in provider order.
            first = subscriptions[0]
            self.subscription_id = first.id
            if self.tenant_hint is None:
                self.detected_tenant = first.tenant_id
        return subscriptions
