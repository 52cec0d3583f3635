"""Per-process component wiring shared by the routers."""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Header, Request

from dnsboard.cache.provider import CachedProvider
from dnsboard.cache.ttl import TTLCache
from dnsboard.cloudflare.client import CloudflareClient
from dnsboard.config.settings import Settings
from dnsboard.errors import Unauthorized
from dnsboard.mirror.store import LocalStore
from dnsboard.records.coordinator import MutationCoordinator
from dnsboard.sync.engine import SyncEngine


@dataclass
class Services:
    settings: Settings
    client: CloudflareClient
    cache: TTLCache
    cached: CachedProvider
    store: LocalStore
    sync: SyncEngine
    coordinator: MutationCoordinator


def build_services(
    settings: Settings,
    client: Optional[CloudflareClient] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Services:
    client = client or CloudflareClient(
        settings.cloudflare_api_token,
        email=settings.cloudflare_email,
        base_url=settings.cloudflare_api_url,
        timeout=settings.request_timeout,
    )
    cache = TTLCache(settings.cache_ttl_seconds, clock=clock)
    cached = CachedProvider(client, cache)
    store = LocalStore()
    sync = SyncEngine(client, store, cached)
    coordinator = MutationCoordinator(client, store, cached, sync)
    return Services(settings, client, cache, cached, store, sync, coordinator)


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_user(user_id: Optional[str] = Header(None)) -> str:
    """Identity handed over by the authentication layer."""
    if not user_id or not user_id.strip():
        raise Unauthorized("Missing user-id header")
    return user_id.strip()
