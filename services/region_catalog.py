"""Region catalog retrieval and region name resolution."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
import re
from typing import Any, Mapping
from urllib import request

from core.logging import logger
from core.status_models import RegionMarker


_ALPHA_PREFIX = re.compile(r"^[A-Za-z]+")


@dataclass(frozen=True)
class Region:
    """One catalog region and its servers keyed by protocol."""

    id: str
    name: str
    servers: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def has_hostname(self, hostname: str) -> bool:
        return any(hostname in hostnames for hostnames in self.servers.values())


@dataclass(frozen=True)
class RegionCatalog:
    """Read-only list of regions from the server list."""

    regions: tuple[Region, ...]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RegionCatalog":
        regions: list[Region] = []
        for raw in payload.get("regions") or []:
            if not isinstance(raw, Mapping):
                continue
            region_id = raw.get("id")
            name = raw.get("name")
            if not isinstance(region_id, str) or not isinstance(name, str):
                continue
            servers: dict[str, tuple[str, ...]] = {}
            for protocol, entries in (raw.get("servers") or {}).items():
                if not isinstance(entries, list):
                    continue
                servers[str(protocol)] = tuple(
                    str(entry["cn"])
                    for entry in entries
                    if isinstance(entry, Mapping) and entry.get("cn")
                )
            regions.append(Region(id=region_id, name=name, servers=servers))
        return cls(regions=tuple(regions))

    @classmethod
    def from_text(cls, body: str) -> "RegionCatalog":
        """Parse a server list body; the JSON document is the first line."""

        first_line = body.strip().split("\n", 1)[0]
        return cls.from_payload(json.loads(first_line))

    def get(self, region_id: str) -> Region | None:
        for region in self.regions:
            if region.id == region_id:
                return region
        return None

    def sorted_by_name(self) -> list[Region]:
        return sorted(self.regions, key=lambda region: region.name.casefold())


def resolve_region_name(
    marker: RegionMarker | None,
    catalog: RegionCatalog | None,
) -> str | None:
    """Resolve a marker to a display name.

    Total: returns ``None`` only when there is no marker content at all.
    """

    if marker is None:
        return None

    if marker.region_id:
        if catalog is not None:
            region = catalog.get(marker.region_id)
            if region is not None:
                return region.name
        if not marker.hostname:
            return marker.region_id

    hostname = marker.hostname
    if not hostname:
        return None
    if catalog is None:
        return hostname

    for region in catalog.regions:
        if region.has_hostname(hostname):
            return region.name

    match = _ALPHA_PREFIX.match(hostname)
    if match:
        prefix = match.group(0).lower()
        for region in catalog.regions:
            if prefix in region.id.lower() or prefix in region.name.lower():
                return region.name

    return hostname


class RegionCatalogCache:
    """Fetch the catalog at most once and keep it for the process lifetime."""

    def __init__(self, url: str, *, timeout_s: float = 10.0) -> None:
        self._url = url
        self._timeout_s = max(1.0, float(timeout_s))
        self._catalog: RegionCatalog | None = None
        self._attempted = False
        self._lock = asyncio.Lock()

    @property
    def catalog(self) -> RegionCatalog | None:
        return self._catalog

    async def load(self) -> RegionCatalog | None:
        async with self._lock:
            if self._attempted:
                return self._catalog
            self._attempted = True
            try:
                body = await asyncio.to_thread(self._fetch)
                self._catalog = RegionCatalog.from_text(body)
                logger.info("[Catalog] Loaded %s regions", len(self._catalog.regions))
            except Exception as exc:  # noqa: BLE001 - catalog absence degrades resolution only
                logger.warning("[Catalog] Server list unavailable: %s", exc)
                self._catalog = None
            return self._catalog

    def _fetch(self) -> str:
        req = request.Request(self._url, headers={"Accept": "application/json"})
        with request.urlopen(req, timeout=self._timeout_s) as response:
            return response.read().decode("utf-8")
