"""
Advisory grouping oracle.

An optional HTTP service that proposes how to partition modules (or crates)
into groups. Its answer is only ever parsed as JSON naming known units;
nothing it returns is executed. Any failure (connection, timeout, bad
status, malformed or invalid grouping) raises OracleError and the caller
keeps the heuristic grouping.

Request::

    POST <oracle.url>
    {"system": "...", "modules": [{"name": "net", "size": 3}, ...],
     "graph": [["net", "io", 4], ...], "max_group_size": 10}

Response::

    {"groups": [["net", "io"], ["db"]]}
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import OracleConfig
from ..exceptions import OracleError
from ..logging_config import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You group the sub-units of a Rust project so that strongly coupled units "
    "share a group. Answer with JSON {\"groups\": [[name, ...], ...]} using only "
    "the given names, every name exactly once, at least two groups and no group "
    "larger than max_group_size."
)


class RateLimiter:
    """Serializes calls and keeps a minimum interval between them."""

    def __init__(self, min_interval: float, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    def __enter__(self) -> "RateLimiter":
        self._lock.acquire()
        if self._last is not None:
            wait = self.min_interval - (self._clock() - self._last)
            if wait > 0:
                self._sleep(wait)
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        self._last = self._clock()
        self._lock.release()


def validate_grouping(
    groups: Any, units: Dict[str, int], max_group_size: int
) -> List[List[str]]:
    """Check an oracle answer against the units it was asked about.

    Args:
        groups: Decoded ``groups`` value of the response
        units: Unit name -> size
        max_group_size: Maximum summed size of one group

    Raises:
        OracleError: Unless ``groups`` is an exact partition of the unit
            names into at least two groups, each within the size limit
    """
    if not isinstance(groups, list) or not all(isinstance(g, list) for g in groups):
        raise OracleError("response 'groups' is not a list of lists")
    seen: List[str] = []
    for group in groups:
        if not group:
            raise OracleError("empty group in response")
        for name in group:
            if not isinstance(name, str) or name not in units:
                raise OracleError(f"unknown unit in response: {name!r}")
            seen.append(name)
        size = sum(units[name] for name in group)
        if size > max_group_size:
            raise OracleError(f"group of size {size} exceeds {max_group_size}")
    if len(seen) != len(set(seen)) or set(seen) != set(units):
        raise OracleError("groups are not a partition of the units")
    if len(groups) < 2:
        raise OracleError("fewer than two groups")
    return [list(g) for g in groups]


class GroupingOracle:
    """Synchronous httpx client for the grouping service."""

    def __init__(
        self,
        config: OracleConfig,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not config.url:
            raise OracleError("no oracle URL configured")
        self.config = config
        self._transport = transport
        self._sleep = sleep
        self._limiter = RateLimiter(config.min_interval_seconds, sleep=sleep)
        self.timeout = httpx.Timeout(config.timeout_seconds)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _request(self, payload: Dict[str, Any]) -> Any:
        with self._limiter:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.config.url, json=payload, headers=self._headers())
                response.raise_for_status()
                return response.json()

    def suggest_groups(
        self,
        units: Dict[str, int],
        edges: Sequence[Tuple[str, str, int]],
        max_group_size: int,
        context: str = "",
    ) -> List[List[str]]:
        """Ask for a grouping of ``units``, retrying with exponential backoff.

        Args:
            units: Unit name -> size, in source order
            edges: (unit, unit, weight) affinities
            max_group_size: Maximum summed size of one group
            context: What is being split, for the system prompt

        Raises:
            OracleError: When every attempt failed or the answer is invalid
        """
        payload = {
            "system": f"{SYSTEM_PROMPT} {context}".strip(),
            "modules": [{"name": name, "size": size} for name, size in units.items()],
            "graph": [[a, b, weight] for a, b, weight in edges],
            "max_group_size": max_group_size,
        }
        attempts = self.config.retries + 1
        last_error = "no attempt made"
        for attempt in range(attempts):
            if attempt:
                self._sleep(self.config.backoff_seconds * 2 ** (attempt - 1))
            try:
                data = self._request(payload)
            except httpx.TimeoutException:
                last_error = "request timed out"
                logger.debug(f"Oracle attempt {attempt + 1}/{attempts}: {last_error}")
                continue
            except httpx.HTTPError as e:
                last_error = f"HTTP error: {e}"
                logger.debug(f"Oracle attempt {attempt + 1}/{attempts}: {last_error}")
                continue
            except ValueError as e:
                last_error = f"response is not JSON: {e}"
                logger.debug(f"Oracle attempt {attempt + 1}/{attempts}: {last_error}")
                continue
            if not isinstance(data, dict) or "groups" not in data:
                raise OracleError("response has no 'groups' key", attempts=attempt + 1)
            return validate_grouping(data["groups"], units, max_group_size)
        raise OracleError(last_error, attempts=attempts)
