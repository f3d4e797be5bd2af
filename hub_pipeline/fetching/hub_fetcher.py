"""
Cosmos Hub Fetcher Module

Balance and delegation lookups against the Cosmos Hub REST (LCD) API.

Every lookup goes to the next endpoint of an EndpointPool and is bounded by a
hard timeout. Nothing here raises to the caller: a timeout, a transport
error, a redirect, an error status or a body that is empty or not the
expected JSON all resolve to the conservative fallback ("0" balance, "No"
staking), flagged as unconfirmed in the returned FetchResult.
"""
import asyncio
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

import aiohttp

from config.settings import HUB_CONFIG
from hub_pipeline.fetching.endpoint_pool import EndpointPool
from hub_pipeline.models import FetchResult, StakingStatus
from utils.base_helpers import log_error

logger = logging.getLogger(__name__)

ZERO_BALANCE = "0"


class FetchFailure(Exception):
    """A response that arrived but cannot be used (redirect, error status, empty body)."""
    pass


def format_amount(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros ("5", "0.1", "1.234567")."""
    normalized = value.normalize()
    if normalized == 0:
        return ZERO_BALANCE
    return format(normalized, 'f')


class HubFetcher:
    """
    Fetches balance and staking status for Cosmos Hub addresses.

    One aiohttp session is shared by all requests of a run; use the fetcher as
    an async context manager (or call close()) to release it.
    """

    def __init__(
        self,
        pool: EndpointPool,
        session: Optional[aiohttp.ClientSession] = None,
        denom: str = HUB_CONFIG["denom"],
        scale_factor: int = HUB_CONFIG["scale_factor"],
        timeout: float = HUB_CONFIG["request_timeout"],
        routes: Optional[Dict[str, str]] = None,
    ):
        self.pool = pool
        self.session = session
        self._owns_session = session is None
        self.denom = denom
        self.scale_factor = Decimal(scale_factor)
        self.timeout = timeout
        self.routes = routes or HUB_CONFIG["routes"]

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create an aiohttp session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    'Accept': 'application/json',
                    'User-Agent': HUB_CONFIG["user_agent"],
                },
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def __aenter__(self) -> 'HubFetcher':
        await self.get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Public lookups

    async def fetch_balance(self, address: str) -> str:
        """Balance of ``address`` in display units, "0" on any failure."""
        result = await self.fetch_balance_result(address)
        return result.value

    async def fetch_staking_status(self, address: str) -> str:
        """Staking status of ``address``: Yes with at least one delegation, else No."""
        result = await self.fetch_staking_status_result(address)
        return result.value

    async def fetch_balance_result(self, address: str) -> FetchResult:
        return await self._fetch('balance', 'balances', address, self._parse_balance, ZERO_BALANCE)

    async def fetch_staking_status_result(self, address: str) -> FetchResult:
        return await self._fetch('staking', 'delegations', address,
                                 self._parse_delegations, StakingStatus.NO.value)

    # Response parsing

    def _parse_balance(self, payload: Any) -> str:
        if not isinstance(payload, dict) or 'balances' not in payload:
            raise ValueError("response has no 'balances' field")

        for coin in payload['balances'] or []:
            if coin.get('denom') == self.denom:
                amount = Decimal(str(coin.get('amount')))
                if not amount.is_finite():
                    raise ValueError(f"invalid amount {amount}")
                return format_amount(amount / self.scale_factor)

        # Denomination not held
        return ZERO_BALANCE

    @staticmethod
    def _parse_delegations(payload: Any) -> str:
        if not isinstance(payload, dict) or 'delegation_responses' not in payload:
            raise ValueError("response has no 'delegation_responses' field")

        if payload['delegation_responses']:
            return StakingStatus.YES.value
        return StakingStatus.NO.value

    # Transport

    async def _get_json(self, url: str) -> Any:
        session = await self.get_session()
        async with session.get(url, allow_redirects=False) as response:
            if 300 <= response.status < 400:
                raise FetchFailure(f"redirect received ({response.status})")
            if response.status >= 400:
                raise FetchFailure(f"HTTP {response.status}")
            body = await response.text()

        if not body or not body.strip():
            raise FetchFailure("empty response")

        return json.loads(body)

    async def _fetch(
        self,
        kind: str,
        route: str,
        address: str,
        parse: Callable[[Any], str],
        default: str,
    ) -> FetchResult:
        # Draw before the first await so pool order follows dispatch order
        endpoint = self.pool.next()
        url = endpoint + self.routes[route].format(address=address)

        try:
            # wait_for cancels the request task when the bound is hit
            payload = await asyncio.wait_for(self._get_json(url), timeout=self.timeout)
            return FetchResult(value=parse(payload), endpoint=endpoint)
        except asyncio.TimeoutError:
            reason = f"timed out after {self.timeout:g}s"
        except FetchFailure as e:
            reason = str(e)
        except aiohttp.ClientError as e:
            reason = f"transport error: {type(e).__name__}: {e}"
        except (ValueError, TypeError, AttributeError, InvalidOperation) as e:
            reason = f"malformed response: {e}"
        except Exception as e:
            reason = f"unexpected error: {type(e).__name__}: {e}"

        logger.warning(
            f"{kind.capitalize()} lookup failed for {address} at {endpoint}: {reason}; "
            f"assuming {default}",
            extra={'address': address, 'endpoint': endpoint, 'lookup': kind},
        )
        log_error(f"{kind} lookup: {reason.split(':')[0]}", source=endpoint)
        return FetchResult(value=default, confirmed=False, error=reason, endpoint=endpoint)
