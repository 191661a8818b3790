"""
Request pricing for the BSV payment middleware.

The middleware takes any callable `(Request) -> int` (sync or async) that
returns the price in satoshis. This module resolves such callables safely and
provides the strategies the service uses out of the box:
1. fixed_price: the same price for every request
2. RoutePriceTable: per-route prices matched on method and path prefix
3. price_by_content_length: a base price plus a per-kilobyte charge
"""
import logging
import math
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from fastapi import Request

from paywall.payment.errors import PaymentFailure, payment_internal
from paywall.payment.wallet import call_collaborator

logger = logging.getLogger(__name__)

PriceCalculator = Callable[[Request], Union[int, Awaitable[int]]]

PricedRoute = Tuple[str, str, int]


def is_valid_price(value: object) -> bool:
    """A price is a non-negative integer number of satoshis."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


async def resolve_price(
    calculate: PriceCalculator,
    request: Request
) -> Union[int, PaymentFailure]:
    """
    Run the pricing callable for a request.

    Args:
        calculate: Pricing callable, sync or async
        request: The incoming request

    Returns:
        The price in satoshis, or an ERR_PAYMENT_INTERNAL failure if the
        callable raised or returned something other than a non-negative int
    """
    try:
        price = await call_collaborator(calculate, request)
    except Exception:
        logger.exception(f"bsv-payment: Pricing failed for {request.method} {request.url.path}")
        return payment_internal(
            "An internal error occurred while determining the payment required for this request."
        )

    if not is_valid_price(price):
        logger.error(f"bsv-payment: Pricing returned an invalid price {price!r} for {request.url.path}")
        return payment_internal(
            "An internal error occurred while determining the payment required for this request."
        )

    return price


def fixed_price(satoshis: int) -> PriceCalculator:
    """Price every request at the same amount."""
    if not is_valid_price(satoshis):
        raise ValueError(f"Price must be a non-negative integer, got {satoshis!r}")

    def calculate(request: Request) -> int:
        return satoshis

    return calculate


def path_has_prefix(path: str, prefix: str) -> bool:
    """
    Check whether path lies under prefix, matching whole segments only.

    "/api/v1/content/free" covers "/api/v1/content/free/2024" but not
    "/api/v1/content/freedom-report". Trailing slashes are ignored.
    """
    path = path.rstrip("/")
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


class RoutePriceTable:
    """
    Price requests by method and path prefix.

    Routes are checked in order and the first match wins. Requests that match
    no route are charged the default price.
    """

    def __init__(self, routes: List[PricedRoute], default_price: int = 0):
        for method, path, satoshis in routes:
            if not is_valid_price(satoshis):
                raise ValueError(f"Invalid price {satoshis!r} for {method} {path}")
        if not is_valid_price(default_price):
            raise ValueError(f"Invalid default price {default_price!r}")
        self._routes = [(method.upper(), path, satoshis) for method, path, satoshis in routes]
        self._default_price = default_price

    @property
    def routes(self) -> List[PricedRoute]:
        return list(self._routes)

    def match(self, method: str, path: str) -> Optional[int]:
        """Return the price of the first matching route, or None."""
        for route_method, route_path, satoshis in self._routes:
            if method.upper() == route_method and path_has_prefix(path, route_path):
                return satoshis
        return None

    def __call__(self, request: Request) -> int:
        price = self.match(request.method, request.url.path)
        if price is None:
            return self._default_price
        return price


def price_by_content_length(base_satoshis: int, satoshis_per_kilobyte: int) -> PriceCalculator:
    """
    Price requests by body size.

    Uses the Content-Length header; a missing or non-numeric header is
    charged the base price only.
    """
    if not is_valid_price(base_satoshis) or not is_valid_price(satoshis_per_kilobyte):
        raise ValueError("Prices must be non-negative integers")

    def calculate(request: Request) -> int:
        content_length = request.headers.get("Content-Length", "0")
        size_bytes = int(content_length) if content_length.isdigit() else 0
        kilobytes = math.ceil(size_bytes / 1024)
        return base_satoshis + kilobytes * satoshis_per_kilobyte

    return calculate
