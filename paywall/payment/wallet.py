"""
Wallet collaborator interface.

The payment middleware never signs, builds or broadcasts transactions. It
relies on a wallet that can compute HMACs for nonce binding and internalize
incoming payment transactions. Implementations may be synchronous (run in
the threadpool) or asynchronous.
"""
import inspect
from typing import Any, Callable, Dict, Protocol, Tuple, Union, runtime_checkable

from starlette.concurrency import run_in_threadpool

from paywall.payment.models import InternalizeActionArgs, InternalizeActionResult

ProtocolID = Tuple[int, str]


@runtime_checkable
class Wallet(Protocol):
    def create_hmac(
        self,
        data: bytes,
        protocol_id: ProtocolID,
        key_id: str,
        counterparty: str = "self",
    ) -> bytes:
        ...

    def verify_hmac(
        self,
        data: bytes,
        hmac: bytes,
        protocol_id: ProtocolID,
        key_id: str,
        counterparty: str = "self",
    ) -> bool:
        ...

    def internalize_action(
        self, args: InternalizeActionArgs
    ) -> Union[InternalizeActionResult, Dict[str, Any]]:
        ...


async def call_collaborator(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Call a sync or async collaborator without blocking the event loop.

    Coroutine functions are awaited directly; anything else runs in the
    threadpool, and an awaitable it returns is awaited as well.
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = await run_in_threadpool(func, *args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
