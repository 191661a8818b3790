# paywall/services/wallet_api.py
import requests
from requests.exceptions import RequestException
import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

from paywall.core.config import settings
from paywall.payment.errors import WalletError
from paywall.payment.models import InternalizeActionArgs, InternalizeActionResult
from paywall.payment.wallet import ProtocolID

logger = logging.getLogger(__name__)


class HttpWallet:
    """
    Client for a BRC-100 wallet exposing its JSON API over HTTP.

    Binary values travel as arrays of byte values, as the wallet API expects.
    Error bodies of the form {"code": ..., "description": ...} are raised as
    WalletError so the payment middleware can pass the code to the client.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        originator: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        self._base_url = str(base_url if base_url is not None else settings.BSV_WALLET_URL)
        self._timeout = timeout if timeout is not None else settings.BSV_WALLET_TIMEOUT_SECONDS
        self._originator = originator if originator is not None else settings.BSV_WALLET_ORIGINATOR
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a wallet API call and return its JSON body.

        Raises:
            WalletError: If the wallet answers with an error body
            RequestException: If the HTTP request fails
            ValueError: If the response is not a JSON object
        """
        api_url = urljoin(self._base_url, method)
        headers = {"Content-Type": "application/json"}
        if self._originator:
            headers["Originator"] = self._originator

        try:
            response = self._session.post(api_url, json=payload, headers=headers, timeout=self._timeout)
        except RequestException as e:
            logger.error(f"Error calling wallet {method} ({api_url}): {e}")
            raise

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            if isinstance(data, dict) and (data.get("code") or data.get("description") or data.get("message")):
                description = data.get("description") or data.get("message") or f"Wallet {method} failed"
                raise WalletError(description, code=data.get("code"))
            response.raise_for_status()

        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response from wallet {method}: {type(data)}")
        if data.get("status") == "error":
            raise WalletError(data.get("description") or f"Wallet {method} failed", code=data.get("code"))

        return data

    def create_hmac(
        self,
        data: bytes,
        protocol_id: ProtocolID,
        key_id: str,
        counterparty: str = "self"
    ) -> bytes:
        result = self._call("createHmac", {
            "data": list(data),
            "protocolID": list(protocol_id),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        hmac = result.get("hmac")
        if not isinstance(hmac, list):
            raise ValueError("Wallet response missing 'hmac' from createHmac")
        return bytes(hmac)

    def verify_hmac(
        self,
        data: bytes,
        hmac: bytes,
        protocol_id: ProtocolID,
        key_id: str,
        counterparty: str = "self"
    ) -> bool:
        try:
            result = self._call("verifyHmac", {
                "data": list(data),
                "hmac": list(hmac),
                "protocolID": list(protocol_id),
                "keyID": key_id,
                "counterparty": counterparty,
            })
        except WalletError as e:
            # Wallets report a mismatched HMAC as an error
            logger.warning(f"Wallet rejected HMAC: {e.code or 'no code'} {e.description}")
            return False
        return result.get("valid") is True

    def internalize_action(self, args: InternalizeActionArgs) -> InternalizeActionResult:
        result = self._call("internalizeAction", args.model_dump(by_alias=True))
        return InternalizeActionResult.model_validate(result)
