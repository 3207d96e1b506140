from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError
from requests import Response
from web3 import Web3

from .config import Settings
from .models import PendingTransaction, PendingTransactionPage, SafeDelegate, VerificationInfo


class ExternalServiceError(Exception):
    """Raised when an external HTTP service responds with an error or unexpected payload."""


class _JsonHttpClient:
    """Shared GET + JSON decoding with uniform error mapping."""

    service_name = "HTTP service"

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp: Response = self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.settings.request_timeout_seconds,
                verify=self.settings.request_verify_tls,
            )
        except requests.RequestException as e:
            raise ExternalServiceError(f"{self.service_name} request error: {e}") from e

        if not resp.ok:
            text = resp.text[:500]
            raise ExternalServiceError(f"{self.service_name} non-OK status {resp.status_code}: {text}")

        try:
            return resp.json()
        except ValueError as e:
            raise ExternalServiceError(f"{self.service_name} returned non-JSON response") from e


def _checksum(address: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except (TypeError, ValueError) as e:
        raise ExternalServiceError(f"Invalid address {address!r}") from e


class SafeTransactionServiceClient(_JsonHttpClient):
    """Pending-transaction directory backed by the Safe Transaction Service."""

    service_name = "Safe Transaction Service"

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        *,
        max_pages: int = 10,
    ) -> None:
        super().__init__(settings, session)
        self.base_url = settings.safe_tx_service_url.rstrip("/")
        self.max_pages = max_pages

    def get_safe_nonce(self, safe_address: str) -> int:
        payload = self._get(f"{self.base_url}/api/v1/safes/{_checksum(safe_address)}/")
        if not isinstance(payload, dict) or "nonce" not in payload:
            raise ExternalServiceError("Safe info response missing 'nonce'")
        try:
            return int(payload["nonce"])
        except (TypeError, ValueError) as e:
            raise ExternalServiceError(f"Safe info has invalid nonce: {payload['nonce']!r}") from e

    def get_pending_transactions(self, safe_address: str) -> PendingTransactionPage:
        """Return every unexecuted transaction at or above the Safe's current nonce.

        Follows ``next`` links for up to ``max_pages`` pages.
        """
        nonce = self.get_safe_nonce(safe_address)
        url: Optional[str] = f"{self.base_url}/api/v1/safes/{_checksum(safe_address)}/multisig-transactions/"
        params: Optional[Dict[str, Any]] = {"executed": "false", "nonce__gte": nonce, "ordering": "nonce"}

        results: List[PendingTransaction] = []
        count = 0
        for _ in range(self.max_pages):
            if url is None:
                break
            payload = self._get(url, params)
            if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
                raise ExternalServiceError("Pending transactions response missing 'results' list")
            count = int(payload.get("count") or 0)
            for raw in payload["results"]:
                if isinstance(raw, dict) and raw.get("isExecuted"):
                    continue
                try:
                    results.append(PendingTransaction.model_validate(raw))
                except ValidationError as e:
                    raise ExternalServiceError(f"Malformed pending transaction: {e}") from e
            url = payload.get("next")
            # `next` already carries the query string
            params = None

        return PendingTransactionPage(count=max(count, len(results)), results=results)

    def get_delegates(self, safe_address: str) -> List[SafeDelegate]:
        payload = self._get(f"{self.base_url}/api/v2/delegates/", {"safe": _checksum(safe_address)})
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise ExternalServiceError("Delegates response missing 'results' list")
        try:
            return [SafeDelegate.model_validate(item) for item in payload["results"]]
        except ValidationError as e:
            raise ExternalServiceError(f"Malformed delegate entry: {e}") from e


class ReputationClient(_JsonHttpClient):
    """Address trust-score lookup (GET {base}/trust-score/{address} -> {"score": int})."""

    service_name = "Reputation service"

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        super().__init__(settings, session)
        if not settings.reputation_api_url:
            raise ValueError("reputation_api_url is not configured")
        self.base_url = settings.reputation_api_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.settings.reputation_api_key:
            headers["X-API-Key"] = self.settings.reputation_api_key
        return headers

    def reputation(self, address: str) -> int:
        payload = self._get(f"{self.base_url}/trust-score/{address}")
        if not isinstance(payload, dict):
            raise ExternalServiceError("Reputation response must be a JSON object")
        if payload.get("status") == "not_scored":
            raise ExternalServiceError(f"Address {address} has no reputation score")
        score = payload.get("score")
        if isinstance(score, bool) or score is None:
            raise ExternalServiceError("Reputation response missing 'score'")
        try:
            return int(score)
        except (TypeError, ValueError) as e:
            raise ExternalServiceError(f"Reputation score is not numeric: {score!r}") from e


class ExplorerVerificationClient(_JsonHttpClient):
    """Contract source verification via an Etherscan-compatible `getsourcecode` endpoint."""

    service_name = "Explorer API"

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        super().__init__(settings, session)
        if not settings.etherscan_api_key:
            raise ValueError("etherscan_api_key is not configured")
        self.base_url = settings.explorer_api_url

    def verification_info(self, address: str) -> VerificationInfo:
        payload = self._get(
            self.base_url,
            {
                "module": "contract",
                "action": "getsourcecode",
                "address": address,
                "apikey": self.settings.etherscan_api_key,
            },
        )
        if not isinstance(payload, dict):
            raise ExternalServiceError("Explorer response must be a JSON object")
        result = payload.get("result")
        if payload.get("status") != "1" or not isinstance(result, list) or not result:
            detail = result if isinstance(result, str) else payload.get("message", "unknown error")
            raise ExternalServiceError(f"Explorer API error: {detail}")

        entry = result[0] if isinstance(result[0], dict) else {}
        name = (entry.get("ContractName") or "").strip() or None
        if name is None:
            return VerificationInfo(verified=False)
        return VerificationInfo(
            verified=True,
            name=name,
            abi=entry.get("ABI") or None,
            implementation=(entry.get("Implementation") or "").strip() or None,
        )
