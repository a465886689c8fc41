"""
HoodCoin - HTTP Client

Client for the HoodCoin REST server. Engine failures come back as the
same HoodError subclasses the manager raises.
"""

import requests
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .errors import error_from_dict


class HoodClientError(Exception):
    """Transport failure or non-JSON answer."""
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"HTTP Error {code}: {message}")


class HoodClient:
    """
    Client for hoodcoin.server.

    Usage:
        client = HoodClient("http://localhost:8080")
        token = client.create_token(creator, initial_eth_in=10**15, value=2 * 10**15)
        minted = client.buy(buyer, token, value=10**16)
        try:
            client.sell(buyer, token, minted * 2)
        except InsufficientBalance:
            ...
    """

    def __init__(self, base_url: str = "http://localhost:8080", timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: dict = None,
                 params: dict = None) -> Any:
        """Make HTTP call."""
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise HoodClientError(-1, f"Connection failed: {e}")

        try:
            result = response.json()
        except ValueError:
            raise HoodClientError(response.status_code, response.text[:200])

        if response.status_code >= 400:
            if isinstance(result, dict) and result.get("error") not in (None, "BadRequest"):
                raise error_from_dict(result)
            message = result.get("message", result) if isinstance(result, dict) else result
            raise HoodClientError(response.status_code, str(message))

        return result

    def _get(self, path: str, **params) -> Any:
        return self._request("GET", path, params=params or None)

    def _post(self, path: str, body: dict) -> Any:
        return self._request("POST", path, json=body)

    # ═══════════════════════════════════════════════════════════════════════
    # VIEWS
    # ═══════════════════════════════════════════════════════════════════════

    def health(self) -> dict:
        return self._get("/health")

    def status(self) -> dict:
        return self._get("/api/status")

    def curve(self) -> dict:
        return self._get("/api/curve")

    def price_at(self, supply: int) -> int:
        return self._get("/api/price", supply=str(supply))["unit_price"]

    def claims(self, pending: bool = False) -> List[dict]:
        if pending:
            return self._get("/api/claims", pending="1")["claims"]
        return self._get("/api/claims")["claims"]

    def tokens(self) -> List[dict]:
        return self._get("/api/tokens")["tokens"]

    def list_ready_for_migration(self) -> List[str]:
        return self._get("/api/tokens/ready")["tokens"]

    def get_token(self, location_name: str) -> str:
        return self._get(f"/api/tokens/by-location/{quote(location_name, safe='')}")["token"]

    def token_info(self, token: str) -> dict:
        return self._get(f"/api/tokens/{token}")

    def migration_progress(self, token: str) -> dict:
        return self._get(f"/api/tokens/{token}/progress")

    def preview_buy(self, token: str, value: int) -> dict:
        return self._get(f"/api/tokens/{token}/quote/buy", value=str(value))

    def preview_sell(self, token: str, amount: int) -> dict:
        return self._get(f"/api/tokens/{token}/quote/sell", amount=str(amount))

    def balance_of(self, token: str, address: str) -> int:
        return self._get(f"/api/tokens/{token}/balance/{address}")["balance"]

    # ═══════════════════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def register_claim(self, verifier: str, creator: str,
                       location_name: str, symbol: str) -> dict:
        return self._post("/api/claims", {
            "caller": verifier,
            "creator": creator,
            "location_name": location_name,
            "symbol": symbol,
        })["claim"]

    def create_token(self, caller: str, initial_eth_in: int, value: int,
                     location_name: Optional[str] = None) -> str:
        body: Dict[str, Any] = {"caller": caller, "initial_eth_in": initial_eth_in, "value": value}
        if location_name:
            body["location_name"] = location_name
        return self._post("/api/tokens", body)["token"]

    def buy(self, caller: str, token: str, value: int, min_tokens_out: int = 0) -> int:
        return self._post(f"/api/tokens/{token}/buy", {
            "caller": caller,
            "value": value,
            "min_tokens_out": min_tokens_out,
        })["tokens_out"]

    def sell(self, caller: str, token: str, amount: int, min_eth_out: int = 0) -> int:
        return self._post(f"/api/tokens/{token}/sell", {
            "caller": caller,
            "amount": amount,
            "min_eth_out": min_eth_out,
        })["eth_out"]

    def trigger_migration(self, caller: str, token: str) -> dict:
        return self._post(f"/api/tokens/{token}/migrate", {"caller": caller})["position"]

    def migrate_with_fee(self, caller: str, token: str, fee_bps: int) -> dict:
        return self._post(f"/api/tokens/{token}/migrate",
                          {"caller": caller, "fee_bps": fee_bps})["position"]

    def add_verifier(self, caller: str, verifier: str) -> dict:
        return self._post("/api/roles/verifiers", {"caller": caller, "verifier": verifier})["roles"]

    def remove_verifier(self, caller: str, verifier: str) -> dict:
        return self._request("DELETE", f"/api/roles/verifiers/{verifier}",
                             json={"caller": caller})["roles"]

    def set_migrator(self, caller: str, migrator: str) -> dict:
        return self._post("/api/roles/migrator", {"caller": caller, "migrator": migrator})["roles"]
