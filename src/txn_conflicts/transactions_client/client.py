"""
Transaction REST API client implementation.
"""

import json
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas import ConflictPair, Resolution, Transaction

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Base exception for transaction API errors."""

    pass


class PersistenceAPIError(PersistenceError):
    """API returned an error response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_body: str | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Transaction API error {status_code}: {message}")


class PersistenceConnectionError(PersistenceError):
    """Failed to connect to the transaction API."""

    pass


class TransactionsClient:
    """
    Client for the transaction REST API.

    Features:
    - Resolve a single conflict
    - Resolve a batch of conflicts in one request
    - List transactions (snapshot for CLI hosts)
    - Automatic retry with backoff on 429/5xx
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        transactions_path: str = "/api/transactions",
        resolve_path: str = "/api/transactions-conflict/resolve",
        resolve_batch_path: str = "/api/transactions-conflict/resolve-batch",
    ):
        """
        Initialize the client.

        Args:
            base_url: API URL (e.g., "http://localhost:3000")
            token: Optional bearer token
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
            transactions_path: Endpoint listing transactions
            resolve_path: Single-resolution endpoint
            resolve_batch_path: Batch-resolution endpoint
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transactions_path = transactions_path
        self.resolve_path = resolve_path
        self.resolve_batch_path = resolve_batch_path

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        # raise_on_status=False hands the last error response back to
        # _request once retries are exhausted
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, api_config) -> "TransactionsClient":
        """Build a client from an ApiConfig."""
        return cls(
            base_url=api_config.base_url,
            token=api_config.token,
            timeout=api_config.timeout_seconds,
            max_retries=api_config.max_retries,
            backoff_factor=api_config.backoff_factor,
            transactions_path=api_config.transactions_path,
            resolve_path=api_config.resolve_path,
            resolve_batch_path=api_config.resolve_batch_path,
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> requests.Response:
        """Make an API request with error handling."""
        url = f"{self.base_url}{endpoint}"

        logger.debug(f"API Request: {method} {url}")
        if json_data:
            logger.debug(f"Request body: {json.dumps(json_data, indent=2)}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error to {url}: {e}")
            raise PersistenceConnectionError(
                f"Failed to connect to transaction API at {self.base_url}: {e}"
            ) from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}: {e}")
            raise PersistenceConnectionError(f"Request to transaction API timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise PersistenceError(f"Request failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            error_body = response.text
            try:
                error_json = response.json()
                message = error_json.get("error") or error_json.get("message") or response.reason
            except (ValueError, AttributeError):
                # Not JSON, or JSON that isn't an object
                message = response.reason

            logger.error(f"API Error {response.status_code}: {message}")
            logger.debug(f"Full response body: {error_body}")

            raise PersistenceAPIError(
                status_code=response.status_code,
                message=message or "request failed",
                response_body=error_body,
            )

        return response

    def list_transactions(self) -> list[Transaction]:
        """
        Fetch all transactions.

        Accepts either a bare JSON list or an object with a "data" list.
        """
        response = self._request("GET", self.transactions_path)
        payload = response.json()
        items = payload.get("data", []) if isinstance(payload, dict) else payload

        transactions = [Transaction.from_dict(item) for item in items]
        logger.info(f"Fetched {len(transactions)} transactions")
        return transactions

    def resolve_conflict(self, conflict: ConflictPair, resolution: Resolution) -> None:
        """
        Resolve a single conflict.

        Raises:
            PersistenceAPIError: If the API returns a non-2xx response
            PersistenceConnectionError: If the API cannot be reached
        """
        body = conflict.to_resolution(resolution)
        self._request("POST", self.resolve_path, json_data=body)
        logger.info(
            f"Resolved conflict {body['manualTransactionId']} <-> "
            f"{body['importedTransactionId']} ({body['resolution']})"
        )

    def resolve_conflicts(self, conflicts: list[ConflictPair], resolution: Resolution) -> None:
        """
        Resolve several conflicts in one request.

        The batch is all-or-nothing from the caller's point of view.

        Raises:
            PersistenceAPIError: If the API returns a non-2xx response
            PersistenceConnectionError: If the API cannot be reached
        """
        batch = [conflict.to_resolution(resolution) for conflict in conflicts]
        self._request("POST", self.resolve_batch_path, json_data={"conflicts": batch})
        logger.info(
            f"Resolved {len(batch)} conflicts in one batch ({Resolution.parse(resolution).value})"
        )
