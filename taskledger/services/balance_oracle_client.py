"""
Balance Oracle Client

Calls the token ledger's HTTP API for balances, ownership and transfers.
"""

import httpx
import structlog

from ..core.exceptions import ExternalCallFailure
from ..core.interfaces import IBalanceOracle, TransferResult

logger = structlog.get_logger()


class HttpBalanceOracle(IBalanceOracle):
    """
    Client for a token ledger HTTP API

    Handles:
    - owner: Principal controlling the ledger
    - balance_of: Spendable balance of a principal
    - transfer: Move tokens from one principal to a list of recipients

    Queries raise ExternalCallFailure on any error; transfers report
    failure through TransferResult so the caller decides how to recover.
    """

    def __init__(
        self,
        ledger_url: str,
        timeout: float = 30.0,
        internal_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            ledger_url: Token ledger base URL (e.g., "http://localhost:9000")
            timeout: Request timeout in seconds
            internal_token: Internal API token for authentication
            transport: Optional httpx transport (used by tests)
        """
        self.ledger_url = ledger_url.rstrip("/")
        self.timeout = timeout
        self.internal_token = internal_token
        self.transport = transport

    def _get_headers(self) -> dict:
        """Get request headers with internal token"""
        headers = {"Content-Type": "application/json"}
        if self.internal_token:
            headers["X-Internal-Token"] = self.internal_token
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def owner(self) -> str:
        """Get the principal controlling the token ledger"""
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.ledger_url}/owner",
                    headers=self._get_headers(),
                )
        except httpx.RequestError as e:
            logger.error("oracle_owner_error", ledger_url=self.ledger_url, error=str(e))
            raise ExternalCallFailure(f"Token ledger unavailable: {e}") from e

        if response.status_code != 200:
            logger.warning("oracle_owner_failed", status=response.status_code)
            raise ExternalCallFailure(f"Owner query failed: HTTP {response.status_code}")

        owner = response.json().get("owner")
        if not owner:
            raise ExternalCallFailure("Owner query returned no owner")
        return owner

    async def balance_of(self, principal: str) -> int:
        """
        Get spendable balance

        Args:
            principal: Account identifier

        Returns:
            Balance as an integer; unknown accounts have a zero balance
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.ledger_url}/balances/{principal}",
                    headers=self._get_headers(),
                )
        except httpx.RequestError as e:
            logger.error("oracle_balance_error", principal=principal, error=str(e))
            raise ExternalCallFailure(f"Token ledger unavailable: {e}") from e

        if response.status_code == 404:
            return 0
        if response.status_code != 200:
            logger.warning(
                "oracle_balance_failed",
                principal=principal,
                status=response.status_code,
            )
            raise ExternalCallFailure(f"Balance query failed: HTTP {response.status_code}")

        try:
            return int(response.json()["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalCallFailure(f"Malformed balance response: {e}") from e

    async def transfer(
        self,
        amount: int,
        sender: str,
        recipients: list[str],
        idempotency_key: str | None = None,
    ) -> TransferResult:
        """
        Transfer tokens

        Args:
            amount: Tokens to move (sent as a base-10 string)
            sender: Account debited
            recipients: Accounts credited
            idempotency_key: Sent as the Idempotency-Key header so a retried
                transfer is executed at most once by the ledger

        Returns:
            TransferResult; timeouts report ``outcome_unknown``
        """
        headers = self._get_headers()
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.ledger_url}/transfers",
                    headers=headers,
                    json={"amount": str(amount), "from": sender, "to": recipients},
                )
        except httpx.TimeoutException as e:
            # The request may have reached the ledger
            logger.error(
                "oracle_transfer_timeout",
                sender=sender,
                amount=amount,
                idempotency_key=idempotency_key,
                error=str(e),
            )
            return TransferResult(
                success=False,
                message="Token ledger timed out",
                error=str(e),
                outcome_unknown=True,
            )
        except httpx.RequestError as e:
            logger.error("oracle_transfer_error", sender=sender, amount=amount, error=str(e))
            return TransferResult(
                success=False,
                message="Token ledger unavailable",
                error=str(e),
            )

        if response.is_success:
            transfer_id = None
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("transfer_id") is not None:
                transfer_id = str(data["transfer_id"])
            logger.info(
                "oracle_transfer_done",
                sender=sender,
                recipients=recipients,
                amount=amount,
                status=response.status_code,
                transfer_id=transfer_id,
            )
            return TransferResult(
                success=True,
                message="Transferred",
                transfer_id=transfer_id,
            )

        try:
            error = response.json().get("detail", response.text)
        except (ValueError, AttributeError):
            error = response.text
        logger.warning(
            "oracle_transfer_failed",
            sender=sender,
            amount=amount,
            status=response.status_code,
        )
        return TransferResult(
            success=False,
            message="Transfer failed",
            error=str(error),
        )
