from __future__ import annotations

import itertools
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import NetworkError, PaymentFailedError
from .units import encode_erc20_transfer, is_address, parse_ether, parse_units, to_quantity
from .walletclient import TransactionHandle, TransactionStatus, WalletClient

logger = logging.getLogger(__name__)


class RpcWalletClient(WalletClient):
    """Wallet backed by a node that signs for ``account`` (eth_sendTransaction).

    Works with development nodes (anvil, hardhat) and signer proxies that keep
    the account unlocked. Pays in native ETH unless a payment token is set.
    """

    def __init__(
        self,
        account: Optional[str],
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._account = account or None
        self._transport = transport
        self._ids = itertools.count(1)

    @property
    def address(self) -> Optional[str]:
        return self._account

    async def send_payment(self, recipient: str, amount: Decimal) -> TransactionHandle:
        if self._account is None:
            raise PaymentFailedError("No wallet connected")
        if not is_address(recipient):
            raise PaymentFailedError(f"Invalid payment recipient: {recipient}")

        tx = self._build_transaction(recipient, amount)
        tx_hash = await self._call("eth_sendTransaction", [tx])
        if not isinstance(tx_hash, str) or not tx_hash:
            raise PaymentFailedError("Wallet did not return a transaction hash")

        logger.info("Submitted payment %s of %s to %s", tx_hash, amount, recipient)
        return TransactionHandle(tx_hash=tx_hash, recipient=recipient, amount=amount)

    async def get_status(self, handle: TransactionHandle) -> TransactionStatus:
        receipt = await self._call("eth_getTransactionReceipt", [handle.tx_hash])
        if not receipt:
            return TransactionStatus.PENDING
        if not isinstance(receipt, dict):
            raise NetworkError("Wallet RPC endpoint returned an unreadable receipt")
        if receipt.get("status") == "0x1":
            return TransactionStatus.CONFIRMED
        return TransactionStatus.REVERTED

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_transaction(self, recipient: str, amount: Decimal) -> dict[str, str]:
        token = self.settings.payment_token_address
        if token:
            units = parse_units(amount, self.settings.payment_token_decimals)
            return {
                "from": self._account,
                "to": token,
                "value": to_quantity(0),
                "data": encode_erc20_transfer(recipient, units),
                "chainId": to_quantity(self.settings.chain_id),
            }
        return {
            "from": self._account,
            "to": recipient,
            "value": to_quantity(parse_ether(amount)),
            "chainId": to_quantity(self.settings.chain_id),
        }

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.settings.chain_rpc_url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            logger.warning("RPC call %s failed: %s", method, exc)
            raise NetworkError("Could not reach the wallet RPC endpoint") from exc
        except ValueError as exc:
            raise NetworkError("Wallet RPC endpoint returned an unreadable response") from exc

        if not isinstance(body, dict):
            raise NetworkError("Wallet RPC endpoint returned an unreadable response")
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.warning("RPC call %s returned an error: %s", method, message)
            raise PaymentFailedError(f"Payment failed: {message}")
        return body.get("result")
