"""
On-chain settlement capability

The paying side of the protocol: send `amount` of the chain's base currency
to `destination`, wait for confirmation, and hand back the transaction hash
as the settlement proof. This is the only step expected to block for a long
time, so confirmation waits are bounded.
"""

import secrets
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from agentic_restock.kernel.errors import SettlementFailure
from agentic_restock.kernel.logging import LogOperation, get_logger
from agentic_restock.kernel.metrics import track_settlement_duration

logger = get_logger(__name__)

NATIVE_TRANSFER_GAS = 21_000


class SettlementGateway(Protocol):
    """Signing capability bound to an address"""

    @property
    def address(self) -> str: ...

    def pay(self, amount: Decimal, destination: str) -> str:
        """
        Transfer `amount` to `destination` and wait for confirmation

        Returns:
            Transaction identifier usable as a settlement proof

        Raises:
            SettlementFailure: Submission or confirmation failed
        """
        ...


class Web3Settlement:
    """
    Settlement through a JSON-RPC node with a local signing key

    Sends a plain value transfer and waits for its receipt.
    """

    def __init__(
        self,
        web3: Web3,
        private_key: str,
        chain_id: int | None = None,
        confirmation_timeout_seconds: float = 120.0,
    ) -> None:
        self.web3 = web3
        self._account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.confirmation_timeout_seconds = confirmation_timeout_seconds
        # Nonce assignment must not interleave between concurrent payers
        self._send_lock = threading.Lock()

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        private_key: str,
        chain_id: int | None = None,
        confirmation_timeout_seconds: float = 120.0,
        request_timeout_seconds: float = 10.0,
    ) -> "Web3Settlement":
        provider = Web3.HTTPProvider(
            rpc_url, request_kwargs={"timeout": request_timeout_seconds}
        )
        return cls(Web3(provider), private_key, chain_id, confirmation_timeout_seconds)

    @property
    def address(self) -> str:
        return self._account.address

    def balance(self) -> Decimal:
        """Current balance of the paying wallet in the base currency"""
        wei = self.web3.eth.get_balance(self.address)
        return Decimal(Web3.from_wei(wei, "ether"))

    @track_settlement_duration
    def pay(self, amount: Decimal, destination: str) -> str:
        if amount <= 0:
            raise SettlementFailure(f"Refusing to pay non-positive amount {amount}")

        with LogOperation(logger, "settle_payment", amount=str(amount), destination=destination):
            try:
                with self._send_lock:
                    tx = {
                        "to": Web3.to_checksum_address(destination),
                        "value": Web3.to_wei(amount, "ether"),
                        "gas": NATIVE_TRANSFER_GAS,
                        "gasPrice": self.web3.eth.gas_price,
                        "nonce": self.web3.eth.get_transaction_count(self.address, "pending"),
                        "chainId": self.chain_id or self.web3.eth.chain_id,
                    }
                    signed = self._account.sign_transaction(tx)
                    tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)

                proof = Web3.to_hex(tx_hash)
                logger.info("Payment broadcast, awaiting confirmation", tx_hash=proof)
                receipt = self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.confirmation_timeout_seconds
                )
            except TimeExhausted as e:
                raise SettlementFailure(
                    f"Payment not confirmed within {self.confirmation_timeout_seconds}s"
                ) from e
            except (Web3Exception, ValueError, OSError) as e:
                # ValueError covers RPC error payloads (e.g. insufficient funds),
                # OSError covers an unreachable node
                raise SettlementFailure(f"Payment submission failed: {e}") from e

            if receipt["status"] != 1:
                raise SettlementFailure(f"Payment transaction {proof} reverted")

        return proof


@dataclass(frozen=True)
class SimulatedPayment:
    amount: Decimal
    destination: str
    proof: str


class SimulatedSettlement:
    """
    Settlement that never touches a chain

    Used for demos (`--simulate-payment`) and tests. Produces random
    transaction-hash-shaped proofs, or fails on demand.
    """

    def __init__(
        self,
        address: str = "0x000000000000000000000000000000000000dEaD",
        fail_with: str | None = None,
    ) -> None:
        self._address = address
        self.fail_with = fail_with
        self.payments: list[SimulatedPayment] = []

    @property
    def address(self) -> str:
        return self._address

    @track_settlement_duration
    def pay(self, amount: Decimal, destination: str) -> str:
        if self.fail_with is not None:
            logger.warning("Simulated settlement failure", reason=self.fail_with)
            raise SettlementFailure(self.fail_with)
        proof = "0x" + secrets.token_hex(32)
        self.payments.append(SimulatedPayment(amount, destination, proof))
        logger.info("Simulated payment confirmed", amount=str(amount), destination=destination)
        return proof
