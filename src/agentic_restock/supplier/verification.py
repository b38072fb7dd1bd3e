"""
Settlement proof verification hooks

The supplier asks a ProofVerifier whether a presented proof pays an invoice
before fulfilling. Two implementations:

- BearerProofVerifier: any non-empty proof unlocks fulfilment (trust the
  client; the default)
- Web3ProofVerifier: reads the transaction back from the chain and checks it
  succeeded, went to the invoiced destination, and carried enough value
"""

from decimal import Decimal
from typing import Any, Protocol

from web3 import Web3
from web3.exceptions import TransactionNotFound

from agentic_restock.contract import Invoice
from agentic_restock.kernel.errors import InsufficientPayment, ProofRejected
from agentic_restock.kernel.logging import get_logger
from agentic_restock.kernel.retry import retry_chain_lookup

logger = get_logger(__name__)


class ProofVerifier(Protocol):
    """Decides whether a settlement proof satisfies an invoice"""

    def verify(self, proof: str, invoice: Invoice) -> None:
        """
        Raises:
            ProofRejected: If the proof does not pay the invoice
        """
        ...


class BearerProofVerifier:
    """Presence of a proof is necessary and sufficient"""

    def verify(self, proof: str, invoice: Invoice) -> None:
        if not proof or not proof.strip():
            raise ProofRejected(proof, "empty proof")


class Web3ProofVerifier:
    """
    Verifies a proof is a successful on-chain transfer paying the invoice

    The proof is interpreted as a transaction hash. Lookups are retried
    briefly because a just-confirmed transaction may not have reached the
    supplier's node yet.
    """

    def __init__(self, web3: Web3, lookup_attempts: int = 5) -> None:
        self.web3 = web3
        self._lookup = retry_chain_lookup((TransactionNotFound,), lookup_attempts)(
            self._fetch
        )

    @classmethod
    def from_rpc_url(
        cls, rpc_url: str, request_timeout_seconds: float = 10.0
    ) -> "Web3ProofVerifier":
        provider = Web3.HTTPProvider(
            rpc_url, request_kwargs={"timeout": request_timeout_seconds}
        )
        return cls(Web3(provider))

    def _fetch(self, proof: str) -> tuple[Any, Any]:
        tx = self.web3.eth.get_transaction(proof)
        receipt = self.web3.eth.get_transaction_receipt(proof)
        return tx, receipt

    def verify(self, proof: str, invoice: Invoice) -> None:
        if not proof or not proof.strip():
            raise ProofRejected(proof, "empty proof")

        try:
            tx, receipt = self._lookup(proof)
        except TransactionNotFound as e:
            raise ProofRejected(proof, "transaction not found on chain") from e
        except ValueError as e:
            # web3 raises ValueError for malformed hashes and RPC error payloads
            raise ProofRejected(proof, f"lookup failed: {e}") from e

        if receipt["status"] != 1:
            raise ProofRejected(proof, "transaction reverted")

        recipient = tx.get("to")
        if not recipient or recipient.lower() != invoice.destination_address.lower():
            raise ProofRejected(proof, f"paid {recipient}, not {invoice.destination_address}")

        expected_wei = Web3.to_wei(invoice.amount, "ether")
        if tx["value"] < expected_wei:
            paid = Decimal(Web3.from_wei(tx["value"], "ether"))
            raise InsufficientPayment(proof, paid, invoice.amount)

        logger.info(
            "Settlement verified on chain",
            invoice_id=invoice.invoice_id,
            block_number=receipt.get("blockNumber"),
        )
