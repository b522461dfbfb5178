"""
Transaction builder.

Collects unlockable inputs and prepared outputs, then produces a fully
signed transaction. Each input carries one of two unlockers:

- SignatureUnlocker: plain P2PKH spend signed with the address's key
- ContractUnlocker: redeem-script spend produced by the contract collaborator
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from cashwallet.contracts import ContractInstance, ContractUnlock
from cashwallet.errors import BuildError
from cashwallet.models import UTXORecord
from cashwallet.transaction.cashaddr import address_to_locking_bytecode
from cashwallet.transaction.encoding import (
    Transaction,
    TxInput,
    TxOutput,
    serialize_transaction,
)
from cashwallet.transaction.signing import (
    SigningContext,
    p2pkh_locking_bytecode,
    p2pkh_unlocking_bytecode,
    public_key_from_private,
    sign_input,
)


@dataclass
class SignatureUnlocker:
    private_key: bytes = field(repr=False)


@dataclass
class ContractUnlocker:
    function_name: str
    args: dict[str, Any]
    instance: ContractInstance
    unlock: ContractUnlock = field(repr=False)


Unlocker = SignatureUnlocker | ContractUnlocker


@dataclass
class UnlockableInput:
    utxo: UTXORecord
    unlocker: Unlocker


def input_locking_bytecode(item: UnlockableInput) -> bytes:
    """Locking bytecode of the output being spent."""
    unlocker = item.unlocker
    if isinstance(unlocker, SignatureUnlocker):
        return p2pkh_locking_bytecode(public_key_from_private(unlocker.private_key))
    if isinstance(unlocker, ContractUnlocker):
        return address_to_locking_bytecode(unlocker.instance.address)
    raise BuildError(f"Unsupported unlocker: {type(unlocker).__name__}")


class TransactionBuilder:
    """
    Builds and signs a transaction.

    Input order and output order are preserved as added.
    """

    def __init__(self) -> None:
        self.inputs: list[UnlockableInput] = []
        self.outputs: list[TxOutput] = []
        self.locktime = 0

    def add_inputs(self, inputs: list[UnlockableInput]) -> TransactionBuilder:
        self.inputs.extend(inputs)
        return self

    def add_outputs(self, outputs: list[TxOutput]) -> TransactionBuilder:
        self.outputs.extend(outputs)
        return self

    def set_locktime(self, locktime: int) -> TransactionBuilder:
        if not 0 <= locktime <= 0xFFFFFFFF:
            raise BuildError(f"Invalid locktime: {locktime}")
        self.locktime = locktime
        return self

    def build(self) -> str:
        """
        Sign every input and serialize.

        Returns:
            Signed transaction hex

        Raises:
            BuildError: On any failure; no partially signed data escapes
        """
        if not self.inputs:
            raise BuildError("Transaction has no inputs")
        if not self.outputs:
            raise BuildError("Transaction has no outputs")

        try:
            tx = Transaction(
                inputs=[
                    TxInput(
                        txid=item.utxo.tx_hash,
                        vout=item.utxo.tx_pos,
                        value=item.utxo.amount,
                        locking_bytecode=input_locking_bytecode(item),
                        token=item.utxo.token,
                    )
                    for item in self.inputs
                ],
                outputs=list(self.outputs),
                locktime=self.locktime,
            )

            # The signature hash does not cover unlocking bytecode, so inputs
            # can be unlocked in any order against the same unsigned template
            unlocking = [self._unlock(tx, i, item) for i, item in enumerate(self.inputs)]
            for inp, bytecode in zip(tx.inputs, unlocking, strict=True):
                inp.unlocking_bytecode = bytecode

            tx_bytes = serialize_transaction(tx)
        except BuildError:
            raise
        except Exception as e:
            raise BuildError(f"Failed to build transaction: {e}") from e

        logger.debug(
            f"Built transaction: {len(tx.inputs)} inputs, {len(tx.outputs)} outputs, "
            f"{len(tx_bytes)} bytes, locktime {tx.locktime}"
        )
        return tx_bytes.hex()

    def _unlock(self, tx: Transaction, index: int, item: UnlockableInput) -> bytes:
        unlocker = item.unlocker
        if isinstance(unlocker, SignatureUnlocker):
            covered = tx.inputs[index].locking_bytecode
            signature = sign_input(tx, index, covered, unlocker.private_key)
            public_key = public_key_from_private(unlocker.private_key)
            return p2pkh_unlocking_bytecode(signature, public_key)
        if isinstance(unlocker, ContractUnlocker):
            return unlocker.unlock(SigningContext(transaction=tx, input_index=index))
        raise BuildError(f"Unsupported unlocker: {type(unlocker).__name__}")
