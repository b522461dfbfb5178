"""
Transaction composer.

Turns selected UTXOs and desired outputs into a signed, broadcast-ready
transaction:

1. Resolve an unlocker for every input (signature or contract)
2. Shape outputs (plain, fungible token, NFT, OP_RETURN)
3. Set a height-based locktime when a contract function checks time/age
4. Sizing pass with a dust placeholder change output
5. Change = inputs - outputs - size * fee rate
6. Final pass with the real change output (if any)

Build and broadcast never raise: failures come back as structured results.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from loguru import logger

from cashwallet.backends.base import NetworkBackend
from cashwallet.constants import DEFAULT_FEE_RATE, DUST
from cashwallet.contracts import ContractProvider, uses_time_predicates
from cashwallet.errors import (
    BroadcastError,
    BuildError,
    MissingContractBindingError,
    MissingKeyError,
    ValidationError,
)
from cashwallet.keys import KeyManager
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.models import (
    BuildResult,
    NFTCapability,
    NFTData,
    OpReturnOutput,
    OutputSpec,
    SendResult,
    Token,
    TransactionOutput,
    UTXORecord,
)
from cashwallet.transaction.builder import (
    ContractUnlocker,
    SignatureUnlocker,
    TransactionBuilder,
    UnlockableInput,
)
from cashwallet.transaction.cashaddr import address_to_locking_bytecode
from cashwallet.transaction.encoding import TxOutput, encode_op_return


def shape_token(token: Token) -> Token:
    """Copy of a token with only the fields that apply: NFT data or a fungible amount."""
    return Token(
        category=token.category,
        nft=(
            NFTData(capability=token.nft.capability, commitment=token.nft.commitment)
            if token.nft is not None
            else None
        ),
        amount=token.amount if token.amount else None,
    )


def _require_fungible_amount(token_amount: int) -> None:
    if token_amount <= 0:
        raise ValidationError("fungible token output requires a positive amount")


def prepare_outputs(outputs: Sequence[OutputSpec]) -> list[TxOutput]:
    """Convert output specs into wire outputs."""
    prepared = []
    for output in outputs:
        if isinstance(output, OpReturnOutput):
            prepared.append(TxOutput(locking_bytecode=encode_op_return(output.op_return), value=0))
            continue
        prepared.append(
            TxOutput(
                locking_bytecode=address_to_locking_bytecode(output.recipient_address),
                value=output.amount,
                token=shape_token(output.token) if output.token is not None else None,
            )
        )
    return prepared


class TransactionComposer:
    """
    Composes wallet transactions.

    Outputs accepted by add_output() accumulate in ``pending_outputs`` until
    the caller builds with them and calls clear_outputs().
    """

    def __init__(
        self,
        keys: KeyManager,
        backend: NetworkBackend,
        directory: AddressDirectory,
        contracts: ContractProvider | None = None,
        fee_rate: int = DEFAULT_FEE_RATE,
        dust_amount: int = DUST,
    ):
        self.keys = keys
        self.backend = backend
        self.directory = directory
        self.contracts = contracts
        self.fee_rate = fee_rate
        self.dust_amount = dust_amount
        self.pending_outputs: list[OutputSpec] = []

    def clear_outputs(self) -> None:
        self.pending_outputs = []

    async def add_output(
        self,
        wallet_id: int,
        recipient_address: str,
        transfer_amount: int,
        token_amount: int = 0,
        category: str = "",
        selected_utxos: Sequence[UTXORecord] = (),
        nft_capability: NFTCapability | None = None,
        nft_commitment: str | None = None,
    ) -> TransactionOutput | None:
        """
        Create an output and add it to the pending outputs.

        Args:
            wallet_id: Wallet whose token addresses are used for redirection
            recipient_address: Destination address
            transfer_amount: Satoshis to send
            token_amount: Fungible token amount
            category: Token category to transfer, or the tx_hash of a genesis
                UTXO to mint a new category
            selected_utxos: UTXOs selected as inputs
            nft_capability: Capability of a newly minted NFT (genesis only)
            nft_commitment: Commitment of a newly minted NFT (genesis only)

        Returns:
            The new output, or None if the request was rejected
        """
        try:
            output = await self._shape_output(
                wallet_id,
                recipient_address,
                transfer_amount,
                token_amount,
                category,
                selected_utxos,
                nft_capability,
                nft_commitment,
            )
        except ValidationError as e:
            logger.warning(f"add_output: {e}")
            return None

        self.pending_outputs.append(output)
        logger.debug(f"Added output: {output}")
        return output

    async def _shape_output(
        self,
        wallet_id: int,
        recipient_address: str,
        transfer_amount: int,
        token_amount: int,
        category: str,
        selected_utxos: Sequence[UTXORecord],
        nft_capability: NFTCapability | None,
        nft_commitment: str | None,
    ) -> TransactionOutput:
        if not recipient_address or (not transfer_amount and not token_amount):
            raise ValidationError("recipient address and at least one amount required")

        output = TransactionOutput(recipient_address=recipient_address, amount=transfer_amount or 0)
        if not category:
            return output

        existing = next(
            (u for u in selected_utxos if u.token is not None and u.token.category == category),
            None,
        )
        genesis = next(
            (u for u in selected_utxos if u.is_genesis_candidate and u.tx_hash == category),
            None,
        )

        if existing is not None and existing.token is not None:
            source = existing.token
            if source.nft is not None:
                output.token = Token(
                    category=source.category,
                    nft=NFTData(capability=source.nft.capability, commitment=source.nft.commitment),
                )
            else:
                _require_fungible_amount(token_amount)
                output.token = Token(category=source.category, amount=token_amount)
        elif genesis is not None:
            if nft_capability and nft_commitment is not None:
                # Minting an NFT: no fungible amount
                output.token = Token(
                    category=genesis.tx_hash,
                    amount=0,
                    nft=NFTData(capability=nft_capability, commitment=nft_commitment),
                )
            else:
                _require_fungible_amount(token_amount)
                output.token = Token(category=genesis.tx_hash, amount=token_amount)
        else:
            raise ValidationError(
                f"no matching token UTXO or genesis UTXO for category {category}"
            )

        token_address = await self.directory.resolve(wallet_id, recipient_address)
        if token_address:
            output.recipient_address = token_address
        return output

    async def _resolve_unlocker(self, utxo: UTXORecord) -> tuple[UnlockableInput, bool]:
        """Returns the unlockable input and whether it requires a locktime."""
        if not utxo.has_contract_binding:
            private_key = utxo.private_key or await self.keys.fetch_private_key(utxo.address)
            if not private_key:
                raise MissingKeyError(f"Private key not found or empty for address: {utxo.address}")
            return UnlockableInput(utxo=utxo, unlocker=SignatureUnlocker(private_key)), False

        if self.contracts is None:
            raise MissingContractBindingError(
                f"No contract provider configured for contract UTXO {utxo.outpoint}"
            )

        instance = await self.contracts.get_instance_by_address(utxo.address)
        if instance is None:
            raise MissingContractBindingError(f"No contract instance found at {utxo.address}")

        function_name = utxo.contract_function
        args = utxo.contract_function_inputs
        if not function_name or args is None:
            raise MissingContractBindingError("Contract function and inputs must be provided")

        unlock = await self.contracts.get_unlocker(utxo, function_name, args)
        needs_locktime = uses_time_predicates(instance.source_code, function_name)
        if needs_locktime:
            logger.debug(f"{instance.contract_name}.{function_name} checks time, locktime required")

        unlocker = ContractUnlocker(
            function_name=function_name, args=args, instance=instance, unlock=unlock
        )
        return UnlockableInput(utxo=utxo, unlocker=unlocker), needs_locktime

    async def _resolve_inputs(
        self, utxos: Sequence[UTXORecord]
    ) -> tuple[list[UnlockableInput], bool]:
        resolved = await asyncio.gather(*(self._resolve_unlocker(u) for u in utxos))
        inputs = [item for item, _ in resolved]
        needs_locktime = any(flag for _, flag in resolved)
        return inputs, needs_locktime

    def _assemble(
        self, inputs: list[UnlockableInput], outputs: Sequence[OutputSpec], locktime: int
    ) -> str:
        builder = TransactionBuilder()
        builder.add_inputs(inputs)
        builder.add_outputs(prepare_outputs(outputs))
        if locktime:
            builder.set_locktime(locktime)
        return builder.build()

    async def build_transaction(
        self,
        selected_utxos: Sequence[UTXORecord],
        outputs: Sequence[OutputSpec],
        change_address: str,
    ) -> BuildResult:
        """
        Build a signed transaction with fee-aware change.

        Returns:
            BuildResult; on failure only ``error_msg`` is set
        """
        try:
            if not selected_utxos:
                raise BuildError("No UTXOs selected")

            total_in = sum(u.amount for u in selected_utxos)
            total_out = sum(o.amount for o in outputs)
            if total_out > total_in:
                raise BuildError(
                    f"Insufficient funds: outputs {total_out} exceed inputs {total_in}"
                )

            inputs, needs_locktime = await self._resolve_inputs(selected_utxos)

            locktime = 0
            if needs_locktime:
                # Redeem-script time checks validate against the locktime field
                locktime = await self.backend.get_block_height()
                logger.debug(f"Setting locktime to current height {locktime}")

            # Sizing pass with a placeholder change output
            sizing_outputs: list[OutputSpec] = list(outputs)
            if change_address:
                sizing_outputs.append(
                    TransactionOutput(recipient_address=change_address, amount=self.dust_amount)
                )
            sizing_tx = self._assemble(inputs, sizing_outputs, locktime)
            byte_length = len(sizing_tx) // 2

            remainder = total_in - total_out - byte_length * self.fee_rate
            logger.debug(
                f"Inputs {total_in}, outputs {total_out}, size {byte_length} bytes, "
                f"remainder {remainder}"
            )

            final_outputs: list[OutputSpec] = list(outputs)
            if remainder <= 0:
                logger.warning("No remainder to add a change output")
            elif change_address:
                final_outputs.append(
                    TransactionOutput(recipient_address=change_address, amount=remainder)
                )

            final_tx = self._assemble(inputs, final_outputs, locktime)
        except Exception as e:
            logger.error(f"Error building transaction: {e}")
            return BuildResult(error_msg=str(e) or "Unknown error")

        return BuildResult(
            bytecode_size=len(final_tx) // 2,
            final_transaction=final_tx,
            final_outputs=final_outputs,
        )

    async def send_transaction(self, tx_hex: str) -> SendResult:
        """Broadcast a raw transaction. Never raises."""
        try:
            txid = await self.backend.send_raw_transaction(tx_hex)
            if not txid:
                raise BroadcastError("Network returned no transaction id")
        except Exception as e:
            logger.error(f"Error sending transaction: {e}")
            return SendResult(txid=None, error_message=f"Error sending transaction: {e}")

        logger.info(f"Broadcast transaction {txid}")
        return SendResult(txid=txid)

    async def fetch_private_key(self, address: str) -> bytes | None:
        return await self.keys.fetch_private_key(address)
