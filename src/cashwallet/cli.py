"""
cashwallet CLI - Inspect and maintain the local wallet store.
"""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from cashwallet.config import WalletSettings, get_settings
from cashwallet.ledger.history import TransactionHistoryLedger
from cashwallet.ledger.utxos import UTXOLedger
from cashwallet.services import create_store

app = typer.Typer(
    name="cashwallet",
    help="Bitcoin Cash wallet store management",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


async def _init(settings: WalletSettings) -> int:
    store = create_store(settings)
    try:
        await store.ensure_started()
        return store.version
    finally:
        await store.close()


async def _reset(settings: WalletSettings) -> None:
    store = create_store(settings)
    try:
        await store.reset()
    finally:
        await store.close()


async def _list_addresses(settings: WalletSettings, wallet_id: int) -> list[str]:
    store = create_store(settings)
    try:
        return await UTXOLedger(store).list_addresses(wallet_id)
    finally:
        await store.close()


async def _list_utxos(settings: WalletSettings, wallet_id: int, address: str | None) -> list:
    store = create_store(settings)
    try:
        ledger = UTXOLedger(store)
        if address:
            return await ledger.query_by_address(wallet_id, address)
        return await ledger.query_by_wallet(wallet_id)
    finally:
        await store.close()


async def _list_history(settings: WalletSettings, wallet_id: int) -> list:
    store = create_store(settings)
    try:
        return await TransactionHistoryLedger(store).list_history(wallet_id)
    finally:
        await store.close()


@app.command()
def init(
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Log level (default: CASHWALLET_LOG_LEVEL)"
    ),
) -> None:
    """Create the wallet store (or migrate an existing one)."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    version = asyncio.run(_init(settings))
    typer.echo(f"Store ready at {settings.data_dir} (schema v{version})")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Log level (default: CASHWALLET_LOG_LEVEL)"
    ),
) -> None:
    """Drop all wallet data and recreate the schema."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    if not yes:
        typer.confirm("This deletes all wallets, keys and UTXOs. Continue?", abort=True)
    asyncio.run(_reset(settings))
    typer.echo("Store reset")


@app.command()
def addresses(
    wallet_id: int = typer.Argument(..., help="Wallet id"),
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Log level (default: CASHWALLET_LOG_LEVEL)"
    ),
) -> None:
    """List the addresses known for a wallet."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    for address in asyncio.run(_list_addresses(settings, wallet_id)):
        typer.echo(address)


@app.command()
def utxos(
    wallet_id: int = typer.Argument(..., help="Wallet id"),
    address: str | None = typer.Argument(None, help="Only show UTXOs of this address"),
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Log level (default: CASHWALLET_LOG_LEVEL)"
    ),
) -> None:
    """List stored UTXOs."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    records = asyncio.run(_list_utxos(settings, wallet_id, address))

    total = 0
    for utxo in records:
        total += utxo.amount
        line = f"{utxo.outpoint}  {utxo.amount:>12} sats  {utxo.address}"
        if utxo.token is not None:
            kind = f"NFT({utxo.token.nft.capability})" if utxo.token.nft else "FT"
            line += f"  {kind} {utxo.token.category[:16]}... {utxo.token.fungible_amount}"
        typer.echo(line)
    typer.echo(f"{len(records)} UTXOs, {total} sats")


@app.command()
def history(
    wallet_id: int = typer.Argument(..., help="Wallet id"),
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Log level (default: CASHWALLET_LOG_LEVEL)"
    ),
) -> None:
    """List the stored transaction history of a wallet."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)
    for item in asyncio.run(_list_history(settings, wallet_id)):
        status = str(item.height) if item.height > 0 else "unconfirmed"
        typer.echo(f"{item.tx_hash}  {status}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
