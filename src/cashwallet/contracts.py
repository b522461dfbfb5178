"""
Contract collaborator interface.

Contract compilation and instantiation live outside the wallet core. The
composer only needs to look up a deployed instance by address and obtain an
unlocking closure for one of its functions.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from cashwallet.constants import TIME_PREDICATE_KEYWORDS
from cashwallet.models import UTXORecord
from cashwallet.transaction.signing import SigningContext

# Produces the unlocking bytecode of one input
ContractUnlock = Callable[[SigningContext], bytes]


@dataclass
class ContractInstance:
    """A deployed contract the wallet tracks."""

    address: str
    contract_name: str
    source_code: str
    abi: list[dict[str, Any]]
    redeem_script: str = ""
    token_address: str | None = None
    utxos: list[UTXORecord] = field(default_factory=list)


class ContractProvider(ABC):
    @abstractmethod
    async def get_instance_by_address(self, address: str) -> ContractInstance | None:
        """Get the deployed contract instance locked to an address"""

    @abstractmethod
    async def get_unlocker(
        self, utxo: UTXORecord, function_name: str, args: dict[str, Any]
    ) -> ContractUnlock:
        """Build the unlocking closure for spending utxo via function_name(args)"""


def extract_function_body(source: str, function_name: str) -> str | None:
    """
    Extract the body of ``function <name>(...) { ... }`` from contract source.

    Braces are counted from the opening brace to find the matching close.
    """
    pattern = re.compile(rf"function\s+{re.escape(function_name)}\s*\(.*?\)\s*{{", re.DOTALL)
    match = pattern.search(source)
    if match is None:
        return None

    start = match.end()
    depth = 1
    end = start
    while end < len(source) and depth > 0:
        if source[end] == "{":
            depth += 1
        elif source[end] == "}":
            depth -= 1
        end += 1

    if depth != 0:
        return None
    return source[start : end - 1].strip()


def uses_time_predicates(source: str, function_name: str) -> bool:
    """
    Check whether a contract function checks transaction time or input age.

    Such functions validate against the transaction's locktime field, so the
    spending transaction must carry one.
    """
    # TODO: replace with a capability flag compiled into the contract artifact;
    # a text scan also matches keywords inside comments and string literals.
    body = extract_function_body(source, function_name)
    if body is None:
        return False
    return any(keyword in body for keyword in TIME_PREDICATE_KEYWORDS)
