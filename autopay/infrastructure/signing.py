"""Signing Identity — derive a local signer from authorization material and check addresses.

Invariants:
    - load_signer raises InvalidAuthorizationError for anything that is not a valid key
    - same_address compares case-insensitively (checksum casing is presentation only)
    - is_valid_address accepts 0x-prefixed 20-byte hex, checksummed or all-lower/upper

Design Decisions:
    - eth-account LocalAccount: signs offline, the RPC node never sees the key
"""

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from autopay.core.errors import InvalidAuthorizationError


def load_signer(private_key: str) -> LocalAccount:
    # Non-hex input, wrong length and out-of-range scalars surface as different types.
    try:
        return Account.from_key(private_key)
    except Exception as e:
        raise InvalidAuthorizationError() from e


def is_valid_address(address: str | None) -> bool:
    if not address or not isinstance(address, str):
        return False
    return Web3.is_address(address)


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)
