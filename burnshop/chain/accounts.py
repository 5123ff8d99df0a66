from __future__ import annotations

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from burnshop.errors import ValidationError


def parse_pubkey(value: str, *, label: str = "address") -> Pubkey:
    try:
        return Pubkey.from_string(str(value or "").strip())
    except (TypeError, ValueError) as error:
        raise ValidationError(f"Invalid public key for {label}") from error


def associated_token_account(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return get_associated_token_address(owner, mint)
