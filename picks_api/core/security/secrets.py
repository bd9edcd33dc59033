"""Encryption of creator bank details.

Only the sealed token is persisted (``users.bank_account_id``) and it is what
bank transfers are addressed to.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

from picks_api.settings import Settings

_FIELD_SEPARATOR = "\x1f"


@dataclass(frozen=True, slots=True)
class BankDetails:
    account_name: str
    routing_number: str
    account_number: str

    @property
    def last4(self) -> str:
        return self.account_number[-4:]


class SealedValueError(ValueError):
    """Raised when a sealed value cannot be opened with the configured key."""


def _fernet(settings: Settings) -> Fernet:
    secret = settings.encryption_key or settings.jwt_secret
    digest = hashlib.sha256(secret.get_secret_value().encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def seal_bank_details(details: BankDetails, settings: Settings) -> str:
    clear = _FIELD_SEPARATOR.join(
        [details.account_name, details.routing_number, details.account_number]
    )
    return _fernet(settings).encrypt(clear.encode("utf-8")).decode("ascii")


def open_bank_details(token: str, settings: Settings) -> BankDetails:
    try:
        clear = _fernet(settings).decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, ValueError) as exc:
        raise SealedValueError("Stored bank details could not be decrypted") from exc
    name, routing, number = clear.split(_FIELD_SEPARATOR, 2)
    return BankDetails(account_name=name, routing_number=routing, account_number=number)


__all__ = ["BankDetails", "SealedValueError", "open_bank_details", "seal_bank_details"]
