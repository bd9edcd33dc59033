"""Password hashing, session token and bank-detail encryption helpers."""

from .hashing import PASSWORD_MIN_LENGTH, hash_password, needs_rehash, verify_password
from .secrets import BankDetails, SealedValueError, open_bank_details, seal_bank_details
from .tokens import create_access_token, decode_token, hash_csrf_token

__all__ = [
    "BankDetails",
    "PASSWORD_MIN_LENGTH",
    "SealedValueError",
    "create_access_token",
    "decode_token",
    "hash_csrf_token",
    "hash_password",
    "needs_rehash",
    "open_bank_details",
    "seal_bank_details",
    "verify_password",
]
