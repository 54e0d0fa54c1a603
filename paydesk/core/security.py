"""Password hashing: bcrypt for new digests, verification of the legacy fast hash, and upgrade."""

import enum
import re
import secrets
import string
from dataclasses import dataclass

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for input validation.
EMAIL_MAX_LEN = 254
LOGIN_PASSWORD_MIN_LEN = 1
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
FULL_NAME_MAX_LEN = 100
LOCATION_MAX_LEN = 200

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Unambiguous characters (no 0/O, 1/l/I) for generated passwords.
GENERATED_PASSWORD_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
GENERATED_PASSWORD_LEN = 10

# bcrypt reads at most this many bytes of input; anything after is ignored.
BCRYPT_MAX_INPUT_BYTES = 72

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
_BASE36_DIGITS = string.digits + string.ascii_lowercase


class HashScheme(str, enum.Enum):
    """Scheme a stored password digest was produced with."""

    BCRYPT = "bcrypt"
    LEGACY = "legacy"


@dataclass(frozen=True)
class PasswordDigest:
    """A stored password hash tagged with its scheme."""

    scheme: HashScheme
    payload: str

    @classmethod
    def parse(cls, stored: str) -> "PasswordDigest":
        if stored.startswith(_BCRYPT_PREFIXES):
            return cls(HashScheme.BCRYPT, stored)
        return cls(HashScheme.LEGACY, stored)

    def __str__(self) -> str:
        return self.payload


def is_valid_email(email: str) -> bool:
    return len(email) <= EMAIL_MAX_LEN and EMAIL_RE.match(email) is not None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def has_password_complexity(password: str) -> bool:
    """At least one ASCII letter and one digit."""
    return re.search(r"[a-zA-Z]", password) is not None and re.search(r"[0-9]", password) is not None


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def legacy_hash(plain_password: str) -> str:
    """
    Deprecated fast hash that predates bcrypt. Only used to verify old digests.

    Rolling 32-bit hash over UTF-16 code units, folded with a length-derived
    salt and rendered in base 36. Must stay bit-exact with digests already stored.
    """
    raw = plain_password.encode("utf-16-le")
    code_units = [int.from_bytes(raw[i : i + 2], "little") for i in range(0, len(raw), 2)]
    h = 0
    for c in code_units:
        h = _to_int32(_to_int32(h << 5) - h + c)
    salt = len(code_units) * 17 + 42
    return _to_base36(abs(h + salt))


class PasswordHasher:
    """Hash new passwords with bcrypt; verify bcrypt or legacy digests."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds

    @staticmethod
    def _encode(plain_password: str) -> bytes:
        return plain_password.encode("utf-8")[:BCRYPT_MAX_INPUT_BYTES]

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._encode(plain_password), salt).decode("utf-8")

    def verify(self, plain_password: str, stored: str | PasswordDigest) -> bool:
        """Verify a plain password against a stored digest of either scheme."""
        digest = stored if isinstance(stored, PasswordDigest) else PasswordDigest.parse(stored)
        if digest.scheme is HashScheme.BCRYPT:
            try:
                return bcrypt.checkpw(self._encode(plain_password), digest.payload.encode("utf-8"))
            except (ValueError, TypeError):
                return False
        if not digest.payload:
            return False
        return secrets.compare_digest(
            legacy_hash(plain_password).encode("utf-8"), digest.payload.encode("utf-8")
        )

    def needs_upgrade(self, stored: str | PasswordDigest) -> bool:
        digest = stored if isinstance(stored, PasswordDigest) else PasswordDigest.parse(stored)
        return digest.scheme is not HashScheme.BCRYPT


def generate_random_password(length: int = GENERATED_PASSWORD_LEN) -> str:
    """Random password from the unambiguous alphabet, always with a letter and a digit."""
    if length < 2:
        raise ValueError("length must be at least 2")
    while True:
        password = "".join(secrets.choice(GENERATED_PASSWORD_ALPHABET) for _ in range(length))
        if has_password_complexity(password):
            return password
