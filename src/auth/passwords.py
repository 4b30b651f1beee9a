"""bcrypt password hashing."""

import bcrypt as _bcrypt

# bcrypt only reads the first 72 bytes of the input
_BCRYPT_MAX_BYTES = 72


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        return _bcrypt.hashpw(_encode(plaintext), _bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, plaintext: str, digest: str | None) -> bool:
        """Return True when plaintext matches digest. Missing or malformed digests never match."""
        if not digest:
            return False
        try:
            return _bcrypt.checkpw(_encode(plaintext), digest.encode())
        except ValueError:
            return False
