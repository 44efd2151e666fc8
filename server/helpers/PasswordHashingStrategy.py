from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.exceptions import InvalidKey
import base64
import os


class PasswordHashingStrategy:
    """
    Strategy class for password hashing/verification using scrypt.
    Hashes are stored as `scrypt$<salt>$<digest>` with urlsafe base64 parts.
    """
    PREFIX = "scrypt"

    def __init__(self, n: int = 2 ** 14, r: int = 8, p: int = 1, length: int = 32):
        self._n = n
        self._r = r
        self._p = p
        self._length = length

    def _kdf(self, salt: bytes) -> Scrypt:
        return Scrypt(salt=salt, length=self._length, n=self._n, r=self._r, p=self._p)

    def hash(self, password: str) -> str:
        salt = os.urandom(16)
        digest = self._kdf(salt).derive(password.encode("utf-8"))
        return "$".join([
            self.PREFIX,
            base64.urlsafe_b64encode(salt).decode("utf-8"),
            base64.urlsafe_b64encode(digest).decode("utf-8"),
        ])

    def verify(self, password: str, hashed: str) -> bool:
        if not password or not hashed:
            return False
        try:
            prefix, salt, digest = hashed.split("$")
        except ValueError:
            return False
        if prefix != self.PREFIX:
            return False
        try:
            self._kdf(base64.urlsafe_b64decode(salt)).verify(
                password.encode("utf-8"), base64.urlsafe_b64decode(digest)
            )
            return True
        except InvalidKey:
            return False
