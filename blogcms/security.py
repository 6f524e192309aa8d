"""Password hashing helpers (bcrypt, salted per call)."""
import bcrypt

from blogcms.config import settings

# bcrypt only reads this many bytes of input and rejects anything longer.
MAX_PASSWORD_BYTES = 72


def hash_password(raw_password: str) -> str:
    """Hash a raw password using bcrypt and return the utf-8 string."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(raw_password.encode(), salt).decode()


def verify_password(raw_password: str, password_hash: str | None) -> bool:
    """Verify a raw password against a stored bcrypt hash."""
    if not password_hash:
        return False
    encoded = raw_password.encode()
    # No stored password can be this long, so it cannot match.
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
