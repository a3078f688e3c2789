from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72
MIN_PASSWORD_LENGTH = 6

# Hash fixo usado quando o e-mail não existe, para igualar o custo da verificação.
_DUMMY_HASH = bcrypt.hashpw(b"kitchen-auth-dummy-password", bcrypt.gensalt()).decode("utf-8")


def _normalize_password_for_bcrypt(password: str) -> bytes:
    """
    bcrypt só considera até 72 bytes; versões novas recusam senhas maiores.
    Truncamos para manter compatibilidade com hashes existentes.
    """
    pw = (password or "").encode("utf-8")
    if len(pw) <= BCRYPT_MAX_BYTES:
        return pw
    return pw[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    pw = _normalize_password_for_bcrypt(password)
    return bcrypt.hashpw(pw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_normalize_password_for_bcrypt(plain_password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def burn_password_check(plain_password: str) -> None:
    """Spend one bcrypt verification so unknown emails cost the same as wrong passwords."""
    bcrypt.checkpw(_normalize_password_for_bcrypt(plain_password), _DUMMY_HASH.encode("utf-8"))
