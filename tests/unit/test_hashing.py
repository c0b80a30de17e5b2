import hashlib
import re

from utils.hashing import (verify_password, get_password_hash, generate_opaque_token,
                           fingerprint_token)


def test_password_hashing():
    password = "supersecretpassword"
    hashed = get_password_hash(password)
    assert hashed != password
    assert hashed.startswith("$2")

    # Salted: same input, different hash
    assert get_password_hash(password) != hashed


def test_password_verification():
    password = "supersecretpassword"
    hashed = get_password_hash(password)

    assert verify_password(password, hashed) is True
    assert verify_password("wrongpassword", hashed) is False

    long_pass = "a" * 100
    hashed_long = get_password_hash(long_pass)
    assert verify_password(long_pass, hashed_long) is True

    multibyte_pass = "ü" * 60
    assert verify_password(multibyte_pass, get_password_hash(multibyte_pass)) is True


def test_verify_password_never_raises_on_bad_hash():
    assert verify_password("password", "not-a-bcrypt-hash") is False
    assert verify_password("password", "") is False
    assert verify_password("password", None) is False


def test_opaque_token_is_url_safe_without_padding():
    token = generate_opaque_token(32)

    # 32 bytes -> 43 base64url characters once padding is dropped
    assert len(token) == 43
    assert re.fullmatch(r"[A-Za-z0-9_-]+", token)
    assert "=" not in token


def test_opaque_tokens_are_unique():
    tokens = {generate_opaque_token() for _ in range(100)}
    assert len(tokens) == 100


def test_fingerprint_is_deterministic_sha256():
    token = generate_opaque_token()

    assert fingerprint_token(token) == fingerprint_token(token)
    assert fingerprint_token(token) == hashlib.sha256(token.encode()).hexdigest()
    assert re.fullmatch(r"[0-9a-f]{64}", fingerprint_token(token))
    assert fingerprint_token(token) != fingerprint_token(token + "x")
