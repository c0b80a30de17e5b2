from datetime import datetime, timedelta, timezone

import pytest
from jose import jws, jwt

from core.exceptions import (InvalidSignature, MalformedSubject, MalformedToken,
                             TokenExpired, UnsupportedAlgorithm, CredentialError)
from services.access_tokens import AccessTokenCodec, AccessTokenClaims

from tests.helpers import TEST_SECRET, segment, swap_payload


def claims_for(clock, **overrides):
    now = int(clock().timestamp())
    claims = {"sub": "u1", "iat": now, "exp": now + 900}
    claims.update(overrides)
    return claims


def test_access_token_round_trip(codec, clock):
    token = codec.encode("u1", timedelta(minutes=15))
    assert token

    claims = codec.decode(token)

    assert isinstance(claims, AccessTokenClaims)
    assert claims.subject == "u1"
    assert claims.issued_at == clock()
    assert claims.expires_at == clock() + timedelta(minutes=15)


def test_access_token_carries_standard_claims(codec, clock):
    token = codec.encode(42, timedelta(minutes=15))

    payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"],
                         options={"verify_exp": False})
    assert payload["sub"] == "42"
    assert payload["iat"] == int(clock().timestamp())
    assert payload["exp"] == int(clock().timestamp()) + 900
    assert jwt.get_unverified_header(token)["alg"] == "HS256"


def test_token_valid_until_ttl_elapses(codec, clock):
    token = codec.encode("u1", timedelta(seconds=60))

    clock.advance(seconds=59)
    assert codec.decode(token).subject == "u1"

    # exp itself is already expired
    clock.advance(seconds=1)
    with pytest.raises(TokenExpired):
        codec.decode(token)


def test_wrong_secret_is_invalid_signature(codec, clock):
    other = AccessTokenCodec("a-completely-different-secret", clock=clock)
    token = other.encode("u1", timedelta(minutes=15))

    with pytest.raises(InvalidSignature):
        codec.decode(token)


def test_tampered_claims_are_invalid_signature(codec, clock):
    token = codec.encode("u1", timedelta(minutes=15))
    tampered = swap_payload(token, claims_for(clock, sub="admin"))

    with pytest.raises(InvalidSignature):
        codec.decode(tampered)


def test_signature_checked_before_expiry(codec, clock):
    other = AccessTokenCodec("a-completely-different-secret", clock=clock)
    token = other.encode("u1", timedelta(seconds=1))
    clock.advance(minutes=5)

    with pytest.raises(InvalidSignature):
        codec.decode(token)


@pytest.mark.parametrize("token", [
    "",
    "not-a-jwt",
    "only.two",
    "a.b.c",
    "WzFd.e30.c2ln",  # header is a JSON list, not an object
])
def test_unparseable_tokens_are_malformed(codec, token):
    with pytest.raises(MalformedToken):
        codec.decode(token)


def test_signed_non_json_claims_are_malformed(codec):
    token = jws.sign(b"not json", TEST_SECRET, algorithm="HS256")

    with pytest.raises(MalformedToken):
        codec.decode(token)


def test_none_algorithm_rejected(codec, clock):
    token = f"{segment({'alg': 'none', 'typ': 'JWT'})}.{segment(claims_for(clock))}."

    with pytest.raises(UnsupportedAlgorithm):
        codec.decode(token)


def test_asymmetric_algorithm_rejected(codec, clock):
    token = f"{segment({'alg': 'RS256', 'typ': 'JWT'})}.{segment(claims_for(clock))}.c2lnbmF0dXJl"

    with pytest.raises(UnsupportedAlgorithm):
        codec.decode(token)


def test_other_hmac_algorithms_accepted(codec, clock):
    token = jwt.encode(claims_for(clock), TEST_SECRET, algorithm="HS512")

    assert codec.decode(token).subject == "u1"


def test_numeric_subject_coerced_to_string(codec, clock):
    token = jwt.encode(claims_for(clock, sub=12345), TEST_SECRET, algorithm="HS256")

    assert codec.decode(token).subject == "12345"


@pytest.mark.parametrize("subject", [None, "", "   ", True, 1.5, ["u1"], {"id": 1}])
def test_bad_subject_is_malformed_subject(codec, clock, subject):
    claims = claims_for(clock, sub=subject)
    if subject is None:
        del claims["sub"]
    token = jwt.encode(claims, TEST_SECRET, algorithm="HS256")

    with pytest.raises(MalformedSubject):
        codec.decode(token)


@pytest.mark.parametrize("exp", [None, "tomorrow", True])
def test_missing_or_invalid_exp_is_malformed(codec, clock, exp):
    claims = claims_for(clock, exp=exp)
    if exp is None:
        del claims["exp"]
    token = jwt.encode(claims, TEST_SECRET, algorithm="HS256")

    with pytest.raises(MalformedToken):
        codec.decode(token)


def test_all_decode_failures_are_credential_errors(codec):
    with pytest.raises(CredentialError):
        codec.decode("garbage")


def test_codec_requires_hmac_algorithm():
    with pytest.raises(ValueError):
        AccessTokenCodec(TEST_SECRET, algorithm="RS256")


def test_codec_uses_injected_clock_only():
    frozen = datetime(2030, 6, 1, tzinfo=timezone.utc)
    codec = AccessTokenCodec(TEST_SECRET, clock=lambda: frozen)

    token = codec.encode("u1", timedelta(minutes=1))

    assert codec.decode(token).expires_at == frozen + timedelta(minutes=1)
