from datetime import datetime, timedelta, timezone

import jwt
import pytest

from storefront.auth.tokens import SessionClaims, TokenError, TokenIssuer


def test_round_trip_user_claim():
    issuer = TokenIssuer("s3cret")
    claims = SessionClaims.for_user("abc123")
    assert issuer.decode(issuer.issue(claims)) == claims


def test_admin_claim_is_structured():
    issuer = TokenIssuer("s3cret")
    token = issuer.issue(SessionClaims.for_admin())
    payload = jwt.decode(token, options={"verify_signature": False})
    assert payload["role"] == "admin"
    assert payload["sub"] == "admin"
    assert issuer.decode(token).is_admin


def test_tampered_token_fails():
    issuer = TokenIssuer("s3cret")
    token = issuer.issue(SessionClaims.for_user("abc123"))
    head, body, sig = token.split(".")
    forged_sig = ("A" if sig[0] != "A" else "B") + sig[1:]
    with pytest.raises(TokenError):
        issuer.decode(".".join([head, body, forged_sig]))

    other = jwt.encode({"sub": "someone-else", "role": "admin", "iat": 0}, "wrong-secret", algorithm="HS256")
    with pytest.raises(TokenError):
        issuer.decode(other)


def test_malformed_and_empty_tokens_fail():
    issuer = TokenIssuer("s3cret")
    for bad in ("", "garbage", "a.b.c"):
        with pytest.raises(TokenError):
            issuer.decode(bad)


def test_expired_token_fails():
    issuer = TokenIssuer("s3cret", ttl=timedelta(hours=24))
    old = datetime.now(timezone.utc) - timedelta(days=2)
    with pytest.raises(TokenError):
        issuer.decode(issuer.issue(SessionClaims.for_user("abc123"), now=old))


def test_no_ttl_means_no_exp_claim():
    issuer = TokenIssuer("s3cret", ttl=None)
    token = issuer.issue(SessionClaims.for_user("abc123"))
    assert "exp" not in jwt.decode(token, options={"verify_signature": False})
    assert issuer.decode(token).sub == "abc123"


def test_unknown_role_rejected():
    token = jwt.encode({"sub": "x", "role": "root", "iat": 0}, "s3cret", algorithm="HS256")
    with pytest.raises(TokenError):
        TokenIssuer("s3cret").decode(token)
