import jwt
import pytest
from fastapi import HTTPException
from sqlalchemy import select

from teamboard_api.core.config import get_settings
from teamboard_api.core.security import AuthenticatedPrincipal, parse_access_token, parse_authorization_header
from teamboard_api.dependencies import ensure_user
from teamboard_api.models.user import User

_SECRET = "unit-test-secret-with-enough-bytes-for-hs256"


@pytest.fixture
def jwt_settings(monkeypatch):
    monkeypatch.setenv("TB_AUTH_JWT_SECRET", _SECRET)
    monkeypatch.setenv("TB_AUTH_JWT_ALGORITHMS", "HS256")
    monkeypatch.delenv("TB_AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("TB_AUTH_JWT_AUDIENCE", raising=False)
    monkeypatch.delenv("TB_AUTH_JWKS_URL", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


def test_parse_authorization_header_jwt(jwt_settings):
    token = jwt.encode({"sub": "user-1", "email": "u1@example.com", "name": "U1"}, _SECRET, algorithm="HS256")
    principal = parse_authorization_header(f"Bearer {token}")

    assert principal.subject == "user-1"
    assert principal.email == "u1@example.com"
    assert principal.display_name == "U1"
    assert principal.provider == "jwt"


def test_parse_access_token_accepts_bare_and_prefixed_tokens(jwt_settings):
    token = jwt.encode({"sub": "user-2", "iss": "https://id.example.com"}, _SECRET, algorithm="HS256")

    assert parse_access_token(token).subject == "user-2"
    assert parse_access_token(f"bearer {token}").provider == "https://id.example.com"


def test_token_without_subject_is_rejected(jwt_settings):
    token = jwt.encode({"email": "u1@example.com"}, _SECRET, algorithm="HS256")

    with pytest.raises(HTTPException) as exc:
        parse_access_token(token)
    assert exc.value.status_code == 401


def test_token_signed_with_other_secret_is_rejected(jwt_settings):
    token = jwt.encode({"sub": "user-1"}, "another-secret-that-is-also-long-enough", algorithm="HS256")

    with pytest.raises(HTTPException) as exc:
        parse_authorization_header(f"Bearer {token}")
    assert exc.value.status_code == 401


def test_expired_token_is_rejected(jwt_settings):
    token = jwt.encode({"sub": "user-1", "exp": 1_000_000}, _SECRET, algorithm="HS256")

    with pytest.raises(HTTPException) as exc:
        parse_access_token(token)
    assert exc.value.status_code == 401


def test_placeholder_token_reports_dedicated_code(jwt_settings):
    with pytest.raises(HTTPException) as exc:
        parse_authorization_header("Bearer {{access_token}}")
    assert exc.value.detail["code"] == "AUTH_TOKEN_PLACEHOLDER_NOT_RESOLVED"

    with pytest.raises(HTTPException) as exc:
        parse_access_token("")
    assert exc.value.status_code == 401


def test_ensure_user_binds_identity_and_refreshes_profile(db_session):
    principal = AuthenticatedPrincipal(
        subject="s" * 300,
        provider="jwt",
        email=" Frank@Example.com ",
        display_name="Frank",
        claims={"picture": "https://cdn.example.com/frank.png"},
    )

    user = ensure_user(db_session, principal)
    db_session.commit()

    assert user.email == "frank@example.com"
    assert user.external_subject.startswith("hash:")
    assert user.avatar_url == "https://cdn.example.com/frank.png"

    again = ensure_user(
        db_session,
        AuthenticatedPrincipal(subject="s" * 300, provider="jwt", email=None, display_name="Franky", claims={}),
    )
    db_session.commit()

    assert again.id == user.id
    assert again.display_name == "Franky"
    assert len(db_session.execute(select(User)).scalars().all()) == 1


def test_ensure_user_without_email_uses_local_placeholder(db_session):
    user = ensure_user(
        db_session,
        AuthenticatedPrincipal(subject="anon-1", provider="jwt", email=None, display_name=None, claims={}),
    )
    db_session.commit()

    assert user.email.endswith("@local.invalid")
    assert user.display_name == "user-anon-1"
