"""认证解析与令牌校验工具。

HTTP 请求与实时通道握手共用同一套令牌校验逻辑。
"""
from dataclasses import dataclass
from functools import lru_cache
import re
from typing import Any

import jwt
from fastapi import HTTPException, status
from jwt import InvalidTokenError, PyJWKClient

from teamboard_api.core.config import get_settings

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="unauthorized",
)
TOKEN_PLACEHOLDER_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={
        "code": "AUTH_TOKEN_PLACEHOLDER_NOT_RESOLVED",
        "message": "认证失败：Authorization 仍为变量占位符，未替换为真实访问令牌。",
        "details": {
            "reason": "authorization_placeholder_not_resolved",
            "suggestion": "请先从身份提供方获取 access_token，再在请求头或握手参数中传入真实令牌。",
        },
    },
)


@dataclass
class AuthenticatedPrincipal:
    """统一认证主体对象。"""

    # 外部身份主体标识（sub）。
    subject: str
    # 认证提供方（issuer）。
    provider: str
    # 可选邮箱。
    email: str | None
    # 可选展示名。
    display_name: str | None
    # 原始声明集，便于下游扩展。
    claims: dict[str, Any]


@lru_cache
def _get_jwks_client(jwks_url: str) -> PyJWKClient:
    """缓存密钥集合客户端，减少重复网络开销。"""
    return PyJWKClient(jwks_url)


def _decode_jwt(token: str) -> dict[str, Any]:
    """按配置解码并校验令牌。"""
    settings = get_settings()
    options = {"verify_signature": True, "verify_aud": bool(settings.auth_jwt_audience)}

    if settings.auth_jwks_url:
        # 生产建议使用 JWKS，支持密钥轮换。
        try:
            key: Any = _get_jwks_client(settings.auth_jwks_url).get_signing_key_from_jwt(token).key
        except (jwt.PyJWKClientError, InvalidTokenError) as exc:
            raise UNAUTHORIZED from exc
    else:
        # 未配置 JWKS 时，回退到对称密钥校验（适合本地开发/测试）。
        key = settings.auth_jwt_secret

    try:
        return jwt.decode(
            token,
            key=key,
            algorithms=settings.auth_algorithms,
            issuer=settings.auth_jwt_issuer,
            audience=settings.auth_jwt_audience,
            leeway=settings.auth_jwt_leeway_seconds,
            options=options,
        )
    except InvalidTokenError as exc:
        raise UNAUTHORIZED from exc


def _is_placeholder_token(token: str) -> bool:
    return ("{{" in token and "}}" in token) or ("${" in token and "}" in token)


def _extract_bearer_token(authorization: str | None) -> str:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        raise UNAUTHORIZED
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    if not tokens:
        raise UNAUTHORIZED
    placeholder_seen = False
    for candidate in reversed(tokens):
        token = candidate.strip()
        if not token:
            continue
        if _is_placeholder_token(token):
            placeholder_seen = True
            continue
        return token
    if placeholder_seen:
        raise TOKEN_PLACEHOLDER_UNAUTHORIZED
    raise UNAUTHORIZED


def parse_access_token(token: str | None) -> AuthenticatedPrincipal:
    """校验裸令牌并返回认证主体。

    实时通道握手直接携带令牌，不经过 Authorization 头。
    """
    token = (token or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not token:
        raise UNAUTHORIZED
    if _is_placeholder_token(token):
        raise TOKEN_PLACEHOLDER_UNAUTHORIZED

    claims = _decode_jwt(token)

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise UNAUTHORIZED

    email = claims.get("email")
    display_name = claims.get("name") or claims.get("preferred_username")
    provider = claims.get("provider")
    issuer = str(provider if isinstance(provider, str) and provider else (claims.get("iss") or "jwt"))

    return AuthenticatedPrincipal(
        subject=subject,
        provider=issuer,
        email=email if isinstance(email, str) else None,
        display_name=display_name if isinstance(display_name, str) else None,
        claims=claims,
    )


def parse_authorization_header(authorization: str | None) -> AuthenticatedPrincipal:
    """解析认证头并返回认证主体。"""
    return parse_access_token(_extract_bearer_token(authorization))
