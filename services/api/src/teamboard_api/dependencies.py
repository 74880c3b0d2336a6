"""请求上下文依赖。

职责:
1. 解析并校验访问令牌。
2. 将认证主体映射为本地 User。
3. 生成后续路由统一使用的 RequestContext。
4. 提供把看板事件交给实时广播器的事件出口。
工作空间角色不在这里判断，由服务层按资源逐一授权。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
from uuid import UUID, uuid4

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard_api.core.security import AuthenticatedPrincipal, parse_authorization_header
from teamboard_api.db.session import get_db
from teamboard_api.models.user import User
from teamboard_api.services.events import BackgroundEventSink, DiscardEventSink, EventSink
from teamboard_api.services.workspaces import normalize_email

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """请求上下文。"""

    # 当前请求用户 ID。
    user_id: UUID
    # 认证主体原始信息（来自 JWT）。
    principal: AuthenticatedPrincipal


def _build_display_name(principal: AuthenticatedPrincipal) -> str:
    """构造用户展示名。"""
    if principal.display_name:
        candidate = principal.display_name.strip()
    elif principal.email:
        candidate = principal.email.split("@")[0]
    else:
        candidate = f"user-{principal.subject[:8]}"
    return candidate[:128] or "user"


def _normalize_external_subject(subject: str) -> str:
    """标准化 external_subject，超长时取摘要。"""
    normalized = subject.strip() or "anonymous"
    if len(normalized) <= 256:
        return normalized
    return f"hash:{hashlib.sha256(normalized.encode('utf-8')).hexdigest()}"


def _fallback_email(email: str | None, *, subject: str) -> str:
    """构造可落库的邮箱，令牌未携带邮箱时使用本地占位地址。"""
    if email:
        normalized_email = normalize_email(email)
        if len(normalized_email) <= 256:
            return normalized_email
    digest = hashlib.sha256(subject.encode("utf-8")).hexdigest()[:32]
    return f"user-{digest}@local.invalid"


def ensure_user(db: Session, principal: AuthenticatedPrincipal) -> User:
    """确保认证主体在本地存在对应用户记录（调用方负责提交）。"""
    subject = _normalize_external_subject(principal.subject)
    # 先按外部身份(认证提供方 + 主体标识)查找。
    user = db.execute(
        select(User).where(User.auth_provider == principal.provider).where(User.external_subject == subject)
    ).scalar_one_or_none()
    now = datetime.now(timezone.utc)

    if user is None:
        email = _fallback_email(principal.email, subject=subject)
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user is not None:
            # 同邮箱的历史用户绑定到新的外部身份。
            user.auth_provider = principal.provider
            user.external_subject = subject
        else:
            user = User(
                id=uuid4(),
                email=email,
                display_name=_build_display_name(principal),
                auth_provider=principal.provider,
                external_subject=subject,
            )
            db.add(user)
    elif principal.email:
        # 允许用户资料随外部身份系统变更自动刷新。
        normalized_email = normalize_email(principal.email)
        if len(normalized_email) <= 256 and user.email != normalized_email:
            user.email = normalized_email

    user.display_name = _build_display_name(principal)
    avatar = principal.claims.get("picture")
    if isinstance(avatar, str) and avatar:
        user.avatar_url = avatar[:512]
    user.last_login_at = now
    db.flush()
    return user


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedPrincipal:
    """提取并解析当前请求认证主体。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    return parse_authorization_header(authorization)


def get_request_context(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> RequestContext:
    """完成认证并落库本地用户。"""
    user = ensure_user(db, principal)
    db.commit()
    return RequestContext(user_id=user.id, principal=principal)


def get_event_sink(request: Request, background_tasks: BackgroundTasks) -> EventSink:
    """返回本次请求的事件出口；未挂载实时通道时丢弃事件。"""
    broadcaster = getattr(request.app.state, "broadcaster", None)
    if broadcaster is None:
        return DiscardEventSink()
    return BackgroundEventSink(background_tasks, broadcaster)
