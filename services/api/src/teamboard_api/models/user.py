"""用户模型。"""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from teamboard_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """用户实体，对接外部身份系统后的本地账号。"""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("auth_provider", "external_subject", name="uk_user_external_identity"),)

    # 登录与通知主邮箱，系统内全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 前端展示名，支持按外部身份信息自动刷新。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 头像地址。
    avatar_url: Mapped[str | None] = mapped_column(String(512))
    # 外部认证提供方标识（如 dev、issuer）。
    auth_provider: Mapped[str] = mapped_column(String(64), nullable=False, default="jwt")
    # 外部身份系统中的主体 ID（sub）。
    external_subject: Mapped[str] = mapped_column(String(256), nullable=False)
    # 最近一次登录时间。
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
