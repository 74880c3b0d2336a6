import os

# 测试统一使用内存 SQLite 与对称密钥，需在导入应用模块前设置。
os.environ.setdefault("TB_DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("TB_AUTH_JWT_SECRET", "board-test-secret-key-at-least-32-bytes")
os.environ.setdefault("TB_AUTH_JWT_ALGORITHMS", "HS256")

from collections.abc import Generator
from dataclasses import dataclass
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import teamboard_api.models  # noqa: F401
from teamboard_api.models.base import Base
from teamboard_api.models.enums import WorkspaceRole
from teamboard_api.models.project import Board, Project
from teamboard_api.models.user import User
from teamboard_api.models.workspace import Workspace, WorkspaceMembership
from teamboard_api.services import boards as board_service
from teamboard_api.services import workspaces as workspace_service
from teamboard_api.services.events import BoardEvent


class RecordingEventSink:
    """记录已发布事件，替代实时广播。"""

    def __init__(self) -> None:
        self.events: list[BoardEvent] = []

    def publish(self, event: BoardEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [str(event.name) for event in self.events]

    def clear(self) -> None:
        self.events.clear()


@dataclass
class BoardWorld:
    """工作空间 W：A(ADMIN)、B(MEMBER)、C(VIEWER)，外加非成员 D。"""

    workspace: Workspace
    admin: User
    member: User
    viewer: User
    outsider: User
    project: Project
    board: Board


def create_user(db: Session, *, email: str, display_name: str | None = None) -> User:
    user = User(
        id=uuid4(),
        email=email,
        display_name=display_name or email.split("@")[0],
        auth_provider="test",
        external_subject=email,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    # 实时通道在线程池中打开会话，单连接池保证各线程看到同一个内存库。
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(db_session: Session):
    def _make(email: str, display_name: str | None = None) -> User:
        user = create_user(db_session, email=email, display_name=display_name)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def world(db_session: Session) -> BoardWorld:
    admin = create_user(db_session, email="alice@example.com", display_name="Alice")
    member = create_user(db_session, email="bob@example.com", display_name="Bob")
    viewer = create_user(db_session, email="carol@example.com", display_name="Carol")
    outsider = create_user(db_session, email="dave@example.com", display_name="Dave")
    db_session.commit()

    workspace_data = workspace_service.create_workspace(db_session, actor_id=admin.id, name="W")
    db_session.add_all(
        [
            WorkspaceMembership(workspace_id=workspace_data.id, user_id=member.id, role=WorkspaceRole.MEMBER),
            WorkspaceMembership(workspace_id=workspace_data.id, user_id=viewer.id, role=WorkspaceRole.VIEWER),
        ]
    )
    db_session.commit()

    project, _ = board_service.create_project(db_session, actor_id=admin.id, workspace_id=workspace_data.id, name="P")
    board = board_service.create_board(
        db_session,
        actor_id=admin.id,
        project_id=project.id,
        name="Sprint",
        columns=[
            {"id": "todo", "title": "To Do"},
            {"id": "doing", "title": "Doing"},
            {"id": "done", "title": "Done"},
        ],
    )
    return BoardWorld(
        workspace=db_session.get(Workspace, workspace_data.id),
        admin=admin,
        member=member,
        viewer=viewer,
        outsider=outsider,
        project=project,
        board=board,
    )
