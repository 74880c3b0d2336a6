from uuid import uuid4

import pytest
from sqlalchemy import select

from teamboard_api.errors import Conflict, Forbidden, NotFound, ValidationFailed
from teamboard_api.models.audit import AuditLog
from teamboard_api.models.enums import BoardEventName, WorkspaceRole
from teamboard_api.models.project import Board, Project
from teamboard_api.models.task import Task
from teamboard_api.models.workspace import Workspace, WorkspaceMembership
from teamboard_api.services import boards as board_service
from teamboard_api.services import tasks as task_service
from teamboard_api.services import workspaces as workspace_service


def _add_task(db, world, events, column_id="todo"):
    return task_service.create_task(
        db,
        actor_id=world.member.id,
        board_id=world.board.id,
        column_id=column_id,
        title="task",
        events=events,
    )


def test_workspace_creator_is_admin(db_session, world):
    data = workspace_service.get_workspace(db_session, actor_id=world.admin.id, workspace_id=world.workspace.id)
    assert data.role == WorkspaceRole.ADMIN
    assert data.created_by == world.admin.id

    members = workspace_service.list_members(db_session, actor_id=world.viewer.id, workspace_id=world.workspace.id)
    creator = next(item for item in members if item.user_id == world.admin.id)
    assert creator.is_creator
    assert {item.role for item in members} == {"ADMIN", "MEMBER", "VIEWER"}


def test_list_workspaces_only_returns_memberships(db_session, world):
    assert [item.id for item in workspace_service.list_workspaces(db_session, actor_id=world.member.id)] == [
        world.workspace.id
    ]
    assert workspace_service.list_workspaces(db_session, actor_id=world.outsider.id) == []


def test_invite_member_by_email(db_session, world):
    invited = workspace_service.invite_member(
        db_session,
        actor_id=world.admin.id,
        workspace_id=world.workspace.id,
        email="  DAVE@example.com ",
        role=WorkspaceRole.VIEWER,
    )
    assert invited.user_id == world.outsider.id
    assert invited.role == WorkspaceRole.VIEWER

    with pytest.raises(Conflict):
        workspace_service.invite_member(
            db_session, actor_id=world.admin.id, workspace_id=world.workspace.id, email="dave@example.com"
        )


def test_invite_unknown_user_is_not_found(db_session, world):
    with pytest.raises(NotFound):
        workspace_service.invite_member(
            db_session, actor_id=world.admin.id, workspace_id=world.workspace.id, email="nobody@example.com"
        )


def test_member_management_requires_admin(db_session, world):
    with pytest.raises(Forbidden):
        workspace_service.invite_member(
            db_session, actor_id=world.member.id, workspace_id=world.workspace.id, email="dave@example.com"
        )
    with pytest.raises(Forbidden):
        workspace_service.remove_member(
            db_session, actor_id=world.member.id, workspace_id=world.workspace.id, user_id=world.viewer.id
        )


def test_creator_cannot_be_removed_or_demoted(db_session, world):
    with pytest.raises(ValidationFailed):
        workspace_service.remove_member(
            db_session, actor_id=world.admin.id, workspace_id=world.workspace.id, user_id=world.admin.id
        )
    with pytest.raises(ValidationFailed):
        workspace_service.update_member_role(
            db_session,
            actor_id=world.admin.id,
            workspace_id=world.workspace.id,
            user_id=world.admin.id,
            role=WorkspaceRole.MEMBER,
        )


def test_role_change_and_removal(db_session, world, events):
    promoted = workspace_service.update_member_role(
        db_session,
        actor_id=world.admin.id,
        workspace_id=world.workspace.id,
        user_id=world.viewer.id,
        role=WorkspaceRole.MEMBER,
    )
    assert promoted.role == WorkspaceRole.MEMBER
    _add_task(db_session, world, events)

    workspace_service.remove_member(
        db_session, actor_id=world.admin.id, workspace_id=world.workspace.id, user_id=world.viewer.id
    )
    with pytest.raises(Forbidden):
        task_service.get_tasks_for_board(db_session, actor_id=world.viewer.id, board_id=world.board.id)


def test_only_creator_deletes_workspace_and_it_cascades(db_session, world, events, make_user):
    other_admin = make_user("erin@example.com")
    db_session.add(
        WorkspaceMembership(workspace_id=world.workspace.id, user_id=other_admin.id, role=WorkspaceRole.ADMIN)
    )
    db_session.commit()
    _add_task(db_session, world, events)

    with pytest.raises(Forbidden):
        workspace_service.delete_workspace(db_session, actor_id=other_admin.id, workspace_id=world.workspace.id)

    workspace_id = world.workspace.id
    workspace_service.delete_workspace(db_session, actor_id=world.admin.id, workspace_id=workspace_id)

    assert db_session.get(Workspace, workspace_id) is None
    assert db_session.execute(select(Project)).scalars().all() == []
    assert db_session.execute(select(Board)).scalars().all() == []
    assert db_session.execute(select(Task)).scalars().all() == []
    assert (
        db_session.execute(select(WorkspaceMembership).where(WorkspaceMembership.workspace_id == workspace_id))
        .scalars()
        .all()
        == []
    )


def test_create_project_adds_default_board(db_session, world):
    project, board = board_service.create_project(
        db_session, actor_id=world.member.id, workspace_id=world.workspace.id, name="Roadmap"
    )
    assert board.project_id == project.id
    assert board.column_ids() == ["todo", "in-progress", "done"]

    boards = board_service.list_boards(db_session, actor_id=world.viewer.id, project_id=project.id)
    assert [item.id for item in boards] == [board.id]


def test_viewer_cannot_create_project(db_session, world):
    with pytest.raises(Forbidden):
        board_service.create_project(db_session, actor_id=world.viewer.id, workspace_id=world.workspace.id, name="X")


def test_project_creator_may_delete_own_project(db_session, world):
    project, _ = board_service.create_project(
        db_session, actor_id=world.member.id, workspace_id=world.workspace.id, name="Side"
    )
    with pytest.raises(Forbidden):
        board_service.delete_project(db_session, actor_id=world.viewer.id, project_id=project.id)

    board_service.delete_project(db_session, actor_id=world.member.id, project_id=project.id)
    with pytest.raises(NotFound):
        board_service.get_project(db_session, actor_id=world.member.id, project_id=project.id)


def test_rename_board_publishes_board_updated(db_session, world, events):
    data = board_service.update_board(
        db_session, actor_id=world.member.id, board_id=world.board.id, name="Sprint 2", events=events
    )
    assert data.name == "Sprint 2"
    assert events.names == [BoardEventName.BOARD_UPDATED]
    assert events.events[0].payload["name"] == "Sprint 2"


def test_duplicate_column_ids_are_rejected():
    with pytest.raises(ValidationFailed):
        board_service.normalize_columns([{"id": "a", "title": "A"}, {"id": "a", "title": "B"}])


def test_normalize_columns_assigns_positions():
    columns = board_service.normalize_columns([{"id": "b", "title": "B"}, {"id": "a", "title": "A"}])
    assert columns == [
        {"id": "b", "title": "B", "position": 0},
        {"id": "a", "title": "A", "position": 1},
    ]


def test_update_columns_requires_admin(db_session, world, events):
    with pytest.raises(Forbidden):
        board_service.update_board_columns(
            db_session,
            actor_id=world.member.id,
            board_id=world.board.id,
            columns=[{"id": "todo", "title": "To Do"}],
            events=events,
        )


def test_update_columns_refuses_to_drop_occupied_column(db_session, world, events):
    _add_task(db_session, world, events, column_id="doing")
    events.clear()

    with pytest.raises(Conflict):
        board_service.update_board_columns(
            db_session,
            actor_id=world.admin.id,
            board_id=world.board.id,
            columns=[{"id": "todo", "title": "To Do"}, {"id": "done", "title": "Done"}],
            events=events,
        )
    assert events.events == []

    data = board_service.update_board_columns(
        db_session,
        actor_id=world.admin.id,
        board_id=world.board.id,
        columns=[
            {"id": "doing", "title": "Doing"},
            {"id": "todo", "title": "Backlog"},
            {"id": "review", "title": "Review"},
        ],
        events=events,
    )
    assert [column.id for column in data.columns] == ["doing", "todo", "review"]
    assert events.names == [BoardEventName.BOARD_UPDATED]


def test_delete_column(db_session, world, events):
    _add_task(db_session, world, events, column_id="doing")
    events.clear()

    with pytest.raises(Conflict):
        board_service.delete_column(
            db_session, actor_id=world.admin.id, board_id=world.board.id, column_id="doing", events=events
        )
    with pytest.raises(ValidationFailed):
        board_service.delete_column(
            db_session, actor_id=world.admin.id, board_id=world.board.id, column_id="archive", events=events
        )

    data = board_service.delete_column(
        db_session, actor_id=world.admin.id, board_id=world.board.id, column_id="done", events=events
    )
    assert [(column.id, column.position) for column in data.columns] == [("todo", 0), ("doing", 1)]
    assert events.names == [BoardEventName.BOARD_UPDATED]


def test_delete_board_requires_admin_and_removes_tasks(db_session, world, events):
    _add_task(db_session, world, events)

    with pytest.raises(Forbidden):
        board_service.delete_board(db_session, actor_id=world.member.id, board_id=world.board.id)

    board_service.delete_board(db_session, actor_id=world.admin.id, board_id=world.board.id)
    assert db_session.execute(select(Task)).scalars().all() == []
    with pytest.raises(NotFound):
        board_service.get_board(db_session, actor_id=world.admin.id, board_id=uuid4())


def test_mutations_are_audited(db_session, world):
    actions = set(db_session.execute(select(AuditLog.action)).scalars().all())
    assert {"workspace.create", "project.create", "board.create"} <= actions
