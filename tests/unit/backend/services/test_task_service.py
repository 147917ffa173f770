"""
Unit Tests for Task Service.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from accounting.backend.core.exceptions import InvalidStatusTransitionError, NotFoundError
from accounting.backend.models.enums import TaskStatus, UserRole
from accounting.backend.services.tasks import TaskService, can_transition, validate_transition


class TestTransitions:
    def test_same_status_is_always_allowed(self):
        for status in TaskStatus:
            assert can_transition(status, status)

    def test_forward_flow(self):
        assert can_transition(TaskStatus.BACKLOG, TaskStatus.TODO)
        assert can_transition(TaskStatus.TODO, TaskStatus.IN_PROGRESS)
        assert can_transition(TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW)
        assert can_transition(TaskStatus.IN_REVIEW, TaskStatus.DONE)

    def test_done_can_only_be_reopened(self):
        assert can_transition(TaskStatus.DONE, TaskStatus.IN_PROGRESS)
        assert not can_transition(TaskStatus.DONE, TaskStatus.TODO)
        assert not can_transition(TaskStatus.DONE, TaskStatus.CANCELLED)

    def test_skipping_review_is_rejected(self):
        with pytest.raises(InvalidStatusTransitionError):
            validate_transition(TaskStatus.TODO, TaskStatus.DONE)


class TestBulkUpdateStatus:
    @pytest.fixture
    def service(self):
        return TaskService(AsyncMock())

    async def test_updates_every_task(self, service, make_user):
        # Arrange
        tasks = [MagicMock(id="t1", status=TaskStatus.TODO), MagicMock(id="t2", status=TaskStatus.BACKLOG)]

        with patch.object(service.tenant, "get_effective_company_id", AsyncMock(return_value="company-1")), \
                patch.object(service.repo, "list_by_ids", AsyncMock(return_value=tasks)):
            # Act
            count = await service.bulk_update_status(
                make_user(UserRole.COMPANY_OWNER), ["t1", "t2"], TaskStatus.CANCELLED,
            )

        # Assert
        assert count == 2
        assert all(task.status == TaskStatus.CANCELLED for task in tasks)

    async def test_one_invalid_transition_changes_nothing(self, service, make_user):
        tasks = [MagicMock(id="t1", status=TaskStatus.TODO), MagicMock(id="t2", status=TaskStatus.BACKLOG)]

        with patch.object(service.tenant, "get_effective_company_id", AsyncMock(return_value="company-1")), \
                patch.object(service.repo, "list_by_ids", AsyncMock(return_value=tasks)):
            with pytest.raises(InvalidStatusTransitionError):
                await service.bulk_update_status(
                    make_user(UserRole.COMPANY_OWNER), ["t1", "t2"], TaskStatus.IN_PROGRESS,
                )

        assert tasks[0].status == TaskStatus.TODO
        assert tasks[1].status == TaskStatus.BACKLOG

    async def test_unknown_task_is_not_found(self, service, make_user):
        with patch.object(service.tenant, "get_effective_company_id", AsyncMock(return_value="company-1")), \
                patch.object(service.repo, "list_by_ids", AsyncMock(return_value=[])):
            with pytest.raises(NotFoundError) as exc_info:
                await service.bulk_update_status(make_user(UserRole.COMPANY_OWNER), ["t9"], TaskStatus.TODO)

        assert exc_info.value.details == {"ids": ["t9"]}


class TestRemove:
    async def test_subtasks_are_deactivated_with_parent(self, make_user):
        # Arrange
        service = TaskService(AsyncMock())
        parent = MagicMock(id="parent", is_active=True)
        child = MagicMock(id="child", is_active=True)
        grandchild = MagicMock(id="grandchild", is_active=True)
        children = {"parent": [child], "child": [grandchild], "grandchild": []}

        with patch.object(service, "find_one", AsyncMock(return_value=parent)), \
                patch.object(service.repo, "list_children", AsyncMock(side_effect=lambda task_id: children[task_id])):
            # Act
            await service.remove(make_user(UserRole.COMPANY_OWNER), "parent")

        # Assert
        assert not parent.is_active
        assert not child.is_active
        assert not grandchild.is_active
