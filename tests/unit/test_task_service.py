"""Unit tests for task_service module."""

import asyncio
from datetime import timedelta

import pytest

from grindset.core.errors import (
    GrindNotFoundError,
    ProblemNotFoundError,
    ProblemSourceUnavailableError,
    TaskNotFoundError,
    TaskWindowClosedError,
)
from grindset.domain.task import ProgressStatus
from grindset.services import grind_service, task_service
from tests.unit.mocks import TWO_SUM, VALID_PARENTHESES, CountingProblemSource


@pytest.fixture
async def grind(patched_db, frozen_now, users):
    """A 3-day, 90-unit grind for alice and bob that started yesterday."""
    return await grind_service.create_grind(
        duration=3,
        budget=90,
        participants=[users["alice"].id, users["bob"].id],
        start_date=frozen_now - timedelta(days=1),
    )


async def _task_on(grind, user, day_index):
    tasks = await task_service.list_tasks_for_participant(user_id=user.id, grind_id=grind.id)
    return tasks[day_index]


@pytest.mark.unit
class TestSharedProblem:
    """The first read of a day assigns one problem to every participant."""

    async def test_sibling_sees_problem_it_never_fetched(self, grind, users, fake_problem_source):
        alice_day1 = await _task_on(grind, users["alice"], 0)

        assigned = await task_service.get_task(task_id=alice_day1.id, assign_problem=True)
        assert assigned.problem_title == "Two Sum"

        bob_day1 = await _task_on(grind, users["bob"], 0)
        assert bob_day1.problem_title == "Two Sum"

        bob_read = await task_service.get_task(task_id=bob_day1.id, assign_problem=True)
        assert bob_read.problem_title == "Two Sum"
        assert bob_read.problem_url == "https://leetcode.com/problems/two-sum/description"
        assert bob_read.problem_difficulty == "Easy"
        assert bob_read.problem_topic_tags == ["Array", "Hash Table"]
        assert fake_problem_source.calls == 1

    async def test_other_days_are_untouched(self, grind, users, fake_problem_source):
        alice_day1 = await _task_on(grind, users["alice"], 0)
        await task_service.assign_problem_if_needed(task=alice_day1)

        tasks = await task_service.list_tasks_for_grind(grind_id=grind.id)
        assigned_days = {t.day_key for t in tasks if t.has_problem}
        assert assigned_days == {"2024-03-09"}

    async def test_each_day_gets_its_own_fetch(self, grind, users, fake_problem_source):
        day1 = await task_service.assign_problem_if_needed(task=await _task_on(grind, users["alice"], 0))
        day2 = await task_service.assign_problem_if_needed(task=await _task_on(grind, users["bob"], 1))

        assert day1.problem_title == "Two Sum"
        assert day2.problem_title == "Valid Parentheses"
        assert fake_problem_source.calls == 2

    async def test_concurrent_first_reads_converge(self, grind, users):
        source = CountingProblemSource(TWO_SUM, VALID_PARENTHESES, delay=0.01)

        results = await asyncio.gather(
            task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id, problem_source=source),
            task_service.get_today_task(user_id=users["bob"].id, grind_id=grind.id, problem_source=source),
        )

        assert {r.problem_title for r in results} == {"Two Sum"}
        assert source.calls == 1

    async def test_day_locks_are_released(self, grind, users):
        source = CountingProblemSource(TWO_SUM, delay=0.01)

        await asyncio.gather(
            task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id, problem_source=source),
            task_service.get_today_task(user_id=users["bob"].id, grind_id=grind.id, problem_source=source),
        )

        assert len(task_service._assignment_locks) == 0

    async def test_stale_reader_adopts_existing_payload(self, grind, users):
        bob_stale = await _task_on(grind, users["bob"], 1)
        await task_service.assign_problem_if_needed(
            task=await _task_on(grind, users["alice"], 1), problem_source=CountingProblemSource(TWO_SUM)
        )

        late_source = CountingProblemSource(VALID_PARENTHESES)
        result = await task_service.assign_problem_if_needed(task=bob_stale, problem_source=late_source)

        assert result.problem_title == "Two Sum"
        assert late_source.calls == 0

    async def test_broadcast_never_overwrites_assigned_tasks(self, grind, users, patched_db):
        alice_today = await _task_on(grind, users["alice"], 1)
        await task_service.assign_problem_if_needed(task=alice_today, problem_source=CountingProblemSource(TWO_SUM))

        await patched_db.update_records(
            "tasks",
            filter_query=f'grind_id = "{grind.id}" && day_key = "2024-03-10" && problem_title = null',
            data={"problem_title": "Valid Parentheses"},
        )

        tasks = await task_service.list_tasks_for_grind(grind_id=grind.id)
        assert {t.problem_title for t in tasks if t.day_key == "2024-03-10"} == {"Two Sum"}

    async def test_assigned_task_is_a_no_op(self, grind, users):
        task = await task_service.assign_problem_if_needed(
            task=await _task_on(grind, users["alice"], 0), problem_source=CountingProblemSource(TWO_SUM)
        )
        source = CountingProblemSource(VALID_PARENTHESES)

        again = await task_service.assign_problem_if_needed(task=task, problem_source=source)

        assert again.problem_title == "Two Sum"
        assert source.calls == 0


@pytest.mark.unit
class TestProblemSourceFailures:
    """Tests for fetch failures during assignment."""

    async def test_timeout_becomes_upstream_unavailable(self, grind, users):
        slow = CountingProblemSource(TWO_SUM, delay=1.0)

        with pytest.raises(ProblemSourceUnavailableError):
            await task_service.get_today_task(
                user_id=users["alice"].id, grind_id=grind.id, problem_source=slow, timeout=0.01
            )

        today = await _task_on(grind, users["alice"], 1)
        assert not today.has_problem

    async def test_empty_source_becomes_upstream_unavailable(self, grind, users):
        empty = CountingProblemSource(error=ProblemNotFoundError("No problems found in blind75.csv."))

        with pytest.raises(ProblemSourceUnavailableError):
            await task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id, problem_source=empty)

        today = await _task_on(grind, users["alice"], 1)
        assert not today.has_problem

    async def test_source_error_propagates(self, grind, users):
        broken = CountingProblemSource(error=ProblemSourceUnavailableError())

        with pytest.raises(ProblemSourceUnavailableError):
            await task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id, problem_source=broken)


@pytest.mark.unit
class TestTodayTask:
    """Tests for get_today_task function."""

    async def test_returns_todays_task_with_problem(self, grind, users, fake_problem_source):
        task = await task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id)

        assert task.day_key == "2024-03-10"
        assert task.problem_title == "Two Sum"

    async def test_window_is_skewed_one_hour(self, grind, users, fake_problem_source, frozen_now, monkeypatch):
        late_evening = frozen_now.replace(hour=23, minute=30)
        monkeypatch.setattr("grindset.core.clock.utc_now", lambda: late_evening)

        task = await task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id)

        assert task.day_key == "2024-03-10"

    async def test_no_task_outside_grind(self, grind, users, frozen_now, monkeypatch):
        monkeypatch.setattr("grindset.core.clock.utc_now", lambda: frozen_now + timedelta(days=5))

        with pytest.raises(TaskNotFoundError):
            await task_service.get_today_task(user_id=users["alice"].id, grind_id=grind.id)

    async def test_non_participant_has_no_task(self, grind, users):
        with pytest.raises(TaskNotFoundError):
            await task_service.get_today_task(user_id=users["carol"].id, grind_id=grind.id)


@pytest.mark.unit
class TestFinishTask:
    """Tests for finish_task and finish_today_task functions."""

    async def test_finish_today(self, grind, users, frozen_now):
        today = await _task_on(grind, users["alice"], 1)

        finished = await task_service.finish_task(task_id=today.id, code="return []", language="python")

        assert finished.completed is True
        assert finished.finished_time == frozen_now
        assert finished.code == "return []"
        assert finished.code_language == "python"

    async def test_refinish_overwrites(self, grind, users):
        today = await _task_on(grind, users["alice"], 1)
        await task_service.finish_task(task_id=today.id, code="v1", language="python")

        finished = await task_service.finish_task(task_id=today.id, code="v2", language="go")

        assert (finished.code, finished.code_language) == ("v2", "go")

    async def test_past_day_cannot_be_finished(self, grind, users):
        yesterday = await _task_on(grind, users["alice"], 0)

        with pytest.raises(TaskWindowClosedError):
            await task_service.finish_task(task_id=yesterday.id, code="late", language="python")

    async def test_missing_task(self, patched_db):
        with pytest.raises(TaskNotFoundError):
            await task_service.finish_task(task_id="12345", code="", language="python")

    async def test_finish_today_task_uses_ongoing_grind(self, grind, users, fake_problem_source):
        finished = await task_service.finish_today_task(user_id=users["bob"].id, code="ok", language="rust")

        assert finished.grind_id == grind.id
        assert finished.day_key == "2024-03-10"
        assert finished.completed is True
        assert finished.problem_title == "Two Sum"

    async def test_finish_today_without_grind(self, patched_db, frozen_now, users):
        with pytest.raises(GrindNotFoundError):
            await task_service.finish_today_task(user_id=users["carol"].id, code="ok", language="rust")


@pytest.mark.unit
class TestProgress:
    """Tests for get_progress function."""

    async def test_statuses_by_day(self, grind, users):
        today = await _task_on(grind, users["alice"], 1)
        await task_service.finish_task(task_id=today.id, code="x", language="python")

        progress = await task_service.get_progress(user_id=users["alice"].id, grind_id=grind.id)

        assert [p.status for p in progress] == [
            ProgressStatus.MISSED,
            ProgressStatus.COMPLETED,
            ProgressStatus.PENDING,
        ]
