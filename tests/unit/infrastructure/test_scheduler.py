# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq scheduler."""

from unittest.mock import MagicMock, patch

import pytest

from src.infrastructure.background.scheduler import (
    DramatiqScheduler,
    execute_daily_difficulty_recompute,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)
from src.utils.datetime import trailing_period


@pytest.mark.unit
class TestDramatiqScheduler:
    """Tests for DramatiqScheduler."""

    @pytest.mark.parametrize("expression", ["* * *", "61 * * * *", ""])
    def test_invalid_cron_expression(self, expression):
        """Test that malformed cron expressions are refused."""
        scheduler = DramatiqScheduler()

        with pytest.raises(ValueError):
            scheduler.add_cron_task("bad", "daily_difficulty_metrics_job", expression)

        assert scheduler.list_tasks() == []

    def test_add_and_remove_task(self):
        """Test task bookkeeping before the scheduler starts."""
        scheduler = DramatiqScheduler()

        task = scheduler.add_cron_task("Nightly", "daily_difficulty_metrics_job", "30 2 * * *")

        assert scheduler.get_task(task.id) is task
        assert scheduler.remove_task(task.id) is True
        assert scheduler.remove_task(task.id) is False

    @pytest.mark.asyncio
    async def test_execute_task_sends_actor_message(self):
        """Test that a due task enqueues its actor with its kwargs."""
        scheduler = DramatiqScheduler()
        task = scheduler.add_cron_task(
            "Nightly", "recompute_all_difficulty_metrics", "30 2 * * *",
            kwargs={"period_start": "2025-03-01", "period_end": "2025-03-31"},
        )
        actor = MagicMock()

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        actor.send.assert_called_once_with(period_start="2025-03-01", period_end="2025-03-31")
        assert task.run_count == 1
        assert task.last_run is not None
        assert task.error_count == 0

    @pytest.mark.asyncio
    async def test_execute_task_with_unknown_actor(self):
        """Test that a missing actor counts as an error."""
        scheduler = DramatiqScheduler()
        task = scheduler.add_cron_task("Ghost", "no_such_actor", "0 * * * *")

        with patch.object(scheduler, "_get_actor", return_value=None):
            await scheduler._execute_task(task.id)

        assert task.error_count == 1
        assert task.run_count == 0

    @pytest.mark.asyncio
    async def test_execute_task_send_failure(self):
        """Test that a failed enqueue is counted and does not raise."""
        scheduler = DramatiqScheduler()
        task = scheduler.add_cron_task("Nightly", "daily_difficulty_metrics_job", "0 * * * *")
        actor = MagicMock()
        actor.send.side_effect = ConnectionError("redis down")

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        assert task.error_count == 1
        assert scheduler.get_stats()["total_errors"] == 1

    @pytest.mark.asyncio
    async def test_started_scheduler_registers_jobs(self):
        """Test that tasks added while running become APScheduler jobs."""
        scheduler = DramatiqScheduler()
        await scheduler.start()
        try:
            task = scheduler.add_cron_task("Nightly", "daily_difficulty_metrics_job", "30 2 * * *")

            assert scheduler.is_running
            assert scheduler._scheduler.get_job(task.id) is not None
        finally:
            await scheduler.stop()

        assert not scheduler.is_running


@pytest.mark.unit
class TestSchedulerLifecycle:
    """Tests for the scheduler singleton and periodic jobs."""

    @pytest.mark.asyncio
    async def test_start_scheduler_registers_daily_job(self, monkeypatch):
        """Test that the nightly difficulty job uses the configured cron."""
        monkeypatch.setenv("WORKER_DIFFICULTY_CRON", "15 3 * * *")

        scheduler = await start_scheduler()
        try:
            tasks = scheduler.list_tasks()
            assert len(tasks) == 1
            assert tasks[0].actor_name == "daily_difficulty_metrics_job"
            assert tasks[0].cron_expression == "15 3 * * *"
            assert get_scheduler() is scheduler
        finally:
            await stop_scheduler()

    @pytest.mark.asyncio
    async def test_daily_recompute_queues_trailing_period(self):
        """Test that the nightly job queues the default trailing period."""
        start, end = trailing_period(30)

        with patch(
            "src.infrastructure.background.tasks.recompute_all_difficulty_metrics"
        ) as mock_actor:
            result = await execute_daily_difficulty_recompute()

        mock_actor.send.assert_called_once_with(
            period_start=start.isoformat(), period_end=end.isoformat()
        )
        assert result["status"] == "queued"
