"""Pruebas del debounce de búsquedas.

Tests for search debouncing.
"""

import asyncio

from padron.debounce import Debouncer, ScheduledTask


def test_rapid_schedules_run_only_the_last():
    """Español: ediciones rápidas producen una sola evaluación, la última.

    English: rapid edits produce exactly one evaluation, for the last query.
    """
    evaluated = []

    async def run():
        debouncer = Debouncer()
        handles = []
        for query in ["a", "as", "ash", "asha"]:
            async def evaluate(query=query):
                evaluated.append(query)

            handles.append(debouncer.schedule(0.01, evaluate, label=query))
            await asyncio.sleep(0)
        await handles[-1].wait()
        return handles

    handles = asyncio.run(run())

    assert evaluated == ["asha"]
    assert all(handle.cancelled for handle in handles[:-1])
    assert handles[-1].started


def test_cancelled_task_never_runs():
    evaluated = []

    async def run():
        async def evaluate():
            evaluated.append("ran")

        task = ScheduledTask(0.01, evaluate)
        task.cancel()
        task.cancel()
        await task.wait()
        await asyncio.sleep(0.02)
        return task

    task = asyncio.run(run())

    assert evaluated == []
    assert task.cancelled
    assert not task.started
    assert task.done()


def test_pending_clears_after_cancel():
    async def run():
        async def evaluate():
            return None

        debouncer = Debouncer()
        debouncer.schedule(1, evaluate)
        pending_before = debouncer.pending
        debouncer.cancel()
        return pending_before, debouncer.pending

    before, after = asyncio.run(run())

    assert before is not None
    assert after is None
