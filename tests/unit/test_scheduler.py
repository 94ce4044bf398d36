"""
Unit tests for the sync scheduler

Tests verify:
- Cron expression parsing
- Interval and cron job registration
- Job management (list, remove)
- Scheduler lifecycle (start, stop)
- sync_job_wrapper end to end against in-memory stores

All tests use a mocked BlockingScheduler to avoid actual scheduling.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from docsync.config import ConnectionConfig
from docsync.scheduler import SyncScheduler, parse_cron_expression, sync_job_wrapper
from docsync.store import CollectionRef, InMemoryDocumentStore


def job_func():
    pass


# ============================================================================
# Test cron parsing
# ============================================================================

class TestParseCronExpression:
    """Test cron expression parsing"""

    def test_valid_expression(self):
        assert isinstance(parse_cron_expression("0 */6 * * *"), CronTrigger)

    @pytest.mark.parametrize("expression", ["", "* * *", "0 0 * * * *"])
    def test_wrong_field_count(self, expression):
        with pytest.raises(ValueError):
            parse_cron_expression(expression)


# ============================================================================
# Test job registration
# ============================================================================

class TestSyncScheduler:
    """Test job registration and lifecycle"""

    def test_creates_blocking_scheduler(self):
        with patch('docsync.scheduler.scheduler.BlockingScheduler') as mock_cls:
            scheduler = SyncScheduler()

        mock_cls.assert_called_once()
        assert scheduler.jobs == []

    def test_add_interval_job(self):
        backend = MagicMock()
        scheduler = SyncScheduler(scheduler=backend)

        scheduler.add_interval_job(job_func, 60, "sync", source_db="a")

        kwargs = backend.add_job.call_args.kwargs
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["id"] == "sync"
        assert kwargs["kwargs"] == {"source_db": "a"}
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert len(scheduler.jobs) == 1

    @pytest.mark.parametrize("interval", [0, -5])
    def test_invalid_interval(self, interval):
        with pytest.raises(ValueError):
            SyncScheduler(scheduler=MagicMock()).add_interval_job(job_func, interval, "sync")

    def test_add_cron_job(self):
        backend = MagicMock()
        scheduler = SyncScheduler(scheduler=backend)

        scheduler.add_cron_job(job_func, "*/30 * * * *", "sync")

        assert isinstance(backend.add_job.call_args.kwargs["trigger"], CronTrigger)

    def test_replacing_job_keeps_one_entry(self):
        backend = MagicMock()
        backend.add_job.side_effect = lambda *a, **kw: MagicMock(id=kw["id"])
        scheduler = SyncScheduler(scheduler=backend)

        scheduler.add_interval_job(job_func, 60, "sync")
        scheduler.add_interval_job(job_func, 120, "sync")

        assert len(scheduler.jobs) == 1

    def test_remove_job(self):
        backend = MagicMock()
        backend.add_job.side_effect = lambda *a, **kw: MagicMock(id=kw["id"])
        scheduler = SyncScheduler(scheduler=backend)
        scheduler.add_interval_job(job_func, 60, "sync")

        scheduler.remove_job("sync")

        backend.remove_job.assert_called_once_with("sync")
        assert scheduler.jobs == []

    def test_start_handles_keyboard_interrupt(self):
        backend = MagicMock()
        backend.start.side_effect = KeyboardInterrupt
        backend.running = True

        SyncScheduler(scheduler=backend).start()

        backend.shutdown.assert_called_once()

    def test_stop_when_not_running(self):
        backend = MagicMock()
        backend.running = False

        SyncScheduler(scheduler=backend).stop()

        backend.shutdown.assert_not_called()

    def test_list_jobs(self):
        backend = MagicMock()
        job = MagicMock(id="sync", trigger="interval[0:01:00]")
        job.name = "job_func"
        job.next_run_time = None
        backend.get_jobs.return_value = [job]

        jobs = SyncScheduler(scheduler=backend).list_jobs()

        assert jobs == [{
            "id": "sync",
            "name": "job_func",
            "next_run_time": None,
            "trigger": "interval[0:01:00]",
        }]


# ============================================================================
# Test sync_job_wrapper
# ============================================================================

class TestSyncJobWrapper:
    """Test the scheduled job body"""

    def test_syncs_and_writes_report(self, tmp_path, source_store, target_store, fast_settings):
        stores = {"source": source_store, "target": target_store}

        report = sync_job_wrapper(
            ConnectionConfig(host="src"),
            ConnectionConfig(host="dst"),
            "shop",
            "shop_copy",
            str(tmp_path),
            settings=fast_settings,
            store_factory=lambda config, role, settings: stores[role],
        )

        assert report["status"] == "PASS"
        assert target_store.count(CollectionRef("shop_copy", "users")) == 3
        saved = list(tmp_path.glob("sync_*.json"))
        assert len(saved) == 1
        assert json.loads(saved[0].read_text())["status"] == "PASS"

    def test_omit_collections(self, tmp_path, source_store, target_store, fast_settings):
        source_store.add_collection("shop", "orders", [{"_key": "1"}])
        stores = {"source": source_store, "target": target_store}

        report = sync_job_wrapper(
            ConnectionConfig(),
            ConnectionConfig(port=5433),
            "shop",
            "shop_copy",
            str(tmp_path),
            omit_collections=["users"],
            settings=fast_settings,
            store_factory=lambda config, role, settings: stores[role],
        )

        assert [c["collection"] for c in report["collections"]] == ["orders"]

    def test_missing_source_database(self, tmp_path):
        stores = {
            "source": InMemoryDocumentStore(role="source"),
            "target": InMemoryDocumentStore(role="target"),
        }

        with pytest.raises(LookupError):
            sync_job_wrapper(
                ConnectionConfig(),
                ConnectionConfig(),
                "missing",
                "copy",
                str(tmp_path),
                store_factory=lambda config, role, settings: stores[role],
            )
