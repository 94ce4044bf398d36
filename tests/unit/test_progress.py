"""
Unit tests for progress monitoring

Tests verify:
- Counter bookkeeping
- Rolling throughput window
- Percent complete, including empty collections
- Phase switch from scan to sync
- Monitor thread lifecycle
"""

import threading
from unittest.mock import Mock

import pytest

from docsync.progress import (
    ProgressMonitor,
    ScanProgress,
    SyncCounters,
    SyncProgress,
)


class TestSyncCounters:
    """Test shared counters"""

    def test_record_applied(self):
        counters = SyncCounters("c")
        counters.record_applied("create", 3)
        counters.record_applied("update", 2)
        counters.record_applied("delete", 1)

        assert counters.applied() == SyncProgress(created=3, updated=2, deleted=1)

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            SyncCounters().record_applied("upsert", 1)

    def test_concurrent_increments(self):
        """Test no increments are lost across threads"""
        counters = SyncCounters()

        def work():
            for _ in range(1000):
                counters.record_scanned()
                counters.record_applied("create", 1)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counters.scanned == 8000
        assert counters.created == 8000


class TestProgressMonitorSampling:
    """Test samples taken directly, without the background thread"""

    def test_throughput_over_window(self):
        """Test rate is the window total over the time it spans"""
        counters = SyncCounters("c")
        monitor = ProgressMonitor("c", counters, total_records=1000, interval_ms=500, window=3)

        for delta in (100, 200, 300):
            counters.record_scanned(delta)
            progress = monitor.sample()

        # 600 records over 3 samples of 0.5s
        assert progress.records_per_second == pytest.approx(400.0)
        assert progress.records_processed == 600
        assert progress.percent_complete == pytest.approx(60.0)

    def test_window_drops_old_deltas(self):
        counters = SyncCounters("c")
        monitor = ProgressMonitor("c", counters, total_records=0, interval_ms=1000, window=2)

        for delta in (1000, 10, 10):
            counters.record_scanned(delta)
            progress = monitor.sample()

        assert progress.records_per_second == pytest.approx(10.0)

    def test_empty_collection_is_complete(self):
        """Test zero total records reports 100 percent"""
        monitor = ProgressMonitor("c", SyncCounters("c"), total_records=0)

        assert monitor.sample().percent_complete == 100.0

    def test_percent_is_capped(self):
        """Test records added during the scan never push past 100 percent"""
        counters = SyncCounters("c")
        counters.record_scanned(15)
        monitor = ProgressMonitor("c", counters, total_records=10)

        assert monitor.sample().percent_complete == 100.0

    def test_sync_phase_reports_write_counts(self):
        counters = SyncCounters("c")
        callback = Mock()
        monitor = ProgressMonitor("c", counters, total_records=5, callback=callback)

        assert isinstance(monitor.sample(), ScanProgress)

        monitor.enter_sync_phase()
        counters.record_applied("delete", 4)
        progress = monitor.sample()

        assert progress == SyncProgress(created=0, updated=0, deleted=4)
        callback.assert_called_with("c", progress)


class TestProgressMonitorLifecycle:
    """Test the background sampling thread"""

    def test_periodic_samples(self):
        samples = []
        got_three = threading.Event()

        def callback(collection, progress):
            samples.append(progress)
            if len(samples) >= 3:
                got_three.set()

        monitor = ProgressMonitor("c", SyncCounters("c"), 10, callback=callback, interval_ms=5)
        monitor.start()
        try:
            assert got_three.wait(timeout=5)
        finally:
            monitor.stop(final_sample=False)

    def test_stop_returns_final_sample(self):
        counters = SyncCounters("c")
        counters.record_scanned(7)
        monitor = ProgressMonitor("c", counters, 7, interval_ms=10_000).start()

        final = monitor.stop()

        assert final.records_processed == 7
        assert final.percent_complete == 100.0

    def test_stop_without_final_sample(self):
        callback = Mock()
        monitor = ProgressMonitor("c", SyncCounters("c"), 1, callback=callback, interval_ms=10_000)
        monitor.start()

        assert monitor.stop(final_sample=False) is None
        callback.assert_not_called()

    def test_double_start_rejected(self):
        monitor = ProgressMonitor("c", SyncCounters("c"), 1, interval_ms=10_000).start()
        try:
            with pytest.raises(RuntimeError):
                monitor.start()
        finally:
            monitor.stop(final_sample=False)

    def test_failing_callback_does_not_stop_monitor(self):
        """Test a raising callback is logged and sampling continues"""
        calls = []
        second_call = threading.Event()

        def callback(collection, progress):
            calls.append(progress)
            if len(calls) >= 2:
                second_call.set()
            raise RuntimeError("terminal gone")

        monitor = ProgressMonitor("c", SyncCounters("c"), 1, callback=callback, interval_ms=5)
        monitor.start()
        try:
            assert second_call.wait(timeout=5)
        finally:
            monitor.stop(final_sample=False)

    def test_context_manager(self):
        callback = Mock()

        with ProgressMonitor("c", SyncCounters("c"), 1, callback=callback, interval_ms=10_000):
            pass

        callback.assert_called_once()
