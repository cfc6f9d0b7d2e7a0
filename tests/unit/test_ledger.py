"""Tests for the execution history ledger."""
import threading

import pytest

from flowrunner.workflow_runtime import ExecutionLedger


class TestExecutionLedger:
    """Test bounded per-workflow history."""

    def test_recent_is_newest_first(self):
        ledger = ExecutionLedger(capacity=10)
        for i in range(8):
            ledger.append("wf1", f"run-{i}")

        assert ledger.recent("wf1", 5) == ["run-7", "run-6", "run-5", "run-4", "run-3"]
        assert ledger.latest("wf1") == "run-7"
        assert ledger.count("wf1") == 8

    def test_reads_are_copies(self):
        ledger = ExecutionLedger()
        ledger.append("wf1", {"status": "success", "steps": ["start"]})

        run = ledger.latest("wf1")
        run["status"] = "error"
        run["steps"].append("extra")

        assert ledger.latest("wf1") == {"status": "success", "steps": ["start"]}
        assert ledger.recent("wf1")[0] is not ledger.recent("wf1")[0]

    def test_capacity_drops_oldest(self):
        ledger = ExecutionLedger(capacity=3)
        for i in range(5):
            ledger.append("wf1", i)

        assert ledger.recent("wf1", 10) == [4, 3, 2]
        assert ledger.count("wf1") == 5

    def test_workflows_are_isolated(self):
        ledger = ExecutionLedger()
        ledger.append("wf1", "a")
        ledger.append("wf2", "b")

        assert ledger.recent("wf1") == ["a"]
        assert ledger.recent("wf2") == ["b"]

    def test_unknown_workflow(self):
        ledger = ExecutionLedger()

        assert ledger.recent("nope") == []
        assert ledger.latest("nope") is None
        assert ledger.count("nope") == 0

    def test_clear(self):
        ledger = ExecutionLedger()
        ledger.append("wf1", "a")
        ledger.clear("wf1")

        assert ledger.recent("wf1") == []
        assert ledger.count("wf1") == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ExecutionLedger(capacity=0)

    def test_concurrent_appends(self):
        ledger = ExecutionLedger(capacity=1000)

        def worker(n):
            for i in range(100):
                ledger.append("wf1", (n, i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert ledger.count("wf1") == 800
        assert len(ledger.recent("wf1", 1000)) == 800
