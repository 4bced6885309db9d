"""
Unit tests for ResultLogger.

The text log and JSON document are the only durable output of a sweep; a
crash must never leave them unreadable or lose already recorded items.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from threshold_sweep.core.modules.models import (QualityResult, RunStatus, TranscodeOutcome,
                                                 WorkItem)
from threshold_sweep.core.modules.system.result_logger import ResultLogger, load_completed


def _ok(summary="OK", duration=1.5):
    return TranscodeOutcome(RunStatus.OK, duration_s=duration, returncode=0, summary=summary)


def _failed(error="decoder error"):
    return TranscodeOutcome(RunStatus.TRANSCODE_FAILED, duration_s=0.2, returncode=1, error=error)


class TestResultLogger(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _read_json(self, logger):
        with open(logger.json_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def test_json_valid_immediately_after_open(self):
        with ResultLogger(self.temp_dir, "run", metadata={"baseline": 0}) as logger:
            document = self._read_json(logger)
            self.assertEqual(document["results"], [])
            self.assertEqual(document["run"]["baseline"], 0)

    def test_record_writes_text_and_json(self):
        item = WorkItem("a.mp4", 0, index=1, total=1)
        with ResultLogger(self.temp_dir, "run", metadata={"baseline": 0}) as logger:
            result = logger.record(item, _ok("Events per pixel: 12"),
                                   QualityResult(RunStatus.OK, score=95.0))

            self.assertTrue(result.succeeded)
            # Both artifacts are current before close
            text = logger.log_path.read_text(encoding='utf-8')
            self.assertIn("[1/1] threshold=0 file=a.mp4 status=ok", text)
            self.assertIn("Execution time: 1.500 s", text)
            self.assertIn("Events per pixel: 12", text)
            records = self._read_json(logger)["results"]
            self.assertEqual(len(records), 1)
            self.assertEqual(records[0]["quality"], 95.0)
            self.assertEqual(records[0]["baseline"], 0)

    def test_failed_transcode_block_contains_error(self):
        item = WorkItem("a.mp4", 50, index=2, total=2)
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(item, _failed("bad header"), None)

        text = logger.log_path.read_text(encoding='utf-8')
        self.assertIn("status=TranscodeFailed", text)
        self.assertIn("bad header", text)
        record = self._read_json(logger)["results"][0]
        self.assertNotIn("quality", record)
        self.assertEqual(record["status"], "TranscodeFailed")

    def test_flush_cadence(self):
        logger = ResultLogger(self.temp_dir, "run", flush_every=3).open()
        try:
            for i in range(2):
                logger.record(WorkItem(f"f{i}.mp4", 0, i + 1, 4), _ok(), QualityResult(RunStatus.OK, score=90.0))
            self.assertEqual(self._read_json(logger)["results"], [])

            logger.record(WorkItem("f2.mp4", 0, 3, 4), _ok(), QualityResult(RunStatus.OK, score=90.0))
            self.assertEqual(len(self._read_json(logger)["results"]), 3)

            logger.record(WorkItem("f3.mp4", 0, 4, 4), _failed(), None)
            self.assertEqual(len(self._read_json(logger)["results"]), 3)
        finally:
            logger.close()

        document = self._read_json(logger)
        self.assertEqual(len(document["results"]), 4)
        self.assertIn("finished_at", document["run"])

    def test_no_temp_files_left_behind(self):
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(WorkItem("a.mp4", 0, 1, 1), _ok(), QualityResult(RunStatus.OK, score=90.0))

        self.assertEqual(sorted(p.name for p in self.temp_dir.iterdir()), ["run.json", "run.log"])

    def test_text_log_is_append_only(self):
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(WorkItem("a.mp4", 0, 1, 1), _ok("first run"), None)
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(WorkItem("a.mp4", 0, 1, 1), _ok("second run"), None)

        text = logger.log_path.read_text(encoding='utf-8')
        self.assertLess(text.index("first run"), text.index("second run"))

    def test_invalid_flush_every(self):
        with self.assertRaises(ValueError):
            ResultLogger(self.temp_dir, "run", flush_every=0)

    def test_record_requires_open(self):
        logger = ResultLogger(self.temp_dir, "run")
        with self.assertRaises(RuntimeError):
            logger.record(WorkItem("a.mp4", 0), _ok(), None)


class TestResume(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_completed_keeps_only_successes(self):
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(WorkItem("a.mp4", 0, 1, 2), _ok(), QualityResult(RunStatus.OK, score=95.0))
            logger.record(WorkItem("a.mp4", 50, 2, 2), _failed(), None)

        completed = load_completed(logger.json_path)

        self.assertEqual(list(completed), [("a.mp4", 0)])
        self.assertEqual(completed[("a.mp4", 0)]["quality"], 95.0)

    def test_load_completed_missing_or_corrupt(self):
        self.assertEqual(load_completed(self.temp_dir / "absent.json"), {})
        corrupt = self.temp_dir / "corrupt.json"
        corrupt.write_text("{\"results\": [", encoding='utf-8')
        self.assertEqual(load_completed(corrupt), {})

    def test_resumed_open_keeps_completed_records_on_disk(self):
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.record(WorkItem("a.mp4", 0, 1, 3), _failed(), None)
            logger.record(WorkItem("b.mp4", 0, 2, 3), _ok(), QualityResult(RunStatus.OK, score=91.0))
            logger.record(WorkItem("c.mp4", 0, 3, 3), _ok(), QualityResult(RunStatus.OK, score=92.0))
        completed = load_completed(logger.json_path)
        self.assertEqual(len(completed), 2)

        resumed = ResultLogger(self.temp_dir, "run", carried=completed).open()
        try:
            # Killed while re-running a.mp4: b and c must still be on disk
            records = self._read_json(resumed)["results"]
            self.assertEqual(sorted(r["file"] for r in records), ["b.mp4", "c.mp4"])
            self.assertTrue(all(r["resumed"] for r in records))

            resumed.record(WorkItem("a.mp4", 0, 1, 3), _ok(), QualityResult(RunStatus.OK, score=90.0))
            resumed.carry(completed[("b.mp4", 0)])
            self.assertEqual(len(self._read_json(resumed)["results"]), 3)
            resumed.carry(completed[("c.mp4", 0)])
        finally:
            resumed.close()

        # Carried records take their place in sweep order, without duplicates
        records = self._read_json(resumed)["results"]
        self.assertEqual([r["file"] for r in records], ["a.mp4", "b.mp4", "c.mp4"])

    def _read_json(self, logger):
        with open(logger.json_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def test_carry_marks_resumed(self):
        with ResultLogger(self.temp_dir, "run") as logger:
            logger.carry({"file": "a.mp4", "param": 0, "status": "ok", "quality": 95.0})

        record = json.loads(logger.json_path.read_text(encoding='utf-8'))["results"][0]
        self.assertTrue(record["resumed"])
        self.assertEqual(record["quality"], 95.0)


if __name__ == '__main__':
    unittest.main()
