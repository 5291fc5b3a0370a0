"""
Tests for batch scoring of request files.
"""

import io
import json
import os
import tempfile
import unittest
import zipfile
from datetime import datetime

from trustscore_batch_processor import (
    BatchResult,
    BatchStats,
    ProcessingError,
    TrustScoreBatchProcessor,
)


def encode(payload):
    return json.dumps(payload).encode("utf-8")


GOOD_REQUEST = {
    "attributes": {
        "monthly_income": {"value": 250000, "source_type": "sms_parsed"},
        "utility_payment_rate": {"value": 0.95, "source_type": "utility_sms"},
    },
    "aux_trust_score": 82,
}

DECLINED_REQUEST = {
    "attributes": {},
}


class TestBatchProcessor(unittest.TestCase):
    """Test batch processing and error grouping."""

    def setUp(self):
        """Set up test fixtures."""
        self.processor = TrustScoreBatchProcessor()

    def test_process_batch(self):
        files = [
            ("good.json", encode(GOOD_REQUEST)),
            ("declined.json", encode(DECLINED_REQUEST)),
        ]
        batch = self.processor.process_batch(files)

        self.assertEqual(batch.stats.total_files, 2)
        self.assertEqual(batch.stats.successful, 2)
        self.assertEqual(batch.stats.approved, 1)
        self.assertEqual(batch.stats.declined, 1)
        self.assertEqual(batch.results[0].request_ref, "good")
        self.assertEqual(batch.stats.max_score, batch.results[0].final_score)
        self.assertGreater(batch.stats.average_certainty, 0)
        self.assertEqual(batch.stats.success_rate, 100.0)

    def test_errors_grouped_by_type(self):
        files = [
            ("broken.json", b"{not json"),
            ("empty.json", encode({"note": "no data"})),
            ("list.json", encode([1, 2, 3])),
            ("good.json", encode(GOOD_REQUEST)),
        ]
        with self.assertLogs("trustscore_batch_processor", level="ERROR"):
            batch = self.processor.process_batch(files)

        self.assertEqual(batch.stats.successful, 1)
        self.assertEqual(batch.stats.failed, 3)
        self.assertEqual(batch.error_summary, {
            "JSON_PARSE_ERROR": 1,
            "INVALID_REQUEST_STRUCTURE": 2,
        })
        self.assertEqual(batch.errors[0].file_name, "broken.json")

    def test_progress_callback(self):
        calls = []
        self.processor.process_batch(
            [("a.json", encode(GOOD_REQUEST)), ("b.json", encode(GOOD_REQUEST))],
            progress_callback=lambda current, total, message: calls.append((current, total))
        )
        self.assertEqual(calls, [(1, 2), (2, 2)])

    def test_empty_batch(self):
        batch = self.processor.process_batch([])
        self.assertEqual(batch.stats.min_score, 0.0)
        self.assertEqual(batch.stats.average_score, 0.0)
        self.assertEqual(batch.stats.success_rate, 0.0)

    def test_latin1_content(self):
        payload = dict(GOOD_REQUEST, declared_info={"full_name": "Zoé Koné"})
        content = json.dumps(payload, ensure_ascii=False).encode("latin-1")
        batch = self.processor.process_batch([("accent.json", content)])
        self.assertEqual(batch.stats.successful, 1)

    def test_extract_zip(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("requests/one.json", json.dumps(GOOD_REQUEST))
            zf.writestr("requests/readme.txt", "ignored")
            zf.writestr("requests/", "")
        files = self.processor._extract_zip(buffer.getvalue())
        self.assertEqual([name for name, _ in files], ["one.json"])

    def test_load_files_from_paths(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            with open(os.path.join(temp_dir, "a.json"), "wb") as f:
                f.write(encode(GOOD_REQUEST))
            with open(os.path.join(temp_dir, "notes.txt"), "w") as f:
                f.write("ignored")
            zip_path = os.path.join(temp_dir, "bundle.zip")
            with zipfile.ZipFile(zip_path, "w") as zf:
                zf.writestr("b.json", json.dumps(DECLINED_REQUEST))

            files = self.processor.load_files_from_paths([temp_dir])

        self.assertEqual(sorted(name for name, _ in files), ["a.json", "b.json"])

    def test_results_to_dataframe(self):
        batch = self.processor.process_batch([("good.json", encode(GOOD_REQUEST))])
        df = self.processor.results_to_dataframe(batch.results)
        self.assertEqual(len(df), 1)
        self.assertEqual(df.loc[0, "Request Ref"], "good")
        self.assertEqual(df.loc[0, "Decision"], "APPROVE")
        self.assertIn("Social Capital Score", df.columns)

    def test_errors_to_dataframe(self):
        errors = [ProcessingError("x.json", "JSON_PARSE_ERROR", "Invalid JSON")]
        df = self.processor.errors_to_dataframe(errors)
        self.assertEqual(list(df.columns), ["File Name", "Error Type", "Error Message", "Timestamp"])
        self.assertEqual(df.loc[0, "Error Type"], "JSON_PARSE_ERROR")

    def test_errors_to_dataframe_empty(self):
        df = self.processor.errors_to_dataframe([])
        self.assertEqual(len(df), 0)
        self.assertEqual(list(df.columns), ["File Name", "Error Type", "Error Message", "Timestamp"])

    def test_stats_record(self):
        stats = BatchStats()
        batch = self.processor.process_batch([
            ("good.json", encode(GOOD_REQUEST)), ("declined.json", encode(DECLINED_REQUEST))
        ])
        for result in batch.results:
            stats.record(result)
        stats.record_failure()
        self.assertEqual(stats.processed, 3)
        self.assertEqual((stats.approved, stats.declined, stats.failed), (1, 1, 1))
        self.assertEqual(stats.min_score, min(r.final_score for r in batch.results))


class TestMergeResults(unittest.TestCase):
    """Test combining batch results."""

    def test_merge(self):
        first = BatchResult(
            stats=BatchStats(total_files=2, processed=2, successful=2, approved=1, declined=1,
                             total_score=100, min_score=40, max_score=60, total_certainty=1.2,
                             start_time=datetime(2024, 1, 1, 9), end_time=datetime(2024, 1, 1, 10)),
            results=[],
            errors=[],
            error_summary={"JSON_PARSE_ERROR": 1},
        )
        second = BatchResult(
            stats=BatchStats(total_files=1, processed=1, successful=1, approved=1,
                             total_score=80, min_score=80, max_score=80, total_certainty=0.9,
                             start_time=datetime(2024, 1, 1, 8), end_time=datetime(2024, 1, 1, 11)),
            results=[],
            errors=[],
            error_summary={"JSON_PARSE_ERROR": 2, "PROCESSING_ERROR": 1},
        )
        merged = BatchResult.merge_results(first, second)
        self.assertEqual(merged.stats.total_files, 3)
        self.assertEqual(merged.stats.approved, 2)
        self.assertEqual(merged.stats.min_score, 40)
        self.assertEqual(merged.stats.max_score, 80)
        self.assertAlmostEqual(merged.stats.average_score, 60.0)
        self.assertAlmostEqual(merged.stats.average_certainty, 0.7)
        self.assertEqual(merged.stats.start_time, datetime(2024, 1, 1, 8))
        self.assertEqual(merged.stats.end_time, datetime(2024, 1, 1, 11))
        self.assertEqual(merged.error_summary, {"JSON_PARSE_ERROR": 3, "PROCESSING_ERROR": 1})

    def test_merge_with_empty_batch(self):
        empty = BatchResult(stats=BatchStats(min_score=0.0), results=[], errors=[])
        scored = BatchResult(
            stats=BatchStats(total_files=1, successful=1, total_score=50, min_score=50, max_score=50),
            results=[], errors=[],
        )
        merged = BatchResult.merge_results(empty, scored)
        self.assertEqual(merged.stats.min_score, 50)
        self.assertEqual(merged.stats.max_score, 50)


if __name__ == "__main__":
    unittest.main()
