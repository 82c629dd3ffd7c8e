import io
import json
import logging
import unittest

from utils import metrics
from utils.json_logging import JsonFormatter
from utils.request_id import bind_request_id, get_request_id, normalize_request_id, unbind_request_id
from utils.stage_logging import log_stage


class RequestIdUnitTests(unittest.TestCase):
    def test_normalize_keeps_well_formed_ids(self):
        self.assertEqual(normalize_request_id("abcd-1234"), "abcd-1234")
        self.assertTrue(normalize_request_id("bad id!").startswith("req-"))
        self.assertTrue(normalize_request_id(None).startswith("req-"))

    def test_bind_and_unbind(self):
        request_id, token = bind_request_id("abcd-1234")
        self.assertEqual(get_request_id(), request_id)
        unbind_request_id(token)
        self.assertIsNone(get_request_id())


class StageLoggingUnitTests(unittest.TestCase):
    def test_failed_event_logs_at_error(self):
        with self.assertLogs("api.stage", level="ERROR") as logs:
            log_stage(job_id="job1", stage="FFMPEG_RUN", event="failed", bitrate="1M", error="boom")
        payload = json.loads(logs.records[0].getMessage().split(" ", 1)[1])
        self.assertEqual(payload["event"], "FAILED")
        self.assertEqual(payload["bitrate"], "1M")
        self.assertEqual(payload["error"], "boom")

    def test_extra_fields_are_normalized(self):
        with self.assertLogs("api.stage", level="INFO") as logs:
            log_stage(job_id="job1", stage="INPUT_STORED", event="COMPLETED", input_size_bytes=10, skipped=None, obj=object)
        payload = json.loads(logs.records[0].getMessage().split(" ", 1)[1])
        self.assertEqual(payload["input_size_bytes"], 10)
        self.assertNotIn("skipped", payload)
        self.assertIsInstance(payload["obj"], str)

    def test_unknown_event_is_rejected(self):
        for event in ("DONE", "SKIPPED"):
            with self.assertRaises(ValueError):
                log_stage(job_id="job1", stage="X", event=event)


class JsonLoggingUnitTests(unittest.TestCase):
    def test_formatter_emits_one_json_object(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter("svc"))
        log = logging.getLogger("test.json_logging")
        log.propagate = False
        log.addHandler(handler)
        self.addCleanup(log.removeHandler, handler)

        _, token = bind_request_id("req-test-0001")
        try:
            log.warning("hello %s", "world", extra={"job_id": "job1"})
        finally:
            unbind_request_id(token)

        payload = json.loads(stream.getvalue().strip())
        self.assertEqual(payload["message"], "hello world")
        self.assertEqual(payload["level"], "WARNING")
        self.assertEqual(payload["service"], "svc")
        self.assertEqual(payload["request_id"], "req-test-0001")
        self.assertEqual(payload["job_id"], "job1")


class MetricsUnitTests(unittest.TestCase):
    def setUp(self):
        metrics.reset()
        self.addCleanup(metrics.reset)

    def test_counters_are_keyed_by_sorted_labels(self):
        metrics.incr("uploads_total", bitrate="1M", result="ok")
        metrics.incr("uploads_total", result="ok", bitrate="1M")
        snap = metrics.snapshot()
        self.assertEqual(snap["counters"]["uploads_total{bitrate=1M,result=ok}"], 2)

    def test_latency_observations(self):
        metrics.observe_ms("latency_ms", 10)
        metrics.observe_ms("latency_ms", 30)
        stats = metrics.snapshot()["latencies"]["latency_ms"]
        self.assertEqual(stats["count"], 2)
        self.assertEqual(stats["sum_ms"], 40.0)
        self.assertEqual(stats["max_ms"], 30.0)


if __name__ == "__main__":
    unittest.main()
