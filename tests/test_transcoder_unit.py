# User value: This test pins the ffmpeg contract so transcodes, tool errors and hangs are reported distinctly.
import asyncio
import os
import tempfile
import time
import unittest
from unittest.mock import patch

import config
from fake_ffmpeg import read_argv, write_fake_ffmpeg
from schemas.transcode import TranscodeJob
from services.transcoder import (
    TranscodeFailedError,
    TranscodeSpawnError,
    TranscodeTimeoutError,
    build_ffmpeg_args,
    run_transcode,
)


class TranscoderUnitTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.input_path = os.path.join(self.tmp.name, "job1.mp4")
        self.output_path = os.path.join(self.tmp.name, "1M.job1.mp4")
        with open(self.input_path, "wb") as fh:
            fh.write(b"media")
        self.job = TranscodeJob(
            job_id="job1",
            input_path=self.input_path,
            output_path=self.output_path,
            bitrate="1M",
            original_filename="clip.mp4",
        )

    def test_build_ffmpeg_args_matches_tool_contract(self):
        with patch.object(config, "FFMPEG_BIN", "ffmpeg"), patch.object(config, "AUDIO_BITRATE", "44K"):
            args = build_ffmpeg_args(self.job)
        self.assertEqual(
            args,
            ["ffmpeg", "-y", "-threads", "0", "-i", self.input_path, "-b:v", "1M", "-b:a", "44K", self.output_path],
        )

    def test_build_ffmpeg_args_overrides(self):
        args = build_ffmpeg_args(self.job, ffmpeg_bin="/opt/ffmpeg", audio_bitrate="96K")
        self.assertEqual(args[0], "/opt/ffmpeg")
        self.assertEqual(args[args.index("-b:a") + 1], "96K")

    def test_run_transcode_success(self):
        ffmpeg, argv_log = write_fake_ffmpeg(self.tmp.name, "copy")

        result = asyncio.run(run_transcode(self.job, ffmpeg_bin=ffmpeg, timeout_sec=30))

        self.assertEqual(result.returncode, 0)
        self.assertGreaterEqual(result.duration_ms, 0.0)
        with open(self.output_path, "rb") as fh:
            self.assertEqual(fh.read(), b"TRANSCODED:media")
        self.assertEqual(read_argv(argv_log), build_ffmpeg_args(self.job, ffmpeg_bin=ffmpeg)[1:])

    # User value: forwards ffmpeg's own diagnostics so users can see why a file was rejected.
    def test_run_transcode_nonzero_exit_carries_stderr(self):
        ffmpeg, _ = write_fake_ffmpeg(self.tmp.name, "fail")

        with self.assertRaises(TranscodeFailedError) as ctx:
            asyncio.run(run_transcode(self.job, ffmpeg_bin=ffmpeg, timeout_sec=30))

        self.assertEqual(ctx.exception.returncode, 1)
        self.assertIn("Invalid data found when processing input", ctx.exception.stderr)
        self.assertTrue(ctx.exception.message.startswith("Error in `ffmpeg`: "))

    def test_run_transcode_missing_binary_is_spawn_error(self):
        missing = os.path.join(self.tmp.name, "no-such-ffmpeg")

        with self.assertRaises(TranscodeSpawnError) as ctx:
            asyncio.run(run_transcode(self.job, ffmpeg_bin=missing, timeout_sec=30))
        self.assertIn("Error in `ffmpeg`", ctx.exception.message)

    def test_run_transcode_timeout_terminates_child(self):
        ffmpeg, _ = write_fake_ffmpeg(self.tmp.name, "hang")

        started = time.monotonic()
        with self.assertRaises(TranscodeTimeoutError) as ctx:
            asyncio.run(run_transcode(self.job, ffmpeg_bin=ffmpeg, timeout_sec=0.5))

        self.assertLess(time.monotonic() - started, 10)
        self.assertEqual(ctx.exception.timeout_sec, 0.5)
        self.assertIn("timed out after 0.5 seconds", ctx.exception.message)
        self.assertFalse(os.path.exists(self.output_path))


if __name__ == "__main__":
    unittest.main()
