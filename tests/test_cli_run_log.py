from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


class TestCrawlCommandWritesLog(unittest.TestCase):
    def test_crawl_creates_run_log_on_config_error(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        with tempfile.TemporaryDirectory() as td:
            log_path = Path(td) / "out" / "run.log"
            missing_cfg = Path(td) / "missing_config.yaml"

            env = dict(os.environ)
            env["MISSKEY_TOKEN"] = "dummy"

            existing_pp = env.get("PYTHONPATH", "")
            env["PYTHONPATH"] = (
                f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
            )

            proc = subprocess.run(
                [
                    sys.executable,
                    "-m",
                    "mk_archive",
                    "crawl",
                    "--config",
                    str(missing_cfg),
                    "--log",
                    str(log_path),
                ],
                cwd=repo_root,
                env=env,
                capture_output=True,
                text=True,
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)
            self.assertEqual(proc.stdout, "")
            self.assertTrue(log_path.exists())

            events: list[str] = []
            for ln in log_path.read_text(encoding="utf-8").splitlines():
                if not ln.strip():
                    continue
                obj = json.loads(ln)
                self.assertEqual(obj.get("kind"), "log")
                events.append(obj["event"])

            self.assertIn("crawl_command_started", events)
            self.assertIn("crawl_command_failed", events)


if __name__ == "__main__":
    unittest.main()
