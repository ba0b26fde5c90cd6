from __future__ import annotations

import io
import json
import os
import subprocess
import sys
import tempfile
import unittest
from contextlib import redirect_stderr
from pathlib import Path
from unittest import mock

import httpx

from mk_archive import cli


def _run_module(args: list[str], env_overrides: dict[str, str]) -> subprocess.CompletedProcess[str]:
    repo_root = Path(__file__).resolve().parents[1]
    env = dict(os.environ)
    env.update(env_overrides)
    existing_pp = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)

    return subprocess.run(
        [sys.executable, "-m", "mk_archive", *args],
        cwd=repo_root,
        env=env,
        capture_output=True,
        text=True,
    )


class TestCLISmoke(unittest.TestCase):
    def test_users_without_ids_is_a_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("instance:\n  host: misskey.example\n", encoding="utf-8")

            proc = _run_module(["users", "--config", str(cfg_path)], {"MISSKEY_TOKEN": "dummy"})

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)
            self.assertIn("At least one user id is required", proc.stderr)

    def test_missing_token_env_is_a_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text(
                "instance:\n  host: misskey.example\n  token_env: MK_ARCHIVE_TEST_UNSET\n",
                encoding="utf-8",
            )

            proc = _run_module(
                ["crawl", "--config", str(cfg_path), "--channel-id", "ch"],
                {},
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)
            self.assertIn("MK_ARCHIVE_TEST_UNSET", proc.stderr)

    def test_crawl_with_mocked_instance(self) -> None:
        pages = [
            [
                {
                    "id": "n2",
                    "createdAt": "2024-05-01T12:00:00.000Z",
                    "user": {"id": "u1"},
                    "text": "hi",
                    "renoteCount": 0,
                    "repliesCount": 0,
                    "reactions": {":blob_cat@.:": 3},
                },
                {
                    "id": "n1",
                    "createdAt": "2024-05-01T11:00:00.000Z",
                    "user": {"id": "u2"},
                    "text": None,
                    "renoteCount": 1,
                    "repliesCount": 0,
                    "reactions": {},
                },
            ],
            [],
        ]
        bodies: list[dict[str, object]] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=pages.pop(0))

        real_client = httpx.Client

        def _client_factory(*args: object, **kwargs: object) -> httpx.Client:
            kwargs["transport"] = httpx.MockTransport(_handler)
            return real_client(*args, **kwargs)  # type: ignore[arg-type]

        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text(
                "instance:\n  host: misskey.example\ncrawl:\n  channel_id: ch\nthrottle:\n  delay_ms: 0\n",
                encoding="utf-8",
            )
            out_path = Path(td) / "notes.jsonl"
            log_path = Path(td) / "run.log"
            users_path = Path(td) / "users.txt"

            stderr = io.StringIO()
            with mock.patch.dict(os.environ, {"MISSKEY_TOKEN": "secret-token"}), mock.patch(
                "httpx.Client", side_effect=_client_factory
            ), redirect_stderr(stderr):
                code = cli.main(
                    [
                        "crawl",
                        "--config",
                        str(cfg_path),
                        "--out",
                        str(out_path),
                        "--log",
                        str(log_path),
                        "--users-out",
                        str(users_path),
                    ]
                )

            self.assertEqual(code, 0, msg=stderr.getvalue())
            self.assertIn("pages=1", stderr.getvalue())

            lines = out_path.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 1)
            self.assertEqual(json.loads(lines[0])[0]["reactions"], {":blob_cat@.:": 3})

            self.assertEqual(users_path.read_text(encoding="utf-8"), "u1\nu2\n")
            self.assertEqual(bodies[1].get("untilId"), "n1")
            self.assertEqual(bodies[0]["i"], "secret-token")

            log_text = log_path.read_text(encoding="utf-8")
            self.assertNotIn("secret-token", log_text)
            self.assertIn("proceeded by n1", log_text)

    def test_decode_failure_surfaces_raw_body_and_status(self) -> None:
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Internal Server Error")

        real_client = httpx.Client

        def _client_factory(*args: object, **kwargs: object) -> httpx.Client:
            kwargs["transport"] = httpx.MockTransport(_handler)
            return real_client(*args, **kwargs)  # type: ignore[arg-type]

        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("instance:\n  host: misskey.example\n", encoding="utf-8")
            out_path = Path(td) / "users.jsonl"

            stderr = io.StringIO()
            with mock.patch.dict(os.environ, {"MISSKEY_TOKEN": "secret-token"}), mock.patch(
                "httpx.Client", side_effect=_client_factory
            ), redirect_stderr(stderr):
                code = cli.main(
                    ["users", "--config", str(cfg_path), "--user-id", "u1", "--out", str(out_path)]
                )

            self.assertEqual(code, 3)
            err = stderr.getvalue()
            self.assertIn("status: 500", err)
            self.assertIn("raw: Internal Server Error", err)
            self.assertNotIn("secret-token", err)
            self.assertEqual(out_path.read_text(encoding="utf-8"), "")


if __name__ == "__main__":
    unittest.main()
