from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from mk_archive.config import config_sha256, load_config, resolve_runtime_secrets
from mk_archive.errors import ConfigError


_VALID_YAML = """\
instance:
  host: https://misskey.example/
  token_env: MISSKEY_TOKEN
  timeout_seconds: 15

crawl:
  channel_id: 9abcdef
  since_id: ""
  until_id: 9zzz
  page_size: 60

throttle:
  delay_ms: 2500
"""


class TestConfig(unittest.TestCase):
    def _write(self, td: str, text: str) -> Path:
        path = Path(td) / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

            self.assertEqual(cfg.instance.host, "misskey.example")
            self.assertEqual(cfg.instance.timeout_seconds, 15)
            self.assertEqual(cfg.crawl.channel_id, "9abcdef")
            self.assertIsNone(cfg.crawl.since_id)
            self.assertEqual(cfg.crawl.until_id, "9zzz")
            self.assertEqual(cfg.throttle.delay_ms, 2500)

    def test_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, "instance:\n  host: misskey.example\n"))

            self.assertEqual(cfg.instance.token_env, "MISSKEY_TOKEN")
            self.assertEqual(cfg.crawl.page_size, 60)
            self.assertIsNone(cfg.crawl.channel_id)
            self.assertEqual(cfg.throttle.delay_ms, 10000)

    def test_load_config_rejects_bad_values(self) -> None:
        for bad in (
            _VALID_YAML.replace("delay_ms: 2500", "delay_ms: -1"),
            _VALID_YAML.replace("page_size: 60", "page_size: 0"),
            _VALID_YAML.replace("host: https://misskey.example/", "host: misskey.example/api"),
            _VALID_YAML + "extra: true\n",
            "crawl: {}\n",
            "- just\n- a list\n",
            "instance: [unclosed\n",
        ):
            with tempfile.TemporaryDirectory() as td:
                with self.assertRaises(ConfigError, msg=bad):
                    load_config(self._write(td, bad))

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError):
            load_config("/nonexistent/config.yaml")

    def test_resolve_runtime_secrets_requires_env(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(self._write(td, _VALID_YAML))

            with self.assertRaises(ConfigError) as ctx:
                resolve_runtime_secrets(cfg, environ={})
            self.assertIn("MISSKEY_TOKEN", str(ctx.exception))
            self.assertIsInstance(ctx.exception.__cause__, ValueError)
            with self.assertRaises(ConfigError):
                resolve_runtime_secrets(cfg, environ={"MISSKEY_TOKEN": "  "})

            secrets = resolve_runtime_secrets(cfg, environ={"MISSKEY_TOKEN": " secret "})
            self.assertEqual(secrets.token.get_secret_value(), "secret")
            self.assertNotIn("secret", repr(secrets))

    def test_config_hash_is_stable(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = load_config(self._write(td, _VALID_YAML))
            b = load_config(self._write(td, _VALID_YAML))
            c = load_config(self._write(td, _VALID_YAML.replace("2500", "2501")))

        self.assertEqual(config_sha256(a), config_sha256(b))
        self.assertNotEqual(config_sha256(a), config_sha256(c))


if __name__ == "__main__":
    unittest.main()
