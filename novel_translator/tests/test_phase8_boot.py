from __future__ import annotations

import logging
import os
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from novel_translator.app.main import create_app


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class Phase8BootTest(unittest.TestCase):
    def _run_boot_cycle(self, capture_handler: _CaptureHandler) -> dict:
        root_logger = logging.getLogger()
        with mock.patch.dict(os.environ, {"TRANSLATION_MODE": "mock", "GEMINI_API_KEY": "k"}):
            app = create_app()
        root_logger.addHandler(capture_handler)

        try:
            with TestClient(app) as client:
                self.assertEqual(client.get("/").status_code, 200)
                response = client.get("/health")
                self.assertEqual(response.status_code, 200)
                payload = response.json()
        finally:
            root_logger.removeHandler(capture_handler)

        return payload

    def test_boot_health_and_lifecycle_logging(self) -> None:
        capture_handler = _CaptureHandler()

        first_payload = self._run_boot_cycle(capture_handler)
        second_payload = self._run_boot_cycle(capture_handler)

        for payload in (first_payload, second_payload):
            self.assertEqual(payload["status"], "ok")
            self.assertIn("uptime_seconds", payload)
            self.assertEqual(payload["checks"]["translation_mode"], "mock")
            self.assertTrue(payload["checks"]["gemini_key_configured"])
            self.assertEqual(payload["checks"]["panel_phase"], "closed")
            self.assertFalse(payload["checks"]["document_loaded"])
        self.assertNotEqual(first_payload["started_at"], second_payload["started_at"])

        startup_records = [r for r in capture_handler.records if r.getMessage() == "service_startup"]
        shutdown_records = [r for r in capture_handler.records if r.getMessage() == "service_shutdown"]
        config_records = [
            r for r in capture_handler.records if r.getMessage() == "service_config_loaded"
        ]

        self.assertEqual(len(startup_records), 2)
        self.assertEqual(len(shutdown_records), 2)
        for record in startup_records + shutdown_records:
            self.assertTrue(hasattr(record, "service_version"))
            self.assertTrue(hasattr(record, "service_name"))
        for record in config_records:
            self.assertNotIn("gemini_api_key", record.config)


if __name__ == "__main__":
    unittest.main()
