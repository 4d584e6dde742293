import json
import logging
import unittest

from toolroom.logging_config import JsonFormatter, get_logger, redact


class LoggingTests(unittest.TestCase):
    def make_record(self, **extra):
        record = logging.LogRecord("toolroom.test", logging.INFO, __file__, 1, "Loan batch created", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_output_carries_extras(self):
        formatter = JsonFormatter({"level": "levelname", "message": "message"})

        output = json.loads(formatter.format(self.make_record(batch_id="abc", lines=2)))

        self.assertEqual(output["level"], "INFO")
        self.assertEqual(output["message"], "Loan batch created")
        self.assertEqual(output["batch_id"], "abc")
        self.assertEqual(output["lines"], 2)

    def test_sensitive_extras_are_redacted(self):
        formatter = JsonFormatter()

        output = json.loads(formatter.format(self.make_record(password="hunter2", payload={"qr_token": "x"})))

        self.assertEqual(output["password"], "[REDACTED]")
        self.assertEqual(output["payload"], {"qr_token": "[REDACTED]"})

    def test_redact_walks_lists(self):
        self.assertEqual(redact([{"secret": 1}, {"name": "a"}]), [{"secret": "[REDACTED]"}, {"name": "a"}])

    def test_loggers_live_under_application_namespace(self):
        self.assertEqual(get_logger("loans").name, "toolroom.loans")
        self.assertEqual(get_logger("toolroom.api").name, "toolroom.api")
