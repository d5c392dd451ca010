"""Unit tests for the provider error taxonomy."""
from __future__ import annotations

import unittest

from polycorrect.errors import (
    ApiConnectionError,
    ApiError,
    ApiResponseError,
    ApiTimeoutError,
    CONNECTION_TIMEOUT,
    DEEPSEEK_TIMEOUT,
    DEFAULT_TIMEOUT,
)


class TestApiErrors(unittest.TestCase):
    """Display strings and structure of ApiError subclasses."""

    def test_display_strings(self):
        """Each kind renders as '<Kind> error: <message>'."""
        self.assertEqual(str(ApiConnectionError("refused")), "Connection error: refused")
        self.assertEqual(str(ApiResponseError("API key is empty")), "Response error: API key is empty")
        self.assertEqual(str(ApiTimeoutError("slow")), "Timeout error: slow")

    def test_timeout_after_carries_duration(self):
        """Timeout errors built from a duration mention it and keep it."""
        error = ApiTimeoutError.after(25)
        self.assertEqual(error.message, "Request timed out after 25s")
        self.assertEqual(error.timeout, 25)
        self.assertEqual(str(error), "Timeout error: Request timed out after 25s")

    def test_response_from_status(self):
        """HTTP failures keep status code and body."""
        error = ApiResponseError.from_status(401, "Unauthorized", '{"error": "bad key"}')
        self.assertEqual(error.status_code, 401)
        self.assertEqual(error.body, '{"error": "bad key"}')
        self.assertEqual(error.message, 'HTTP 401 Unauthorized: {"error": "bad key"}')

    def test_all_kinds_are_api_errors(self):
        """Callers can catch the whole taxonomy with ApiError."""
        for error in (ApiConnectionError("x"), ApiTimeoutError("x"), ApiResponseError("x")):
            self.assertIsInstance(error, ApiError)
            self.assertIsInstance(error, Exception)

    def test_equality_by_kind_and_message(self):
        """Errors compare equal when kind and message match."""
        self.assertEqual(ApiResponseError("Model is empty"), ApiResponseError("Model is empty"))
        self.assertNotEqual(ApiResponseError("x"), ApiConnectionError("x"))
        self.assertEqual(len({ApiResponseError("a"), ApiResponseError("a")}), 1)

    def test_timeout_constants(self):
        """Timeout constants keep their relative order."""
        self.assertEqual((DEFAULT_TIMEOUT, CONNECTION_TIMEOUT, DEEPSEEK_TIMEOUT), (25, 8, 35))
        self.assertGreater(DEFAULT_TIMEOUT, CONNECTION_TIMEOUT)
        self.assertGreater(DEEPSEEK_TIMEOUT, DEFAULT_TIMEOUT)


if __name__ == "__main__":
    unittest.main()
