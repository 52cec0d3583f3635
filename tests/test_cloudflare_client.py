"""
Tests for the provider client against a mocked requests session.
"""

import unittest
from unittest.mock import MagicMock, patch

import requests

from dnsboard.cloudflare.client import CloudflareClient
from dnsboard.errors import (
    NotFound,
    OutcomeUnknown,
    ProviderError,
    ProviderUnreachable,
    RateLimited,
    ValidationError,
)


def _response(status=200, body=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def _ok(result, result_info=None):
    body = {"success": True, "errors": [], "messages": [], "result": result}
    if result_info is not None:
        body["result_info"] = result_info
    return _response(200, body)


class TestCloudflareClient(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.client = CloudflareClient("secret-token", base_url="https://api.test/client/v4/", session=self.session)

    def _sent(self, index=0):
        args, kwargs = self.session.request.call_args_list[index]
        return args[0], args[1], kwargs

    def test_bearer_token_header(self):
        self.session.request.return_value = _ok({"id": "z1"})

        self.client.get_zone("z1")

        method, url, kwargs = self._sent()
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://api.test/client/v4/zones/z1")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret-token")
        self.assertEqual(kwargs["timeout"], 30.0)

    def test_owner_email_does_not_change_auth(self):
        client = CloudflareClient("scoped-token", email="owner@example.com", session=self.session)
        self.session.request.return_value = _ok([], {"page": 1, "total_pages": 1})

        client.list_zones()

        headers = self._sent()[2]["headers"]
        self.assertEqual(headers["Authorization"], "Bearer scoped-token")
        self.assertNotIn("X-Auth-Key", headers)
        self.assertNotIn("X-Auth-Email", headers)

    def test_verify_explicit_token_uses_bearer(self):
        self.session.request.return_value = _ok({"id": "tok", "status": "active"})

        result = self.client.verify_credential("other-token")

        self.assertEqual(result["status"], "active")
        self.assertEqual(self._sent()[2]["headers"]["Authorization"], "Bearer other-token")

    def test_list_zones_encodes_params(self):
        info = {"page": 2, "per_page": 20, "total_count": 41, "total_pages": 3}
        self.session.request.return_value = _ok([{"id": "z1"}], info)

        zones, result_info = self.client.list_zones({"page": 2, "per_page": 20, "name": None, "paused": False})

        self.assertEqual(zones, [{"id": "z1"}])
        self.assertEqual(result_info, info)
        self.assertEqual(self._sent()[2]["params"], {"page": "2", "per_page": "20", "paused": "false"})

    def test_list_all_records_walks_pages(self):
        self.session.request.side_effect = [
            _ok([{"id": "r1"}, {"id": "r2"}], {"page": 1, "total_pages": 2}),
            _ok([{"id": "r3"}], {"page": 2, "total_pages": 2}),
        ]

        records = self.client.list_all_records("z1")

        self.assertEqual([r["id"] for r in records], ["r1", "r2", "r3"])
        self.assertEqual(self._sent(1)[2]["params"], {"page": "2", "per_page": "100"})

    def test_success_false_raises_provider_error(self):
        body = {"success": False, "errors": [{"code": 9109, "message": "Invalid access token"}], "result": None}
        self.session.request.return_value = _response(200, body)

        with self.assertRaises(ProviderError) as ctx:
            self.client.list_zones()

        self.assertEqual(ctx.exception.provider_code, 9109)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, "Invalid access token")

    def test_provider_status_is_kept(self):
        body = {"success": False, "errors": [{"code": 81057, "message": "Record already exists."}]}
        self.session.request.return_value = _response(400, body)

        with self.assertRaises(ProviderError) as ctx:
            self.client.create_record("z1", {"type": "A", "name": "www.example.com", "content": "192.0.2.1"})

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details["zone_id"], "z1")

    def test_not_found_status(self):
        body = {"success": False, "errors": [{"code": 81044, "message": "Record does not exist."}]}
        self.session.request.return_value = _response(404, body)

        with self.assertRaises(NotFound) as ctx:
            self.client.get_record("z1", "missing")

        self.assertEqual(ctx.exception.details["record_id"], "missing")

    def test_not_found_code_with_bad_request_status(self):
        body = {"success": False, "errors": [{"code": 7003, "message": "Could not route"}]}
        self.session.request.return_value = _response(400, body)

        with self.assertRaises(NotFound):
            self.client.get_zone("nope")

    def test_non_json_body(self):
        self.session.request.return_value = _response(502, ValueError("no json"))

        with self.assertRaises(ProviderError) as ctx:
            self.client.list_zones()
        self.assertEqual(ctx.exception.status_code, 502)

    def test_provider_throttling(self):
        self.session.request.return_value = _response(429, {"success": False}, headers={"Retry-After": "7"})

        with self.assertRaises(RateLimited) as ctx:
            self.client.list_records("z1")

        self.assertEqual(ctx.exception.code, "PROVIDER_RATE_LIMITED")
        self.assertEqual(ctx.exception.retry_after, 7)

    def test_read_connection_error_is_unreachable(self):
        self.session.request.side_effect = requests.ConnectionError("reset")

        with self.assertRaises(ProviderUnreachable) as ctx:
            self.client.list_zones()

        self.assertNotIsInstance(ctx.exception, OutcomeUnknown)
        self.assertEqual(ctx.exception.status_code, 503)

    def test_write_timeout_is_outcome_unknown(self):
        self.session.request.side_effect = requests.ReadTimeout("slow")

        with self.assertRaises(OutcomeUnknown) as ctx:
            self.client.create_record("z1", {"type": "A", "name": "www", "content": "192.0.2.1"}, zone_name="example.com")

        self.assertEqual(ctx.exception.details["outcome"], "unknown")
        self.assertEqual(ctx.exception.status_code, 504)
        self.assertEqual(self.session.request.call_count, 1)

    def test_write_connect_timeout_is_unreachable(self):
        self.session.request.side_effect = requests.ConnectTimeout("no route")

        with self.assertRaises(ProviderUnreachable) as ctx:
            self.client.delete_record("z1", "r1")

        self.assertNotIsInstance(ctx.exception, OutcomeUnknown)

    def test_create_expands_relative_name(self):
        self.session.request.return_value = _ok({"id": "r9"})

        self.client.create_record("z1", {"type": "A", "name": "www", "content": "192.0.2.1"}, zone_name="example.com")

        method, url, kwargs = self._sent()
        self.assertEqual(method, "POST")
        self.assertTrue(url.endswith("/zones/z1/dns_records"))
        self.assertEqual(kwargs["json"]["name"], "www.example.com")
        self.assertEqual(kwargs["json"]["ttl"], 1)

    def test_prepared_payload_is_sent_as_is(self):
        self.session.request.return_value = _ok({"id": "r9"})
        payload = {"type": "A", "name": "www.example.com", "content": "192.0.2.1", "ttl": 1, "proxied": False}

        with patch("dnsboard.cloudflare.client.normalize_record") as normalize:
            self.client.create_record("z1", payload)

        normalize.assert_not_called()
        self.assertEqual(self._sent()[2]["json"], payload)

    def test_invalid_create_sends_nothing(self):
        with self.assertRaises(ValidationError):
            self.client.create_record("z1", {"type": "MX", "name": "@", "content": "mail.example.com"}, zone_name="example.com")

        self.session.request.assert_not_called()

    def test_update_uses_patch(self):
        self.session.request.return_value = _ok({"id": "r1", "content": "192.0.2.9"})

        self.client.update_record("z1", "r1", {"content": "192.0.2.9"})

        method, url, kwargs = self._sent()
        self.assertEqual(method, "PATCH")
        self.assertEqual(kwargs["json"], {"content": "192.0.2.9"})

    def test_delete_returns_id(self):
        self.session.request.return_value = _ok(None)

        self.assertEqual(self.client.delete_record("z1", "r1"), {"id": "r1"})


if __name__ == "__main__":
    unittest.main()
