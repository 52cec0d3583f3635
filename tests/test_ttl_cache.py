import unittest
from unittest.mock import MagicMock

from dnsboard.cache.keys import record_list_key, record_list_prefix, zone_list_key
from dnsboard.cache.provider import CachedProvider
from dnsboard.cache.ttl import MISS, TTLCache
from tests.fakes import FakeClock, FakeCloudflare, make_record, make_zone


class TestTTLCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=60, clock=self.clock)

    def test_entry_expires_after_ttl(self):
        self.cache.put("zones?", ["a"])
        self.clock.advance(60)
        self.assertEqual(self.cache.get("zones?"), ["a"])
        self.clock.advance(0.5)
        self.assertIs(self.cache.get("zones?"), MISS)
        self.assertEqual(len(self.cache), 0)

    def test_invalidate_prefix(self):
        self.cache.put(record_list_key("z1", {"page": 1}), [1])
        self.cache.put(record_list_key("z1", {"page": 2}), [2])
        self.cache.put(record_list_key("z2", {"page": 1}), [3])

        removed = self.cache.invalidate(record_list_prefix("z1"))

        self.assertEqual(removed, 2)
        self.assertIs(self.cache.get(record_list_key("z1", {"page": 1})), MISS)
        self.assertEqual(self.cache.get(record_list_key("z2", {"page": 1})), [3])

    def test_invalidate_unknown_key_is_noop(self):
        self.assertEqual(self.cache.invalidate("nothing"), 0)

    def test_stale_put_loses_to_invalidation(self):
        key = record_list_key("z1")
        ticket = self.cache.ticket()
        self.cache.invalidate(record_list_prefix("z1"))

        self.assertFalse(self.cache.put(key, ["stale"], ticket=ticket))
        self.assertIs(self.cache.get(key), MISS)

    def test_put_after_invalidation_with_fresh_ticket(self):
        key = record_list_key("z1")
        self.cache.invalidate(record_list_prefix("z1"))
        ticket = self.cache.ticket()

        self.assertTrue(self.cache.put(key, ["fresh"], ticket=ticket))
        self.assertEqual(self.cache.get(key), ["fresh"])

    def test_unrelated_invalidation_does_not_block_put(self):
        ticket = self.cache.ticket()
        self.cache.invalidate(record_list_prefix("z2"))

        self.assertTrue(self.cache.put(record_list_key("z1"), [], ticket=ticket))

    def test_clear_blocks_earlier_tickets(self):
        ticket = self.cache.ticket()
        self.cache.put("zones?", ["a"])
        self.cache.clear()

        self.assertEqual(len(self.cache), 0)
        self.assertFalse(self.cache.put("zones?", ["b"], ticket=ticket))


class TestCacheKeys(unittest.TestCase):

    def test_params_order_does_not_matter(self):
        self.assertEqual(
            zone_list_key({"page": 1, "name": "example.com"}),
            zone_list_key({"name": "example.com", "page": 1}),
        )

    def test_empty_params_are_ignored(self):
        self.assertEqual(zone_list_key({"name": "", "status": None}), zone_list_key())

    def test_record_keys_are_scoped_by_zone(self):
        self.assertTrue(record_list_key("z1", {"type": "A"}).startswith(record_list_prefix("z1")))
        self.assertFalse(record_list_key("z10").startswith(record_list_prefix("z1")))


class TestCachedProvider(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.client = FakeCloudflare()
        self.client.add_zone(make_zone())
        self.client.add_record(make_record("r1", "www.example.com"))
        self.cache = TTLCache(ttl_seconds=60, clock=self.clock)
        self.provider = CachedProvider(self.client, self.cache)

    def test_second_read_is_a_hit(self):
        _, _, first_hit = self.provider.list_records("z1")
        records, _, second_hit = self.provider.list_records("z1")

        self.assertFalse(first_hit)
        self.assertTrue(second_hit)
        self.assertEqual([r["id"] for r in records], ["r1"])
        self.assertEqual(len(self.client.calls_to("list_records")), 1)

    def test_refresh_bypasses_cache(self):
        self.provider.list_zones()
        _, _, hit = self.provider.list_zones(refresh=True)

        self.assertFalse(hit)
        self.assertEqual(len(self.client.calls_to("list_zones")), 2)

    def test_expired_entry_goes_back_to_provider(self):
        self.provider.list_records("z1")
        self.clock.advance(61)
        _, _, hit = self.provider.list_records("z1")

        self.assertFalse(hit)
        self.assertEqual(len(self.client.calls_to("list_records")), 2)

    def test_invalidate_zone_drops_records_and_zone_lists(self):
        self.provider.list_zones()
        self.provider.list_records("z1")
        self.provider.invalidate_zone("z1")

        self.assertEqual(len(self.cache), 0)

    def test_provider_errors_are_not_cached(self):
        from dnsboard.errors import ProviderUnreachable

        self.client.failures[("list_records", "z1")] = ProviderUnreachable("down")
        with self.assertRaises(ProviderUnreachable):
            self.provider.list_records("z1")
        self.assertEqual(len(self.cache), 0)

    def test_broken_cache_degrades_to_provider(self):
        broken = MagicMock()
        broken.get.side_effect = RuntimeError("boom")
        broken.ticket.side_effect = RuntimeError("boom")
        provider = CachedProvider(self.client, broken)

        records, _, hit = provider.list_records("z1")

        self.assertFalse(hit)
        self.assertEqual(len(records), 1)
        broken.put.assert_not_called()

    def test_failed_cache_write_still_returns_data(self):
        broken = MagicMock()
        broken.get.return_value = MISS
        broken.ticket.return_value = 1
        broken.put.side_effect = RuntimeError("boom")
        provider = CachedProvider(self.client, broken)

        zones, info, hit = provider.list_zones()

        self.assertFalse(hit)
        self.assertEqual(zones[0]["id"], "z1")
        self.assertEqual(info["total_count"], 1)

    def test_failed_invalidation_is_logged_not_raised(self):
        broken = MagicMock()
        broken.invalidate.side_effect = RuntimeError("boom")
        provider = CachedProvider(self.client, broken)

        with self.assertLogs("dnsboard.cache.provider", level="ERROR"):
            provider.invalidate_zone("z1")


if __name__ == "__main__":
    unittest.main()
