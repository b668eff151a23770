import threading
import time
import unittest

from gateway.cache import CacheEntry, ResponseCache
from test_rotator import FakeClock


class TestResponseCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl=120, sweep_interval=600, clock=self.clock)

    def test_round_trip_before_ttl(self):
        self.cache.put("/transit/stops?format=json", b"{}", 200, "application/json")
        self.clock.advance(119.999)
        entry = self.cache.get("/transit/stops?format=json")
        self.assertIsNotNone(entry)
        self.assertEqual(entry.body, b"{}")  # type: ignore[union-attr]
        self.assertEqual(entry.status_code, 200)  # type: ignore[union-attr]
        self.assertEqual(entry.content_type, "application/json")  # type: ignore[union-attr]

    def test_absent_at_ttl(self):
        self.cache.put("k", b"v")
        self.clock.advance(120)
        self.assertIsNone(self.cache.get("k"))

    def test_absent_after_ttl_without_sweep(self):
        self.cache.put("k", b"v")
        self.clock.advance(500)
        self.assertIsNone(self.cache.get("k"))

    def test_missing_key(self):
        self.assertIsNone(self.cache.get("nope"))

    def test_overwrite_is_last_write_wins(self):
        self.cache.put("k", b"first")
        self.clock.advance(100)
        self.cache.put("k", b"second")
        self.clock.advance(100)  # past the first write's expiry
        self.assertEqual(self.cache.get("k").body, b"second")  # type: ignore[union-attr]

    def test_repeated_put_same_content(self):
        first = self.cache.put("k", b"same", 200, "text/plain")
        second = self.cache.put("k", b"same", 200, "text/plain")
        self.assertEqual(first, second)
        self.assertEqual(self.cache.get("k").body, b"same")  # type: ignore[union-attr]

    def test_legacy_entry_defaults_to_ok(self):
        entry = CacheEntry(body=b"raw", expires_at=0)
        self.assertEqual(entry.status_code, 200)
        self.assertIsNone(entry.content_type)

    def test_sweep_removes_only_expired(self):
        self.cache.put("old", b"1")
        self.clock.advance(60)
        self.cache.put("new", b"2")
        self.clock.advance(60)

        self.assertEqual(self.cache.sweep(), 1)
        self.assertEqual(len(self.cache), 1)
        self.assertIsNotNone(self.cache.get("new"))

    def test_sweep_counts_every_expired_entry(self):
        self.cache.put("a", b"1")
        self.cache.put("b", b"2")
        self.clock.advance(100)
        self.cache.put("c", b"3")
        self.clock.advance(30)

        self.assertEqual(self.cache.sweep(), 2)
        self.assertEqual(self.cache.sweep(), 0)
        self.assertIsNotNone(self.cache.get("c"))

    def test_clear(self):
        self.cache.put("k", b"v")
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)

    def test_concurrent_put_get(self):
        errors = []

        def worker(thread_id):
            try:
                for i in range(200):
                    key = f"key-{i % 10}"
                    self.cache.put(key, f"{thread_id}-{i}".encode())
                    entry = self.cache.get(key)
                    if entry is None or not entry.body:
                        errors.append(key)
            except Exception as e:
                errors.append(repr(e))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.cache), 10)


class TestCacheSweeper(unittest.TestCase):
    def test_background_sweep(self):
        cache = ResponseCache(ttl=0.05, sweep_interval=0.05)
        cache.put("k", b"v")
        cache.start()
        self.addCleanup(cache.stop)

        deadline = time.monotonic() + 2
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.02)
        self.assertEqual(len(cache), 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
