import threading
import unittest
from unittest.mock import patch

from admin.create_fernet_key import generate_fernet_key
from gateway.crypto import SecretBox
from gateway.params import Config
from gateway.rotator import (
    Credential,
    CredentialPool,
    EncryptedCredential,
    TokenBucket,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTokenBucket(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_starts_full_and_drains(self):
        bucket = TokenBucket(rate=1, burst=3, clock=self.clock)
        self.assertEqual([bucket.allow() for _ in range(4)], [True, True, True, False])

    def test_refills_at_rate(self):
        bucket = TokenBucket(rate=2, burst=2, clock=self.clock)
        bucket.allow()
        bucket.allow()
        self.assertFalse(bucket.allow())

        self.clock.advance(0.5)  # one token at 2/s
        self.assertTrue(bucket.allow())
        self.assertFalse(bucket.allow())

    def test_refill_capped_at_burst(self):
        bucket = TokenBucket(rate=10, burst=2, clock=self.clock)
        self.clock.advance(60)
        self.assertEqual(bucket.tokens(), 2)

    def test_zero_burst_never_allows(self):
        bucket = TokenBucket(rate=1, burst=0, clock=self.clock)
        self.clock.advance(10)
        self.assertFalse(bucket.allow())


class TestCredentialPool(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def make_pool(self, values, rate=0.0, burst=1) -> CredentialPool:
        return CredentialPool(
            Credential(v, TokenBucket(rate, burst, self.clock)) for v in values
        )

    def test_rotates_round_robin(self):
        pool = self.make_pool(["a", "b", "c"], burst=10)
        picked = [pool.acquire().value for _ in range(6)]  # type: ignore[union-attr]
        self.assertEqual(picked, ["a", "b", "c", "a", "b", "c"])

    def test_skips_exhausted_credentials(self):
        pool = self.make_pool(["a", "b"], burst=1)
        self.assertEqual(pool.acquire().value, "a")  # type: ignore[union-attr]
        self.assertEqual(pool.acquire().value, "b")  # type: ignore[union-attr]
        self.assertIsNone(pool.acquire())

    def test_resumes_after_last_granted(self):
        pool = CredentialPool(
            [
                Credential("a", TokenBucket(0, 1, self.clock)),
                Credential("b", TokenBucket(0, 5, self.clock)),
                Credential("c", TokenBucket(0, 5, self.clock)),
            ]
        )
        self.assertEqual([pool.acquire().value for _ in range(5)], ["a", "b", "c", "b", "c"])  # type: ignore[union-attr]

    def test_exhausted_pool_recovers_after_refill(self):
        pool = self.make_pool(["a"], rate=1.0, burst=1)
        self.assertIsNotNone(pool.acquire())
        self.assertIsNone(pool.acquire())
        self.clock.advance(1.0)
        self.assertIsNotNone(pool.acquire())

    def test_empty_pool(self):
        pool = CredentialPool([])
        self.assertEqual(len(pool), 0)
        self.assertIsNone(pool.acquire())

    def test_concurrent_acquire_never_exceeds_capacity(self):
        pool = self.make_pool(["a", "b", "c", "d"], burst=25)  # 100 tokens total
        grants = []
        grants_lock = threading.Lock()
        start = threading.Barrier(20)

        def worker():
            start.wait()
            for _ in range(10):
                credential = pool.acquire()
                with grants_lock:
                    grants.append(credential)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        granted = [c for c in grants if c is not None]
        self.assertEqual(len(granted), 100)
        self.assertEqual(len(grants) - len(granted), 100)
        for value in "abcd":
            self.assertEqual(sum(1 for c in granted if c.value == value), 25)

    def test_concurrent_acquire_within_capacity_all_succeed(self):
        pool = self.make_pool(["a", "b"], burst=20)
        results = []
        results_lock = threading.Lock()

        def worker():
            credential = pool.acquire()
            with results_lock:
                results.append(credential)

        threads = [threading.Thread(target=worker) for _ in range(40)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertTrue(all(c is not None for c in results))
        self.assertEqual(pool.get_status()["available_tokens"], [0, 0])

    def test_status_hides_secrets(self):
        pool = self.make_pool(["top-secret"], burst=2)
        self.assertNotIn("top-secret", repr(pool.get_status()))
        self.assertNotIn("top-secret", repr(pool.acquire()))


class TestEncryptedCredential(unittest.TestCase):
    def setUp(self):
        SecretBox.unload()
        self.addCleanup(SecretBox.unload)
        patcher = patch.object(Config, "CG_CREDENTIAL_FERNET_KEY", generate_fernet_key())
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_from_values_seals_secrets(self):
        pool = CredentialPool.from_values(["key-1"], rate=1, burst=1)
        credential = pool.acquire()
        self.assertIsInstance(credential, EncryptedCredential)
        self.assertEqual(credential.value, "key-1")  # type: ignore[union-attr]
        self.assertNotIn(b"key-1", credential._sealed)  # type: ignore[union-attr]

    def test_plain_credentials_without_key(self):
        with patch.object(Config, "CG_CREDENTIAL_FERNET_KEY", None):
            pool = CredentialPool.from_values(["key-1"], rate=1, burst=1)
        self.assertNotIsInstance(pool.acquire(), EncryptedCredential)


if __name__ == "__main__":
    unittest.main(verbosity=2)
