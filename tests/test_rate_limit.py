import asyncio
import unittest

from llm_proxy.rate_limit import RateLimiter, client_key_from_forwarded


class ClientKeyTests(unittest.TestCase):
    def test_second_entry_of_forwarded_list_is_used(self) -> None:
        self.assertEqual(client_key_from_forwarded("10.0.0.1, 203.0.113.7"), "203.0.113.7")

    def test_single_address_is_used_as_is(self) -> None:
        self.assertEqual(client_key_from_forwarded("203.0.113.7"), "203.0.113.7")

    def test_missing_header_falls_back_to_unknown(self) -> None:
        self.assertEqual(client_key_from_forwarded(None), "unknown")
        self.assertEqual(client_key_from_forwarded(""), "unknown")


class RateLimiterTests(unittest.TestCase):
    def test_requests_over_the_limit_are_rejected(self) -> None:
        limiter = RateLimiter(max_requests=2)

        self.assertTrue(limiter.allow("a"))
        self.assertTrue(limiter.allow("a"))
        self.assertFalse(limiter.allow("a"))
        self.assertTrue(limiter.allow("b"))
        self.assertEqual(limiter.count("a"), 3)

    def test_reset_clears_all_counters(self) -> None:
        limiter = RateLimiter(max_requests=1)
        limiter.allow("a")
        limiter.allow("a")

        limiter.reset()

        self.assertEqual(limiter.count("a"), 0)
        self.assertTrue(limiter.allow("a"))

    def test_disabled_limiter_always_allows(self) -> None:
        limiter = RateLimiter(max_requests=1, enabled=False)

        for _ in range(5):
            self.assertTrue(limiter.allow("a"))
        self.assertEqual(limiter.count("a"), 0)


class RateLimiterResetLoopTests(unittest.IsolatedAsyncioTestCase):
    async def test_background_task_clears_counters_each_window(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=0.01)
        limiter.allow("a")
        limiter.allow("a")

        limiter.start()
        try:
            for _ in range(100):
                if limiter.count("a") == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await limiter.stop()

        self.assertEqual(limiter.count("a"), 0)
        self.assertTrue(limiter.allow("a"))

    async def test_stop_without_start_is_a_no_op(self) -> None:
        await RateLimiter(max_requests=1).stop()


if __name__ == "__main__":
    unittest.main()
