import asyncio
import unittest

import httpx

from llm_proxy.config import Settings
from llm_proxy.constants import PROBE_TIMEOUT_SECONDS
from llm_proxy.errors import ProviderNotFoundError
from llm_proxy.infra.secrets import SecretResolver
from llm_proxy.registry import ProviderRegistry, select_provider

OLLAMA_TAGS = {"models": [{"name": "llama3.2:3b"}, {"name": "deepseek-r1:7b"}]}


def ollama_transport(payload: object = OLLAMA_TAGS, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(status_code, json=payload)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def offline_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


def make_registry(
    transport: httpx.MockTransport,
    environ: dict[str, str] | None = None,
    settings: Settings | None = None,
) -> ProviderRegistry:
    settings = settings or Settings()
    return ProviderRegistry(
        settings,
        SecretResolver(settings, environ=environ or {}),
        http_client_factory=lambda: httpx.AsyncClient(transport=transport),
    )


class ProviderRegistryTests(unittest.IsolatedAsyncioTestCase):
    async def test_discovers_local_models_and_keyed_cloud_vendors(self) -> None:
        registry = make_registry(ollama_transport(), environ={"GROQ_API_KEY": "gsk_1"})

        await registry.discover()

        self.assertEqual(
            sorted(provider.id for provider in registry.get_providers()), ["groq", "ollama"]
        )
        self.assertEqual(
            [model.id for model in registry.get_models("local")], ["llama3.2:3b", "deepseek-r1:7b"]
        )
        self.assertIn("groq-llama-3.3-70b-versatile", {m.id for m in registry.get_models("cloud")})
        groq = registry.get_provider("groq")
        assert groq is not None
        self.assertEqual(groq.credential_name, "groq_api_key")
        self.assertNotIn("gsk_1", repr(groq))

    async def test_recommends_local_reasoning_model_first(self) -> None:
        registry = make_registry(ollama_transport(), environ={"DEEPSEEK_API_KEY": "sk-1"})

        await registry.discover()

        recommended = registry.get_recommended_model()
        assert recommended is not None
        self.assertEqual(recommended.id, "deepseek-r1:7b")

    async def test_recommends_first_local_model_without_preferred_pattern(self) -> None:
        registry = make_registry(ollama_transport({"models": [{"name": "phi3"}, {"name": "qwen"}]}))

        await registry.discover()

        recommended = registry.get_recommended_model()
        assert recommended is not None
        self.assertEqual(recommended.id, "phi3")

    async def test_recommends_preferred_cloud_model_when_daemon_is_down(self) -> None:
        registry = make_registry(
            offline_transport(), environ={"GROQ_API_KEY": "gsk_1", "DEEPSEEK_API_KEY": "sk-1"}
        )

        with self.assertLogs("llm_proxy.registry", level="WARNING"):
            await registry.discover()

        recommended = registry.get_recommended_model()
        assert recommended is not None
        self.assertEqual(recommended.id, "deepseek-deepseek-chat")
        self.assertEqual(registry.get_models("local"), [])

    async def test_no_models_means_no_recommendation(self) -> None:
        registry = make_registry(ollama_transport({"models": []}))

        await registry.discover()

        self.assertIsNone(registry.get_recommended_model())

    async def test_unexpected_tags_payload_keeps_cloud_vendors(self) -> None:
        registry = make_registry(ollama_transport({"models": 5}), environ={"GROQ_API_KEY": "gsk_1"})

        with self.assertLogs("llm_proxy.registry", level="WARNING") as logs:
            await registry.discover()

        self.assertIn("Unexpected Ollama tags payload", logs.output[0])
        self.assertIsNone(registry.get_provider("ollama"))
        self.assertIsNotNone(registry.get_provider("groq"))

    async def test_failing_discovery_branch_does_not_cancel_the_other(self) -> None:
        registry = make_registry(ollama_transport(), environ={"GROQ_API_KEY": "gsk_1"})

        async def broken_cloud_discovery() -> list:
            raise RuntimeError("catalog exploded")

        registry._discover_cloud = broken_cloud_discovery  # type: ignore[method-assign]

        with self.assertLogs("llm_proxy.registry", level="ERROR"):
            await registry.discover()

        self.assertEqual([provider.id for provider in registry.get_providers()], ["ollama"])
        self.assertTrue(registry.discovered)

    async def test_tags_request_uses_short_timeout(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=OLLAMA_TAGS)

        registry = make_registry(httpx.MockTransport(handler))

        await registry.discover()

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].extensions["timeout"]["read"], PROBE_TIMEOUT_SECONDS)
        self.assertEqual(seen[0].extensions["timeout"]["connect"], PROBE_TIMEOUT_SECONDS)

    async def test_snapshot_mappings_are_read_only(self) -> None:
        registry = make_registry(ollama_transport())
        snapshot = await registry.discover()
        provider = registry.get_provider("ollama")

        with self.assertRaises(TypeError):
            snapshot.providers["rogue"] = provider  # type: ignore[index]
        with self.assertRaises(TypeError):
            del snapshot.models["llama3.2:3b"]  # type: ignore[attr-defined]

    async def test_strict_local_mode_skips_cloud_vendors(self) -> None:
        registry = make_registry(
            ollama_transport(),
            environ={"OPENAI_API_KEY": "sk-1"},
            settings=Settings(local_mode=True),
        )

        await registry.discover()

        self.assertEqual([provider.id for provider in registry.get_providers()], ["ollama"])
        self.assertEqual(registry.get_models("cloud"), [])

    async def test_mixed_mode_keeps_cloud_vendors(self) -> None:
        registry = make_registry(
            ollama_transport(),
            environ={"OPENAI_API_KEY": "sk-1"},
            settings=Settings(local_mode=True, mixed_mode=True),
        )

        await registry.discover()

        self.assertIsNotNone(registry.get_provider("openai"))

    async def test_filters_models_by_provider(self) -> None:
        registry = make_registry(
            ollama_transport(), environ={"OPENAI_API_KEY": "sk-1", "GROQ_API_KEY": "gsk_1"}
        )

        await registry.discover()

        self.assertEqual(
            {model.provider_id for model in registry.get_models(provider_id="openai")}, {"openai"}
        )

    async def test_concurrent_discovery_always_exposes_a_complete_snapshot(self) -> None:
        registry = make_registry(ollama_transport(), environ={"GROQ_API_KEY": "gsk_1"})
        first = await registry.discover()

        observed: list[tuple[int, int]] = []

        async def read_repeatedly() -> None:
            for _ in range(50):
                snapshot = registry.snapshot
                observed.append((len(snapshot.providers), len(snapshot.models)))
                await asyncio.sleep(0)

        await asyncio.gather(registry.discover(), registry.discover(), read_repeatedly())

        self.assertTrue(
            all(pair == (len(first.providers), len(first.models)) for pair in observed)
        )

    async def test_ensure_discovered_runs_once(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=OLLAMA_TAGS)

        registry = make_registry(httpx.MockTransport(handler))

        await registry.ensure_discovered()
        await registry.ensure_discovered()

        self.assertEqual(calls, 1)
        self.assertTrue(registry.discovered)


class SelectProviderTests(unittest.IsolatedAsyncioTestCase):
    async def test_selects_owner_of_known_model(self) -> None:
        registry = make_registry(ollama_transport(), environ={"GROQ_API_KEY": "gsk_1"})
        snapshot = await registry.discover()

        self.assertEqual(select_provider("deepseek-r1:7b", snapshot), "ollama")
        self.assertEqual(select_provider("groq-llama-3.3-70b-versatile", snapshot), "groq")

    async def test_unknown_model_raises(self) -> None:
        registry = make_registry(ollama_transport())
        snapshot = await registry.discover()

        with self.assertRaisesRegex(ProviderNotFoundError, "No available provider"):
            select_provider("gpt-9", snapshot)


if __name__ == "__main__":
    unittest.main()
