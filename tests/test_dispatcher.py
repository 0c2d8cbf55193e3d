import json
import unittest
from collections.abc import Callable

import httpx

from llm_proxy.config import Settings
from llm_proxy.dispatcher import Dispatcher, StreamHandle
from llm_proxy.entities import ChatResult
from llm_proxy.errors import (
    EmptyResponseError,
    MissingCredentialError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    UnsupportedProviderError,
    UpstreamError,
)
from llm_proxy.infra.secrets import SecretResolver
from llm_proxy.registry import ProviderRegistry
from llm_proxy.schemas import ChatRequest

Handler = Callable[[httpx.Request], httpx.Response]

OLLAMA_TAGS = {"models": [{"name": "deepseek-r1:7b"}]}


def make_dispatcher(
    handler: Handler, environ: dict[str, str] | None = None
) -> tuple[Dispatcher, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/tags":
            return httpx.Response(200, json=OLLAMA_TAGS)
        return handler(request)

    transport = httpx.MockTransport(recording_handler)

    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=transport)

    settings = Settings()
    resolver = SecretResolver(settings, environ=environ or {})
    registry = ProviderRegistry(settings, resolver, http_client_factory=factory)
    return Dispatcher(settings, registry, resolver, http_client_factory=factory), seen


def chat_request(provider: str, model: str, stream: bool = False) -> ChatRequest:
    return ChatRequest(
        provider=provider,
        model=model,
        messages=[{"role": "user", "content": "Build a landing page"}],
        stream=stream,
    )


def openai_completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class CloudDispatchTests(unittest.IsolatedAsyncioTestCase):
    async def test_non_streaming_openai_request_returns_content(self) -> None:
        dispatcher, seen = make_dispatcher(
            lambda request: openai_completion("<html></html>"), {"OPENAI_API_KEY": "sk-test"}
        )

        result = await dispatcher.dispatch(chat_request("openai", "openai-gpt-4o"))

        self.assertEqual(
            result,
            ChatResult(ok=True, content="<html></html>", provider="openai", model="openai-gpt-4o"),
        )
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].headers["Authorization"], "Bearer sk-test")
        body = json.loads(seen[0].content)
        self.assertEqual(body["model"], "gpt-4o")
        self.assertFalse(body["stream"])

    async def test_missing_key_fails_before_any_network_call(self) -> None:
        dispatcher, seen = make_dispatcher(lambda request: openai_completion("unused"))

        with self.assertRaisesRegex(MissingCredentialError, "OpenAI API key not configured"):
            await dispatcher.dispatch(chat_request("openai", "openai-gpt-4o"))

        self.assertEqual(seen, [])

    async def test_upstream_error_carries_status(self) -> None:
        dispatcher, _ = make_dispatcher(
            lambda request: httpx.Response(401, text="invalid x-api-key"),
            {"ANTHROPIC_API_KEY": "sk-ant-bad"},
        )

        with self.assertRaises(UpstreamError) as ctx:
            await dispatcher.dispatch(
                chat_request("anthropic", "anthropic-claude-sonnet-4-20250514")
            )

        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.message, "API Error: 401 Unauthorized - invalid x-api-key")

    async def test_empty_content_is_rejected(self) -> None:
        dispatcher, _ = make_dispatcher(
            lambda request: httpx.Response(200, json={"candidates": []}),
            {"GEMINI_API_KEY": "AIza-key"},
        )

        with self.assertRaises(EmptyResponseError):
            await dispatcher.dispatch(chat_request("google", "google-gemini-2.5-flash"))

    async def test_unreachable_vendor_maps_to_unavailable(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        dispatcher, _ = make_dispatcher(refuse, {"GROQ_API_KEY": "gsk_1"})

        with self.assertRaises(ProviderUnavailableError):
            await dispatcher.dispatch(chat_request("groq", "groq-llama-3.3-70b-versatile"))

    async def test_unknown_vendor_tag_is_rejected(self) -> None:
        dispatcher, _ = make_dispatcher(lambda request: openai_completion("unused"))

        with self.assertRaises(UnsupportedProviderError):
            await dispatcher.call_cloud("mistral", chat_request("mistral", "mistral-large"))
        with self.assertRaises(ProviderNotFoundError):
            await dispatcher.dispatch(chat_request("mistral", "mistral-large"))


class StreamingDispatchTests(unittest.IsolatedAsyncioTestCase):
    async def test_stream_handle_yields_fragments_and_closes(self) -> None:
        body = "\n".join(
            [
                'data: {"choices":[{"delta":{"content":"<html>"}}]}',
                'data: {"choices":[{"delta":{"content":"</html>"}}]}',
                'data: {"choices":[{"delta":{"content":"ignored"}}]}',
                "data: [DONE]",
            ]
        )
        dispatcher, _ = make_dispatcher(
            lambda request: httpx.Response(200, text=body), {"DEEPSEEK_API_KEY": "sk-1"}
        )

        handle = await dispatcher.dispatch(
            chat_request("deepseek", "deepseek-deepseek-chat", stream=True)
        )

        self.assertIsInstance(handle, StreamHandle)
        assert isinstance(handle, StreamHandle)
        fragments = [fragment async for fragment in handle]
        self.assertEqual(fragments, ["<html>", "</html>"])
        self.assertTrue(handle.closed)

    async def test_stream_rejected_by_vendor_raises_before_first_fragment(self) -> None:
        dispatcher, _ = make_dispatcher(
            lambda request: httpx.Response(429), {"OPENAI_API_KEY": "sk-1"}
        )

        with self.assertRaisesRegex(UpstreamError, "API Error: 429 Too Many Requests"):
            await dispatcher.dispatch(chat_request("openai", "openai-gpt-4o", stream=True))

    async def test_abandoned_stream_can_be_closed_twice(self) -> None:
        dispatcher, _ = make_dispatcher(
            lambda request: httpx.Response(
                200, text='{"candidates":[{"content":{"parts":[{"text":"a"}]}}]}\n'
            ),
            {"GOOGLE_API_KEY": "AIza-key"},
        )

        handle = await dispatcher.dispatch(
            chat_request("google", "google-gemini-2.5-flash", stream=True)
        )
        assert isinstance(handle, StreamHandle)

        await handle.aclose()
        await handle.aclose()

        self.assertTrue(handle.closed)


class LocalDispatchTests(unittest.IsolatedAsyncioTestCase):
    async def test_auto_provider_routes_local_model_to_ollama(self) -> None:
        dispatcher, seen = make_dispatcher(
            lambda request: httpx.Response(
                200, json={"message": {"role": "assistant", "content": "local answer"}}
            )
        )

        result = await dispatcher.dispatch(chat_request("auto", "deepseek-r1:7b"))

        assert isinstance(result, ChatResult)
        self.assertEqual(result.content, "local answer")
        self.assertEqual(result.provider, "ollama")
        self.assertEqual(seen[-1].url.path, "/api/chat")

    async def test_send_streams_from_discovered_provider(self) -> None:
        body = '{"message":{"content":"one"}}\n{"message":{"content":"two"}}\n{"done":true}\n'
        dispatcher, _ = make_dispatcher(lambda request: httpx.Response(200, text=body))
        await dispatcher.resolve(chat_request("auto", "deepseek-r1:7b"))

        handle = await dispatcher.send(
            "ollama", "deepseek-r1:7b", [{"role": "user", "content": "hi"}], stream=True
        )

        assert isinstance(handle, StreamHandle)
        self.assertEqual([fragment async for fragment in handle], ["one", "two"])

    async def test_send_to_undiscovered_provider_raises(self) -> None:
        dispatcher, _ = make_dispatcher(lambda request: openai_completion("unused"))

        with self.assertRaises(ProviderNotFoundError):
            await dispatcher.send("ollama", "deepseek-r1:7b", [{"role": "user", "content": "hi"}])


if __name__ == "__main__":
    unittest.main()
