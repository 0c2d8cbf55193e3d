"""Application service for chat requests."""

import json
import logging
from collections.abc import AsyncIterator

from llm_proxy.dispatcher import StreamHandle
from llm_proxy.entities import ChatResult
from llm_proxy.errors import ProxyError
from llm_proxy.orchestration.base import ChatOrchestrator
from llm_proxy.schemas import ChatRequest

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request."


def error_fragment(message: str) -> bytes:
    return json.dumps({"ok": False, "message": message}).encode("utf-8")


class ChatService:
    def __init__(self, orchestrator: ChatOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def complete(self, request: ChatRequest) -> ChatResult:
        """Run a non-streaming request and return the extracted text."""
        logger.info(
            "Chat request received",
            extra={
                "provider": request.provider,
                "model": request.model,
                "message_count": len(request.messages),
                "stream": False,
            },
        )
        result = await self._orchestrator.run(request.model_copy(update={"stream": False}))
        if isinstance(result, StreamHandle):
            await result.aclose()
            raise RuntimeError("Orchestrator returned a stream for a non-streaming request")
        return result

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[bytes]:
        """Yield UTF-8 text fragments; a failure ends the body with one JSON error blob."""
        logger.info(
            "Chat request received",
            extra={
                "provider": request.provider,
                "model": request.model,
                "message_count": len(request.messages),
                "stream": True,
            },
        )
        handle: StreamHandle | None = None
        try:
            result = await self._orchestrator.run(request.model_copy(update={"stream": True}))
            if isinstance(result, ChatResult):
                yield result.content.encode("utf-8")
                return
            handle = result
            async for fragment in handle:
                yield fragment.encode("utf-8")
        except ProxyError as e:
            logger.warning(
                "Chat stream failed",
                extra={"provider": request.provider, "model": request.model, "error": e.message},
            )
            yield error_fragment(e.message)
        except Exception:
            logger.exception(
                "Unexpected chat stream failure",
                extra={"provider": request.provider, "model": request.model},
            )
            yield error_fragment(GENERIC_ERROR_MESSAGE)
        finally:
            if handle is not None:
                await handle.aclose()
