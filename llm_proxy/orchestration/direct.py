"""Direct dispatcher orchestration."""

from llm_proxy.dispatcher import Dispatcher, DispatchResult
from llm_proxy.orchestration.base import ChatOrchestrator
from llm_proxy.schemas import ChatRequest


class DirectChatOrchestrator(ChatOrchestrator):
    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    async def run(self, request: ChatRequest) -> DispatchResult:
        return await self._dispatcher.dispatch(request)
