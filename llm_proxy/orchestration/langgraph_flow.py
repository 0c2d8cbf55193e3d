"""LangGraph-based orchestration strategy for chat execution."""

from typing import NotRequired, TypedDict, cast

from langgraph.graph import END, START, StateGraph

from llm_proxy.dispatcher import Dispatcher, DispatchResult
from llm_proxy.schemas import ChatRequest

from .base import ChatOrchestrator


class ChatGraphState(TypedDict):
    request: ChatRequest
    result: NotRequired[DispatchResult]


class LangGraphChatOrchestrator(ChatOrchestrator):
    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher
        graph = StateGraph(ChatGraphState)
        graph.add_node("resolve_provider", self._resolve_provider)
        graph.add_node("dispatch", self._dispatch)
        graph.add_edge(START, "resolve_provider")
        graph.add_edge("resolve_provider", "dispatch")
        graph.add_edge("dispatch", END)
        self._graph = graph.compile()

    async def _resolve_provider(self, state: ChatGraphState) -> dict[str, ChatRequest]:
        return {"request": await self._dispatcher.resolve(state["request"])}

    async def _dispatch(self, state: ChatGraphState) -> dict[str, DispatchResult]:
        return {"result": await self._dispatcher.dispatch(state["request"])}

    async def run(self, request: ChatRequest) -> DispatchResult:
        initial_state: ChatGraphState = {"request": request}
        final_state = cast("ChatGraphState", await self._graph.ainvoke(initial_state))
        result = final_state.get("result")
        if result is None:
            raise RuntimeError("LangGraph execution did not return a dispatch result")
        return result
