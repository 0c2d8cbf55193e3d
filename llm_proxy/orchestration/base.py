"""Orchestration interfaces for chat execution."""

from typing import Protocol

from llm_proxy.dispatcher import DispatchResult
from llm_proxy.schemas import ChatRequest


class ChatOrchestrator(Protocol):
    async def run(self, request: ChatRequest) -> DispatchResult:
        """Execute the chat request using the selected orchestration strategy."""
