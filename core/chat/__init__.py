# Path: core/chat/__init__.py
# Purpose: Package initializer for the streamed solution chat.
# Layer: core/chat.
# Details: Exposes the transcript, request builders, streaming client, credentials, and session controller.

from .credentials import CredentialSource, StaticCredentials
from .request import ChatRequest, build_api_messages, build_chat_request
from .session import SessionOutcome, SolutionSession
from .streaming import ChatStreamClient, SSELineDecoder, StreamEvent
from .transcript import Transcript

__all__ = [
    "ChatRequest",
    "ChatStreamClient",
    "CredentialSource",
    "SSELineDecoder",
    "SessionOutcome",
    "SolutionSession",
    "StaticCredentials",
    "StreamEvent",
    "Transcript",
    "build_api_messages",
    "build_chat_request",
]
