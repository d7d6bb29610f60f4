import logging
import os
import platform
from collections.abc import AsyncIterator

from openai import APIStatusError, AsyncOpenAI
from pydantic import BaseModel, Field

from omo.auth import extract_account_id
from omo.errors import AuthError, TransportError
from omo.message import Message

logger = logging.getLogger(__name__)

CODEX_BASE_URL = "https://chatgpt.com/backend-api/codex"
DEFAULT_MODEL = "gpt-5.2-codex"


class ResponsesRequest(BaseModel):
    """Body of one streaming Responses API request."""

    model: str
    instructions: str
    input: list[dict]
    tools: list[dict] = Field(default_factory=list)
    tool_choice: str = "auto"
    parallel_tool_calls: bool = True
    stream: bool = True
    store: bool = False
    text: dict = Field(default_factory=lambda: {"verbosity": "medium"})
    include: list[str] = Field(
        default_factory=lambda: ["reasoning.encrypted_content"]
    )

    @classmethod
    def build(
            cls,
            model: str,
            instructions: str,
            transcript: list[Message],
            tools: list[dict],
    ) -> "ResponsesRequest":
        return cls(
            model=model,
            instructions=instructions,
            input=[m.to_input_item() for m in transcript],
            tools=tools,
        )


class ModelProvider:
    """Source of raw SSE bytes for a request."""

    def stream(self, request: ResponsesRequest) -> AsyncIterator[bytes]:
        raise NotImplementedError


class CodexProvider(ModelProvider):
    """Streams responses from the ChatGPT Codex backend.

    Args:
        access_token: OAuth access token for the ChatGPT account.
        account_id: ChatGPT account id; read from the token when omitted.
        base_url: Endpoint root; ``/responses`` is appended by the client.
    """

    def __init__(
            self,
            access_token: str | None = None,
            account_id: str | None = None,
            base_url: str = CODEX_BASE_URL,
            max_retries: int = 5,
            http_client=None,
    ):
        if not access_token:
            access_token = os.getenv("OMO_ACCESS_TOKEN")
        if not access_token:
            raise AuthError("No access token; log in or set OMO_ACCESS_TOKEN")
        if not account_id:
            account_id = extract_account_id(access_token)
        self.account_id = account_id
        self.client = AsyncOpenAI(
            api_key=access_token,
            base_url=base_url,
            default_headers={
                "chatgpt-account-id": account_id,
                "OpenAI-Beta": "responses=experimental",
                "originator": "omo",
                "User-Agent": (
                    f"omo ({platform.system().lower()} "
                    f"{platform.release()}; {platform.machine()})"
                ),
                "Accept": "text/event-stream",
            },
            max_retries=max_retries,
            timeout=600.0,
            http_client=http_client,
        )

    async def stream(self, request: ResponsesRequest) -> AsyncIterator[bytes]:
        body = request.model_dump()
        try:
            async with self.client.responses.with_streaming_response.create(
                **body
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except APIStatusError as e:
            raise TransportError(e.status_code, e.response.text) from e
