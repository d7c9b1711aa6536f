"""
Agent transports: send an AgentRequest, hand back the raw reply for the normalizer.

Every transport error (network, timeout, non-2xx, client exception) is raised as
TransportFailure. The reply shape is whatever the endpoint produced; see app.core.normalizer.

- BedrockAgentTransport: the Bedrock agent runtime through boto3 (signed requests; the SDK
  decodes the event stream into ``{"chunk": {"bytes": ...}}`` completion events).
- HttpAgentTransport: a plain HTTP endpoint (AGENT_ENDPOINT) answering JSON or text/plain.
- NvidiaChatTransport: an NVIDIA-hosted chat model through LangChain.
"""
import asyncio
import json
import logging
from typing import Any

import httpx
from langchain_core.messages import HumanMessage

from app.core.errors import TransportFailure
from app.core.request_builder import AgentConfig, AgentRequest

logger = logging.getLogger(__name__)


class AgentTransport:
    """Base transport. ``invoke`` returns a raw reply (mapping with a text or stream field)."""

    async def invoke(self, request: AgentRequest) -> Any:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class BedrockAgentTransport(AgentTransport):
    """Invoke a Bedrock agent with boto3's ``bedrock-agent-runtime`` client (built lazily)."""

    def __init__(self, config: AgentConfig, *, timeout_seconds: float = 60.0, client: Any = None):
        self.config = config
        self.timeout_seconds = timeout_seconds
        self._client = client

    def _get_client(self):
        if self._client is None:
            import boto3
            from botocore.config import Config

            self._client = boto3.client(
                "bedrock-agent-runtime",
                region_name=self.config.region,
                config=Config(read_timeout=self.timeout_seconds, connect_timeout=10, retries={"max_attempts": 2}),
            )
        return self._client

    async def invoke(self, request: AgentRequest) -> Any:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.invoke_agent,
                agentId=request.agent_id,
                agentAliasId=request.agent_alias_id,
                sessionId=request.session_id,
                inputText=request.input_text,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportFailure(f"Bedrock agent call failed: {e}") from e
        # EventStream is a blocking iterable; the normalizer advances it off the event loop
        return {"completion": response.get("completion")}

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            close()


def endpoint_url(config: AgentConfig, request: AgentRequest) -> str:
    if not config.endpoint:
        raise TransportFailure("AGENT_ENDPOINT is not configured for the http transport")
    return config.endpoint.format(
        region=config.region,
        agent_id=request.agent_id,
        agent_alias_id=request.agent_alias_id,
        session_id=request.session_id,
    )


class HttpAgentTransport(AgentTransport):
    """POST the request as JSON to AGENT_ENDPOINT.

    Contract: ``application/json`` bodies come back as a mapping (``outputText`` etc.);
    ``text/plain`` bodies are streamed as UTF-8 chunks. Any other content type is refused.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        api_key: str = "",
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._owns_client = client is None
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds, connect=10.0))
        self._headers = headers

    async def invoke(self, request: AgentRequest) -> Any:
        url = endpoint_url(self.config, request)
        http_request = self._client.build_request("POST", url, json=request.to_payload(), headers=self._headers)
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Agent request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Agent request failed: {e}") from e

        if response.is_error:
            await response.aclose()
            raise TransportFailure(f"Agent error: HTTP {response.status_code} {response.reason_phrase}")

        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        if content_type == "application/json" or content_type.endswith("+json"):
            try:
                body = await response.aread()
                return json.loads(body) if body else {}
            except (httpx.HTTPError, ValueError) as e:
                raise TransportFailure(f"Agent reply could not be read: {e}") from e
            finally:
                await response.aclose()
        if content_type == "text/plain":
            return {"chunks": _chunk_stream(response)}
        await response.aclose()
        raise TransportFailure(f"Agent reply has unsupported content type {content_type or '(none)'!r}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def _chunk_stream(response: httpx.Response):
    try:
        async for data in response.aiter_bytes():
            if data:
                yield {"bytes": data}
    except httpx.HTTPError as e:
        raise TransportFailure(f"Agent reply stream broke: {e}") from e
    finally:
        await response.aclose()


class NvidiaChatTransport(AgentTransport):
    """Talk to an NVIDIA-hosted chat model through LangChain. Streams deltas unless ``stream`` is off."""

    def __init__(self, model: str, api_key: str, *, stream: bool = True, llm: Any = None):
        self.model = model
        self.api_key = api_key
        self.stream = stream
        self._llm = llm

    def _get_llm(self):
        if self._llm is None:
            from langchain_nvidia_ai_endpoints import ChatNVIDIA

            self._llm = ChatNVIDIA(
                model=self.model,
                nvidia_api_key=self.api_key,
                temperature=0.2,
                top_p=0.7,
            )
        return self._llm

    async def invoke(self, request: AgentRequest) -> Any:
        messages = [HumanMessage(content=request.input_text)]
        if self.stream:
            return {"deltas": self._deltas(messages)}
        try:
            result = await self._get_llm().ainvoke(messages)
        except Exception as e:
            raise TransportFailure(f"NVIDIA model call failed: {e}") from e
        return {"outputText": result.content if isinstance(result.content, str) else ""}

    async def _deltas(self, messages):
        try:
            async for chunk in self._get_llm().astream(messages):
                if isinstance(chunk.content, str) and chunk.content:
                    yield {"textDelta": chunk.content}
        except Exception as e:
            raise TransportFailure(f"NVIDIA model stream failed: {e}") from e


def build_transport(settings, config: AgentConfig) -> AgentTransport:
    """Pick the transport named by AGENT_TRANSPORT (``bedrock``, ``http`` or ``nvidia``)."""
    kind = settings.agent_transport
    if kind == "nvidia":
        default_model = "meta/llama-3.1-8b-instruct"
        model = settings.nvidia_model or default_model
        logger.info("Using NVIDIA transport (model=%s)", model)
        return NvidiaChatTransport(model, settings.nvidia_api_key, stream=settings.nvidia_stream)
    if kind == "http":
        if not config.endpoint:
            logger.warning("AGENT_TRANSPORT=http without AGENT_ENDPOINT; every turn will fall back")
        return HttpAgentTransport(
            config,
            api_key=settings.agent_api_key,
            timeout_seconds=settings.agent_timeout_seconds,
        )
    if kind != "bedrock":
        logger.warning("Unknown AGENT_TRANSPORT %r; falling back to bedrock", kind)
    return BedrockAgentTransport(config, timeout_seconds=settings.agent_timeout_seconds)
