"""OpenRouter LLM client with a tagged-part adapter for research streams."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

from auditor.config import Settings, settings
from auditor.models.audit import GroundingSource
from auditor.models.errors import AuditError, ErrorKind

WEB_SEARCH_PLUGIN_ID = "web"


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True, slots=True)
class ReasoningFragment:
    text: str


@dataclass(frozen=True, slots=True)
class AnswerFragment:
    text: str


StreamPart = Union[ReasoningFragment, AnswerFragment, GroundingSource]


@dataclass
class Completion:
    text: str
    usage: Usage = field(default_factory=Usage)
    sources: list[GroundingSource] = field(default_factory=list)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _map_usage(usage: Any) -> Usage:
    return Usage(
        input_tokens=_field(usage, "prompt_tokens") or 0,
        output_tokens=_field(usage, "completion_tokens") or 0,
    )


def citations_from_annotations(annotations: Any) -> list[GroundingSource]:
    """Pull ``url_citation`` annotations into grounding sources, in order."""
    sources: list[GroundingSource] = []
    for annotation in annotations or []:
        if _field(annotation, "type") != "url_citation":
            continue
        citation = _field(annotation, "url_citation") or annotation
        url = _field(citation, "url")
        if isinstance(url, str) and url:
            title = _field(citation, "title")
            sources.append(GroundingSource(url=url, title=title if isinstance(title, str) else None))
    return sources


def parts_from_delta(delta: Any) -> list[StreamPart]:
    """Demultiplex one provider delta into tagged stream parts."""
    parts: list[StreamPart] = []
    reasoning = _field(delta, "reasoning")
    if isinstance(reasoning, str) and reasoning:
        parts.append(ReasoningFragment(text=reasoning))
    content = _field(delta, "content")
    if isinstance(content, str) and content:
        parts.append(AnswerFragment(text=content))
    parts.extend(citations_from_annotations(_field(delta, "annotations")))
    return parts


class ResearchStream:
    def __init__(self, stream_coro: Any):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self.usage = Usage()

    async def __aenter__(self) -> "ResearchStream":
        self._stream = await self._stream_coro
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            close = getattr(self._stream, "close", None)
            if close is not None:
                await close()

    async def _iter_parts(self) -> AsyncIterator[StreamPart]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            usage = _field(chunk, "usage")
            if usage:
                self.usage = _map_usage(usage)

            choices = _field(chunk, "choices") or []
            if not choices:
                continue
            delta = _field(choices[0], "delta")
            if delta:
                for part in parts_from_delta(delta):
                    yield part
            message = _field(choices[0], "message")
            if message:
                for source in citations_from_annotations(_field(message, "annotations")):
                    yield source

    @property
    def parts(self) -> AsyncIterator[StreamPart]:
        return self._iter_parts()


class AuditorClient:
    """Thin wrapper around the OpenAI-compatible SDK pointed at OpenRouter."""

    def __init__(self, openai_client: Any, config: Settings | None = None):
        self._client = openai_client
        self.config = config or settings

    def _web_plugin(self) -> dict[str, Any]:
        return {"id": WEB_SEARCH_PLUGIN_ID, "max_results": self.config.web_search_max_results}

    def stream_research(self, *, model: str, system: str, user_message: str) -> ResearchStream:
        stream = self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
            max_tokens=self.config.research_max_tokens,
            stream=True,
            stream_options={"include_usage": True},
            extra_body={
                "plugins": [self._web_plugin()],
                "reasoning": {"effort": self.config.reasoning_effort, "exclude": False},
            },
        )
        return ResearchStream(stream)

    async def complete(
        self,
        *,
        model: str,
        system: str,
        user_message: str,
        max_tokens: int,
        json_mode: bool = False,
        web_search: bool = False,
    ) -> Completion:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if web_search:
            kwargs["extra_body"] = {"plugins": [self._web_plugin()]}

        response = await self._client.chat.completions.create(**kwargs)
        choices = _field(response, "choices") or []
        message = _field(choices[0], "message") if choices else None
        text = _field(message, "content") if message else None
        return Completion(
            text=text if isinstance(text, str) else "",
            usage=_map_usage(_field(response, "usage")),
            sources=citations_from_annotations(_field(message, "annotations")) if message else [],
        )


def get_client(config: Settings | None = None) -> AuditorClient:
    """Build an unshared client; fails fast when no API key is configured."""
    from openai import AsyncOpenAI

    config = config or settings
    api_key = (config.openrouter_api_key or "").strip()
    if not api_key:
        raise AuditError(
            ErrorKind.MISSING_CREDENTIAL,
            "Missing OPENROUTER_API_KEY. Create a .env file with your OpenRouter API key.",
        )
    base_url = config.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AuditorClient(AsyncOpenAI(api_key=api_key, base_url=base_url), config)


def get_model(config: Settings | None = None) -> str:
    return (config or settings).default_model


def get_extraction_model(config: Settings | None = None) -> str:
    config = config or settings
    return config.extraction_model.strip() or config.default_model


_client: AuditorClient | None = None


def client() -> AuditorClient:
    """Get or create the process-wide LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
