"""Payload types carried by streamed and line-delimited response bodies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _timestamp(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected epoch seconds, got {value!r}")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"epoch seconds out of range: {value!r}") from e


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class ErrorPayload:
    """Error object returned by the API, in a body or in place of a record."""

    message: str
    type: str = ""
    param: Any = None
    code: Any = None
    raw: dict[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ErrorPayload:
        return cls(
            message=raw["message"],
            type=str(raw.get("type") or ""),
            param=raw.get("param"),
            code=raw.get("code"),
            raw=raw,
        )

    @classmethod
    def match(cls, value: Any) -> ErrorPayload | None:
        """Return the error if ``value`` is an ``{"error": {...}}`` object."""
        if not isinstance(value, dict):
            return None
        error = value.get("error")
        if not isinstance(error, dict) or not isinstance(error.get("message"), str):
            return None
        return cls.from_dict(error)


@dataclass(frozen=True)
class Usage:
    """Token usage statistics."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Usage:
        prompt = int(raw.get("prompt_tokens", 0) or 0)
        completion = int(raw.get("completion_tokens", 0) or 0)
        total = raw.get("total_tokens")
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=int(total) if total is not None else prompt + completion,
        )


@dataclass(frozen=True)
class CompletionChoice:
    text: str
    index: int
    logprobs: dict[str, Any] | None = None
    finish_reason: str | None = None  # "stop", "length", or None mid-stream

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CompletionChoice:
        if not isinstance(raw, dict):
            raise TypeError(f"choice must be an object, got {raw!r}")
        text = raw["text"]
        if not isinstance(text, str):
            raise TypeError(f"choice text must be a string, got {text!r}")
        logprobs = raw.get("logprobs")
        return cls(
            text=text,
            index=int(raw["index"]),
            logprobs=logprobs if isinstance(logprobs, dict) else None,
            finish_reason=_optional_str(raw.get("finish_reason")),
        )


@dataclass(frozen=True)
class Completion:
    """One completion, or one incremental chunk of a streamed completion."""

    id: str
    created: datetime
    model: str
    choices: list[CompletionChoice]
    usage: Usage | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Completion:
        usage = raw.get("usage")
        return cls(
            id=str(raw["id"]),
            created=_timestamp(raw["created"]),
            model=str(raw["model"]),
            choices=[CompletionChoice.from_dict(choice) for choice in raw["choices"]],
            usage=Usage.from_dict(usage) if isinstance(usage, dict) else None,
        )

    def first(self) -> CompletionChoice | None:
        return self.choices[0] if self.choices else None


@dataclass(frozen=True)
class ChatDelta:
    """Incremental message content; every field may be absent in a given chunk."""

    role: str | None = None
    content: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ChatDelta:
        return cls(
            role=_optional_str(raw.get("role")),
            content=_optional_str(raw.get("content")),
        )


@dataclass(frozen=True)
class ChatChunkChoice:
    index: int
    delta: ChatDelta
    finish_reason: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ChatChunkChoice:
        if not isinstance(raw, dict):
            raise TypeError(f"choice must be an object, got {raw!r}")
        delta = raw.get("delta")
        return cls(
            index=int(raw["index"]),
            delta=ChatDelta.from_dict(delta) if isinstance(delta, dict) else ChatDelta(),
            finish_reason=_optional_str(raw.get("finish_reason")),
        )


@dataclass(frozen=True)
class ChatCompletionChunk:
    """One record of a streamed chat completion."""

    id: str
    created: datetime
    model: str
    choices: list[ChatChunkChoice]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ChatCompletionChunk:
        return cls(
            id=str(raw["id"]),
            created=_timestamp(raw["created"]),
            model=str(raw["model"]),
            choices=[ChatChunkChoice.from_dict(choice) for choice in raw["choices"]],
        )

    def first(self) -> ChatChunkChoice | None:
        return self.choices[0] if self.choices else None


@dataclass(frozen=True)
class FineTuneEvent:
    """Status update from a fine-tune job's event feed."""

    created_at: datetime
    level: str
    message: str

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> FineTuneEvent:
        return cls(
            created_at=_timestamp(raw["created_at"]),
            level=str(raw["level"]),
            message=str(raw["message"]),
        )


@dataclass(frozen=True)
class ImageData:
    """A generated image, either hosted at ``url`` or inlined as base64."""

    url: str | None = None
    b64_json: str | None = None

    def __post_init__(self) -> None:
        if (self.url is None) == (self.b64_json is None):
            raise ValueError("exactly one of url or b64_json must be set")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ImageData:
        return cls(url=_optional_str(raw.get("url")), b64_json=_optional_str(raw.get("b64_json")))
