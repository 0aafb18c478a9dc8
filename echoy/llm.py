"""Generation backend capability and its OpenAI-compatible implementation."""

import logging
import threading
from dataclasses import dataclass
from typing import Sequence

from openai import OpenAI, OpenAIError

from echoy.channel import POLL_INTERVAL, Channel
from echoy.context import Context
from echoy.errors import Cancelled, ConfigError, GenerationError, StreamError
from echoy.globals import log_exception, retrieve_key
from echoy.history import Message

SUPPORTED_PROVIDERS = ("openai",)


@dataclass(frozen=True, slots=True)
class StreamIncrement:
    """One fragment of a streamed reply. `done` and `error` are terminal."""

    text: str = ""
    done: bool = False
    error: Exception | None = None

    def __post_init__(self):
        if self.done and self.error is not None:
            raise ValueError("an increment cannot be both done and failed")


@dataclass(frozen=True, slots=True)
class AssistantReply:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class GenerationClient:
    """Abstract generation backend."""

    def generate(self, ctx: Context, messages: Sequence[Message]) -> AssistantReply:
        raise NotImplementedError

    def generate_stream(
        self, ctx: Context, messages: Sequence[Message]
    ) -> Channel[StreamIncrement]:
        raise NotImplementedError


class OpenAIGenerationClient(GenerationClient):
    """Chat completions against any OpenAI-compatible endpoint"""

    def __init__(
        self,
        client: OpenAI,
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        top_p: float = 0.5,
        system_prompt: str = "",
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.system_prompt = system_prompt
        self.logger = logger or logging.getLogger(__name__)

    def _payload(self, messages: Sequence[Message]) -> list[dict]:
        payload = [m.to_dict() for m in messages]
        if self.system_prompt:
            payload.insert(0, {"role": "system", "content": self.system_prompt})
        return payload

    def _create(self, ctx: Context, messages: Sequence[Message], stream: bool):
        if ctx.cancelled:
            raise Cancelled("context cancelled before the request was sent")
        kwargs = {}
        remaining = ctx.remaining()
        if remaining is not None:
            kwargs["timeout"] = remaining
        return self.client.chat.completions.create(
            model=self.model,
            messages=self._payload(messages),  # pyright: ignore
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            stream=stream,
            **kwargs,
        )

    def generate(self, ctx: Context, messages: Sequence[Message]) -> AssistantReply:
        try:
            completion = self._create(ctx, messages, stream=False)
        except OpenAIError as e:
            raise GenerationError(f"failed to generate response: {e}") from e
        text = completion.choices[0].message.content or ""
        usage = completion.usage
        return AssistantReply(
            text=text,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def generate_stream(
        self, ctx: Context, messages: Sequence[Message]
    ) -> Channel[StreamIncrement]:
        try:
            stream = self._create(ctx, messages, stream=True)
        except OpenAIError as e:
            raise GenerationError(f"failed to generate streaming response: {e}") from e
        out: Channel[StreamIncrement] = Channel()
        threading.Thread(
            target=self._pump, args=(ctx, stream, out), name="echoy-llm-stream", daemon=True
        ).start()
        return out

    def _pump(self, ctx: Context, stream, out: Channel[StreamIncrement]):
        """Moves completion chunks onto `out` until a finish reason, error or cancel."""
        finished = threading.Event()
        threading.Thread(
            target=self._close_on_cancel,
            args=(ctx, stream, finished),
            name="echoy-llm-cancel",
            daemon=True,
        ).start()
        try:
            for chunk in stream:
                if ctx.cancelled:
                    break
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                text = getattr(choice.delta, "content", None) or ""
                done = choice.finish_reason is not None
                if not text and not done:
                    continue
                out.send(StreamIncrement(text=text, done=done), ctx)
                if done:
                    break
        except Cancelled:
            pass
        except Exception as e:
            if ctx.cancelled:
                return  # the stream was closed under us by a cancel
            log_exception(e, "Error while reading completion stream", self.logger)
            try:
                out.send(StreamIncrement(error=StreamError(str(e))), ctx)
            except Cancelled:
                pass
        finally:
            try:
                stream.close()
            except Exception as e:
                self.logger.warning(f"Failed to close completion stream: {e}")
            finished.set()
            out.close()

    def _close_on_cancel(self, ctx: Context, stream, finished: threading.Event):
        """Closes the HTTP stream as soon as `ctx` is cancelled, unblocking `_pump`."""
        while not finished.is_set():
            if ctx.wait(POLL_INTERVAL):
                if not finished.is_set():
                    try:
                        stream.close()
                    except Exception as e:
                        self.logger.warning(f"Failed to close completion stream: {e}")
                return


def build_generation_client(config, api_key: str = "") -> GenerationClient:
    """Creates the generation client named by `config.provider`."""
    provider = (config.provider or "").strip().lower()
    if not provider:
        raise ConfigError("llm provider not specified")
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigError(f"unsupported LLM provider: {config.provider}")
    client = OpenAI(base_url=config.endpoint, api_key=api_key or retrieve_key())
    return OpenAIGenerationClient(
        client,
        model=config.model,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        top_p=config.top_p,
        system_prompt=config.system_prompt,
    )
