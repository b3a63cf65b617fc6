"""LiteLLM-backed client used by every generation provider.

One interface for Gemini, OpenAI, xAI, Anthropic and DeepSeek models.
Retries transient failures, backs off on rate limits, and records token
usage per call so providers can keep quota bookkeeping.
"""

import collections
import json
import logging
import re
import time

import litellm

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True


class _RateLimiter:
    """Sliding-window limiter: sleeps before a call that would exceed the RPM budget."""

    def __init__(self, rpm: int):
        self.rpm = rpm
        self._window = 60.0
        self._timestamps: collections.deque[float] = collections.deque()

    def wait(self) -> None:
        if self.rpm <= 0:
            return
        now = time.monotonic()
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()
        if len(self._timestamps) >= self.rpm:
            sleep_for = self._window - (now - self._timestamps[0]) + 0.1
            if sleep_for > 0:
                logger.debug(f"Rate limiter: sleeping {sleep_for:.1f}s ({self.rpm} RPM)")
                time.sleep(sleep_for)
        self._timestamps.append(time.monotonic())


class LLMClient:
    """Synchronous LLM client with retries and usage tracking."""

    def __init__(
        self,
        model: str,
        max_retries: int = 2,
        rate_limit_retries: int = 3,
        rate_limit_base_wait: float = 2.0,
        rpm: int = 40,
        timeout: int = 90,
        temperature: float = 0.3,
        system_message: str = "",
    ):
        self.model = model
        self.max_retries = max_retries
        self.rate_limit_retries = rate_limit_retries
        self.rate_limit_base_wait = rate_limit_base_wait
        self.timeout = timeout
        self.temperature = temperature
        self.system_message = system_message
        self.total_cost_usd = 0.0
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.last_call_tokens = 0
        self._limiter = _RateLimiter(rpm)

    def _build_messages(self, prompt: str, system_message: str | None) -> list[dict]:
        effective_system = system_message or self.system_message
        messages = []
        if effective_system:
            messages.append({"role": "system", "content": effective_system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _track_usage(self, response: object, prompt: str, text: str) -> None:
        usage = getattr(response, "usage", None)
        tokens = 0
        if usage:
            prompt_tokens = usage.prompt_tokens or 0
            completion_tokens = usage.completion_tokens or 0
            self.total_input_tokens += prompt_tokens
            self.total_output_tokens += completion_tokens
            tokens = prompt_tokens + completion_tokens
        # Some providers omit usage; fall back to a character count
        self.last_call_tokens = tokens or len(prompt) + len(text)
        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception:
            cost = 0.0
        if cost:
            self.total_cost_usd += cost

    def call(
        self,
        prompt: str,
        system_message: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Call the LLM and return the text response.

        Raises:
            RuntimeError: When retries or rate-limit backoff are exhausted
        """
        messages = self._build_messages(prompt, system_message)
        kwargs: dict = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        last_error = None
        rate_limit_hits = 0
        error_retries = 0

        while error_retries < self.max_retries:
            self._limiter.wait()
            try:
                response = litellm.completion(
                    model=self.model,
                    messages=messages,
                    timeout=self.timeout,
                    temperature=self.temperature,
                    **kwargs,
                )
                text = response.choices[0].message.content or ""
                self._track_usage(response, prompt, text)

                if not text.strip():
                    error_retries += 1
                    last_error = "Empty response"
                    logger.warning(f"Empty response from {self.model} (attempt {error_retries}/{self.max_retries})")
                    continue

                return text

            except litellm.RateLimitError as exc:
                rate_limit_hits += 1
                if rate_limit_hits > self.rate_limit_retries:
                    raise RuntimeError(
                        f"{self.model} rate limited {rate_limit_hits} times, giving up"
                    ) from exc
                wait = min(self.rate_limit_base_wait * (2 ** (rate_limit_hits - 1)), 30)
                logger.warning(
                    f"Rate limited, waiting {wait:.0f}s "
                    f"(rate limit hit {rate_limit_hits}/{self.rate_limit_retries})"
                )
                time.sleep(wait)
                last_error = "Rate limit exceeded"

            except litellm.Timeout:
                error_retries += 1
                logger.warning(f"Timeout from {self.model} (attempt {error_retries}/{self.max_retries})")
                last_error = "Request timed out"

            except KeyboardInterrupt:
                raise
            except Exception as e:
                error_retries += 1
                logger.warning(f"LLM call failed: {e} (attempt {error_retries}/{self.max_retries})")
                last_error = str(e)
                if error_retries < self.max_retries:
                    time.sleep(1)

        raise RuntimeError(f"{self.model} failed after {error_retries} attempts: {last_error}")

    def call_json(self, prompt: str, system_message: str | None = None) -> dict:
        """Call the LLM in JSON mode and parse the response."""
        text = self.call(prompt, system_message=system_message, json_mode=True)
        return parse_llm_json(text)


def parse_llm_json(text: str) -> dict:
    """Parse a JSON object out of an LLM response.

    Strips markdown code fences and surrounding chatter, then falls back to
    the first balanced ``{...}`` block.

    Raises:
        ValueError: If no JSON object can be recovered
    """
    text = re.sub(r"^```(?:json)?\s*\n?", "", text.strip())
    text = re.sub(r"\n?```\s*$", "", text.strip())

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    if start != -1:
        depth = 0
        in_string = False
        escaped = False
        for j in range(start, len(text)):
            ch = text[j]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(text[start : j + 1])
                    except json.JSONDecodeError:
                        break

    raise ValueError(f"Could not parse JSON from LLM response: {text[:200]}...")
