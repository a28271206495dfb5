"""LLM clip selection.

Transcripts are sent to Claude in token-bounded chunks. Every chunk but the
last yields a handful of notable segments that are carried forward; the last
chunk asks for the final clip list. Responses are untrusted: the first
well-formed JSON array is pulled out of whatever prose surrounds it, and each
item is coerced field by field into a ClipCandidate.
"""
import json
import math
import re
from typing import Any, Sequence

from clipline import errors, runtime, types as t, util
from clipline.retry import RateLimiter, RetryPolicy

MAX_CHUNK_TOKENS = 40000
RESERVED_TOKENS = 5000
MAX_CARRIED = 30

SYSTEM_PROMPT = (
    "You select clips from video transcripts and arrange them into one coherent story. "
    "Quote transcript text exactly as given, never paraphrase it. "
    "Reply with a JSON array only, using plain numbers for times."
)

CLIP_FORMAT = """[
  {
    "videoId": "string",
    "transcriptText": "exact quote from the transcript",
    "startTime": 12.50,
    "endTime": 31.25
  }
]"""

CHUNK_PROMPT = """{context}

This is chunk {index} of {total} of the transcripts. Pick the 5-10 segments from it that matter most for a story built across all chunks.
Return a JSON array in this format, adding a short "notes" field explaining each pick:
{format}

Transcripts:
{chunk}"""

FINAL_PROMPT = """{context}

This is the final chunk ({index} of {total}). Using the segments flagged earlier and this chunk, choose the clips that tell one story with a beginning, middle and end, in the order they should play.

Rules:
- startTime and endTime are the exact speech boundaries in seconds, 2 decimal places. Do not add padding.
- Quote transcriptText exactly from the transcript.
- Clips from the same video must not overlap.
- Each clip should run between 3 and 60 seconds.

Return ONLY a JSON array in this format:
{format}

Segments flagged earlier:
{carried}

Transcripts:
{chunk}"""

DEFAULT_CONTEXT = "Generate engaging clips from the transcripts with accurate timestamps."


def count_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def transcript_payload(transcript: t.Transcript) -> dict:
    return {
        "videoId": transcript.media_id,
        "duration": transcript.duration_seconds,
        "segments": [
            {"start": s.start, "end": s.end, "text": s.text}
            for s in transcript.segments
        ],
    }


def chunk_payloads(payloads: Sequence[dict], max_tokens: int = MAX_CHUNK_TOKENS) -> list[list[dict]]:
    budget = max_tokens - RESERVED_TOKENS
    chunks: list[list[dict]] = []
    current: list[dict] = []
    current_tokens = 0
    for payload in payloads:
        tokens = count_tokens(json.dumps(payload, indent=2))
        if tokens > budget:
            print(f"[select] Transcript {payload.get('videoId')} is ~{tokens} tokens, sending it alone")
            if current:
                chunks.append(current)
                current, current_tokens = [], 0
            chunks.append([payload])
            continue
        if current and current_tokens + tokens > budget:
            chunks.append(current)
            current, current_tokens = [], 0
        current.append(payload)
        current_tokens += tokens
    if current:
        chunks.append(current)
    return chunks


def _salvage_truncated(text: str) -> list | None:
    opening = re.search(r"\[\s*\{", text)
    if not opening:
        return None
    body = text[opening.start():]
    for close in reversed([m.start() for m in re.finditer(r"\}", body)]):
        try:
            value = json.loads(body[:close + 1] + "]")
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    return None


def extract_json_array(text: str) -> list:
    """Returns the first well-formed JSON array of objects found in `text`."""
    decoder = json.JSONDecoder()
    empty = None
    for match in re.finditer(r"\[", text or ""):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if not isinstance(value, list):
            continue
        if not value:
            empty = empty if empty is not None else value
            continue
        if all(isinstance(v, dict) for v in value):
            return value
    salvaged = _salvage_truncated(text or "")
    if salvaged is not None:
        print(f"[select] Response was truncated, salvaged {len(salvaged)} items")
        return salvaged
    if empty is not None:
        return empty
    raise errors.MalformedResponse("No JSON array found in LLM response")


def parse_candidates(items: Sequence[Any]) -> list[t.ClipCandidate]:
    candidates = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            print(f"[select] Skipping item {i}: not an object ({type(item).__name__})")
            continue
        video_id = item.get("videoId", item.get("sourceId"))
        candidates.append(t.ClipCandidate(
            video_id=str(video_id).strip() if video_id is not None else "",
            start=util.to_float(item.get("startTime")),
            end=util.to_float(item.get("endTime")),
            text=str(item.get("transcriptText") or ""),
            notes=str(item.get("notes") or ""),
        ))
    return candidates


class ClaudeSelector:
    def __init__(
        self,
        client=None,
        model: str = runtime.LLM_MODEL,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        max_chunk_tokens: int = MAX_CHUNK_TOKENS,
    ):
        import anthropic
        self._anthropic = anthropic
        self._client = client or anthropic.Anthropic()
        self._model = model
        self._limiter = rate_limiter or RateLimiter(runtime.LLM_MIN_INTERVAL)
        self._retry = retry_policy or RetryPolicy()
        self._max_chunk_tokens = max_chunk_tokens

    def _is_rate_limited(self, exc: Exception) -> bool:
        if isinstance(exc, self._anthropic.RateLimitError):
            return True
        return isinstance(exc, self._anthropic.APIStatusError) and exc.status_code in (429, 529)

    def _service_error(self, exc: Exception) -> errors.UpstreamServiceError:
        if self._is_rate_limited(exc):
            category = errors.RATE_LIMIT
        else:
            category = errors.classify(str(exc))
        return errors.UpstreamServiceError(f"Claude API error: {exc}", category=category, service="llm")

    def _call(self, messages: list[dict]) -> str:
        def once() -> str:
            self._limiter.wait()
            resp = self._client.messages.create(
                model=self._model,
                max_tokens=8192,
                temperature=0.2,
                system=SYSTEM_PROMPT,
                messages=messages,
            )
            return "".join(getattr(block, "text", "") for block in resp.content)

        try:
            return self._retry.run(once, self._is_rate_limited)
        except self._anthropic.APITimeoutError as exc:
            raise errors.UpstreamTimeout(f"Claude API timed out: {exc}") from exc
        except self._anthropic.APIError as exc:
            raise self._service_error(exc) from exc

    def select(self, transcripts: Sequence[t.Transcript], prompt: str | None = None) -> list[t.ClipCandidate]:
        context = f"USER CONTEXT: {prompt or DEFAULT_CONTEXT}"
        chunks = chunk_payloads([transcript_payload(tr) for tr in transcripts], self._max_chunk_tokens)
        carried: list = []
        for i, chunk in enumerate(chunks):
            last = i == len(chunks) - 1
            messages = []
            if carried:
                messages.append({
                    "role": "user",
                    "content": f"Segments flagged in earlier chunks, for reference:\n{json.dumps(carried, indent=2)}",
                })
                messages.append({
                    "role": "assistant",
                    "content": "Noted. I will weigh these alongside the next chunk.",
                })
            template = FINAL_PROMPT if last else CHUNK_PROMPT
            content = template.format(
                context=context, index=i + 1, total=len(chunks), format=CLIP_FORMAT,
                carried=json.dumps(carried, indent=2), chunk=json.dumps(chunk, indent=2),
            )
            messages.append({"role": "user", "content": content})
            print(f"[select] Chunk {i + 1}/{len(chunks)} (~{count_tokens(content)} tokens)")

            text = self._call(messages)
            if last:
                return parse_candidates(extract_json_array(text))
            try:
                found = extract_json_array(text)
            except errors.MalformedResponse:
                print(f"[select] No segments found in response for chunk {i + 1}")
                continue
            carried = (carried + found)[-MAX_CARRIED:]
        return []
