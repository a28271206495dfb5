import asyncio
import json
import time
from pathlib import Path
from typing import Callable, Sequence

from clipline import main as pipeline, transcribe, types as t
from clipline.records import Records

DEFAULT_TRANSCRIBE_CONCURRENCY = 4


async def transcribe_batch(
    media_ids: Sequence[str],
    records: Records,
    failures_path: Path,
    transcriber_for: Callable[[t.MediaSource], transcribe.Transcriber] = transcribe.choose,
    concurrency: int = DEFAULT_TRANSCRIBE_CONCURRENCY,
    force: bool = False,
) -> list[str]:
    """Transcribes many media sources as independent jobs.

    A failing job is logged to `failures_path` and leaves the others running.
    Returns the ids that ended up transcribed.
    """
    queue: asyncio.Queue[str] = asyncio.Queue()
    results: list[str] = []
    fail_lock = asyncio.Lock()
    total = len(media_ids)
    skipped = 0

    async def _log_failure(media_id: str, error: str):
        entry = json.dumps({"media_id": media_id, "error": error})
        async with fail_lock:
            with open(failures_path, "a") as f:
                f.write(entry + "\n")

    async def worker():
        nonlocal skipped
        while True:
            mid = await queue.get()
            try:
                source = records.get(mid)
                if source.status == t.TRANSCRIBED and not force:
                    print(f"[{mid}] Already transcribed, skipping")
                    skipped += 1
                else:
                    transcriber = transcriber_for(source)
                    await asyncio.to_thread(pipeline.transcribe, mid, records, transcriber)
                results.append(mid)
                print(f"[{mid}] Done ({len(results)}/{total})")
            except Exception as exc:
                await _log_failure(mid, f"{type(exc).__name__}: {exc}")
            queue.task_done()

    batch_start = time.monotonic()
    workers = [asyncio.create_task(worker()) for _ in range(max(concurrency, 1))]
    for mid in media_ids:
        queue.put_nowait(mid)

    await queue.join()
    for w in workers:
        w.cancel()
    await asyncio.gather(*workers, return_exceptions=True)

    n_failed = total - len(results)
    print(f"\nBatch complete: {len(results)}/{total} transcribed ({skipped} skipped) "
          f"in {time.monotonic() - batch_start:.0f}s")
    if n_failed > 0:
        print(f"Failures logged to {failures_path}")
    return results
