import argparse
import json
import sys
from pathlib import Path

import dotenv
dotenv.load_dotenv()

PROVIDERS = ("auto", "assemblyai", "youtube", "whisper")


def _load_candidates(path: Path):
    from clipline import selection
    return selection.parse_candidates(selection.extract_json_array(path.read_text()))


def _print_schedule(result):
    from clipline import schedule
    print(json.dumps(schedule.clips_to_json(result.clips), indent=2))
    for r in result.rejections:
        print(f"Dropped candidate {r.candidate_index} ({r.video_id}): {r.reason} - {r.detail}", file=sys.stderr)


def main():
    parser = argparse.ArgumentParser(prog="clipline")
    parser.add_argument("--records-dir", type=Path, default=None, help="Directory of media records (default: $CLIPLINE_HOME/records)")
    sub = parser.add_subparsers(dest="command")

    p_ingest = sub.add_parser("ingest", help="Register uploaded files or remote video URLs")
    p_ingest.add_argument("locators", nargs="+")
    p_ingest.add_argument("--title", type=str, default=None)

    p_transcribe = sub.add_parser("transcribe")
    p_transcribe.add_argument("media_id")
    p_transcribe.add_argument("--provider", choices=PROVIDERS, default="auto")

    p_batch = sub.add_parser("batch", help="Transcribe many media sources concurrently")
    p_batch.add_argument("media_ids", nargs="*", help="Defaults to every ingested source")
    p_batch.add_argument("--concurrency", type=int, default=None)
    p_batch.add_argument("--force", action="store_true", help="Re-transcribe sources that already have a transcript")

    p_select = sub.add_parser("select", help="Ask the LLM for clip candidates")
    p_select.add_argument("media_ids", nargs="+")
    p_select.add_argument("--prompt", type=str, default=None)
    p_select.add_argument("--output", "-o", type=Path, default=None)

    p_schedule = sub.add_parser("schedule", help="Schedule a clip JSON file and print the timeline")
    p_schedule.add_argument("candidates", type=Path)

    p_render = sub.add_parser("render", help="Schedule, cut, join and upload a clip JSON file")
    p_render.add_argument("candidates", type=Path)

    args = parser.parse_args()

    from clipline import runtime
    from clipline.records import Records
    records = Records(args.records_dir or runtime.records_dir())

    if args.command == "ingest":
        from clipline import main as pipeline
        runtime.require(needs_ffmpeg=True)
        for locator in args.locators:
            pipeline.ingest(locator, records, title=args.title,
                            thumbnails_dir=runtime.home() / "thumbnails")

    elif args.command == "transcribe":
        from clipline import main as pipeline, transcribe as tr
        runtime.require(needs_assemblyai=args.provider in ("auto", "assemblyai"))
        source = records.get(args.media_id)
        transcriber = tr.choose(source) if args.provider == "auto" else tr.for_provider(args.provider)
        transcript = pipeline.transcribe(args.media_id, records, transcriber)
        for s in transcript.segments:
            print(f"[{s.start:.1f}-{s.end:.1f}] {s.text}")

    elif args.command == "batch":
        runtime.require(needs_assemblyai=True)
        import asyncio
        from clipline import batch
        media_ids = args.media_ids or [s.media_id for s in records.all()]
        if not media_ids:
            print("No media sources found.")
            sys.exit(1)
        print(f"Transcribing {len(media_ids)} media sources in batch mode...")
        asyncio.run(batch.transcribe_batch(
            media_ids, records, runtime.home() / "failures.jsonl",
            concurrency=args.concurrency or batch.DEFAULT_TRANSCRIBE_CONCURRENCY,
            force=args.force,
        ))

    elif args.command == "select":
        runtime.require(needs_anthropic=True)
        from clipline import main as pipeline, selection
        candidates = pipeline.select_clips(args.media_ids, records, selection.ClaudeSelector(), args.prompt)
        out = json.dumps([
            {"videoId": c.video_id, "transcriptText": c.text,
             "startTime": c.start, "endTime": c.end, "notes": c.notes}
            for c in candidates
        ], indent=2)
        if args.output:
            args.output.write_text(out)
            print(f"Wrote {len(candidates)} candidates to {args.output}")
        else:
            print(out)

    elif args.command == "schedule":
        from clipline import schedule
        candidates = _load_candidates(args.candidates)
        sources = {s.media_id: s for s in records.all()}
        _print_schedule(schedule.schedule(candidates, sources, schedule.SchedulerConfig.from_env()))

    elif args.command == "render":
        runtime.require(needs_ffmpeg=True)
        from clipline import main as pipeline
        result = pipeline.render(_load_candidates(args.candidates), records)
        _print_schedule(result.schedule)
        print(f"Output: {result.url} ({result.duration:.1f}s)")

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
