from typing import Callable, Optional, Sequence

from clipline import errors, types as t

Resolver = Callable[[str], Optional[str]]


def output_name(position: int) -> str:
    return f"clip_{position:05d}.mp4"


def build_plan(clips: Sequence[t.ScheduledClip], resolve: Resolver) -> t.RenderPlan:
    """One extraction per clip plus the concatenation order.

    A source that cannot be resolved fails the whole plan: it means the
    schedule and the media records disagree.
    """
    ordered = sorted(clips, key=lambda c: c.position)
    locators: dict[str, str] = {}
    extractions = []
    for clip in ordered:
        if clip.video_id not in locators:
            try:
                locator = resolve(clip.video_id)
            except LookupError:
                locator = None
            if not locator:
                raise errors.UnresolvedSource(clip.video_id)
            locators[clip.video_id] = locator
        extractions.append(t.ExtractInstruction(
            position=clip.position,
            video_id=clip.video_id,
            locator=locators[clip.video_id],
            start=clip.start,
            end=clip.end,
            output_name=output_name(clip.position),
        ))
    return t.RenderPlan(
        extractions=extractions,
        concat_order=[e.output_name for e in extractions],
        total_duration=round(sum(e.end - e.start for e in extractions), 2),
    )
