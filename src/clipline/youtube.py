from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol
from urllib import parse as urlparse
import uuid

import httpx
import webvtt
import yt_dlp

from clipline import util


def extract_video_id(url: str) -> Optional[str]:
    parsed = urlparse.urlparse(url)
    params = urlparse.parse_qs(parsed.query)
    if 'v' in params:
        return params['v'][0]
    if parsed.hostname in ('youtu.be',):
        return parsed.path.lstrip('/')
    if parsed.path.startswith('/shorts/'):
        return parsed.path.split('/')[2]
    return None


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?{urlparse.urlencode({'v': video_id})}"


@dataclass(frozen=True)
class Metadata:
    title: str
    author: Optional[str]
    duration_seconds: float


@dataclass(frozen=True)
class CaptionCue:
    text: str
    offset_ms: int
    duration_ms: int


class Downloader(Protocol):
    def download_video(self, video_id: str, download_dir: Path) -> Path: ...
    def metadata(self, video_id: str) -> Metadata: ...
    def captions(self, video_id: str, language: str = 'en') -> Optional[list[CaptionCue]]: ...


class RealDownloader:

    @classmethod
    def _download(cls, video_id: str, download_dir: Path, fmt: str) -> Path:
        filename = str(uuid.uuid4())
        ydl_opts = {
            'format': fmt,
            'paths': {'home': str(download_dir)},
            'outtmpl': f'{filename}.%(ext)s',
            'merge_output_format': 'mp4',
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            ydl.download([video_url(video_id)])
        for f in download_dir.iterdir():
            if filename in f.name:
                return f
        raise Exception(f'No matching file produced in directory {download_dir}')

    @classmethod
    def download_video(cls, video_id: str, download_dir: Path) -> Path:
        return cls._download(video_id, download_dir, 'bestvideo+bestaudio/best')

    @classmethod
    def download_audio(cls, video_id: str, download_dir: Path) -> Path:
        return cls._download(video_id, download_dir, 'bestaudio')

    @classmethod
    def metadata(cls, video_id: str) -> Metadata:
        info = cls._fetch_info(video_id)
        return Metadata(
            title=info.get('title', ''),
            author=info.get('channel'),
            duration_seconds=float(info.get('duration') or 0.0),
        )

    @classmethod
    def captions(cls, video_id: str, language: str = 'en') -> Optional[list[CaptionCue]]:
        info = cls._fetch_info(video_id)

        def get_subtitles_vtt_url():
            subs = info.get('subtitles', {}).get(language, [])
            match = util.find(lambda s: s.get('ext') == 'vtt', subs)
            return (match or {}).get('url')

        def get_captions_vtt_url():
            captions = info.get('automatic_captions', {}).get(language, [])
            match = util.find(lambda s: s.get('ext') == 'vtt' and 'url' in s, captions)
            if match:
                return match['url']
            match = util.find(lambda s: s.get('protocol') == 'm3u8_native' and 'url' in s, captions)
            m3u8_url = (match or {}).get('url')
            if not m3u8_url:
                return None

            m3u8 = httpx.get(m3u8_url).text
            return util.find(lambda l: l.startswith('https://www.youtube.com/api/'), m3u8.splitlines())

        vtt_url = get_subtitles_vtt_url() or get_captions_vtt_url()
        if not vtt_url:
            return None

        vtt_text = httpx.get(vtt_url).text
        return list(cls._cues(webvtt.from_string(vtt_text)))

    @classmethod
    def _cues(cls, vtt: webvtt.WebVTT) -> Iterator[CaptionCue]:
        for caption in vtt:
            text = " ".join(line.strip() for line in caption.text.splitlines()).strip()
            if not text:
                continue
            start = cls._parse_vtt_time(caption.start)
            end = cls._parse_vtt_time(caption.end)
            yield CaptionCue(text=text, offset_ms=start, duration_ms=max(end - start, 0))

    @classmethod
    def _parse_vtt_time(cls, t: str) -> int:
        dot_pieces = t.split('.')
        ms = 0 if len(dot_pieces) == 1 else int(dot_pieces[1].ljust(3, '0')[:3])

        colon_pieces = list(reversed(dot_pieces[0].split(':')))
        if 0 < len(colon_pieces): ms += 1000 * int(colon_pieces[0])
        if 1 < len(colon_pieces): ms += 60000 * int(colon_pieces[1])
        if 2 < len(colon_pieces): ms += 3600000 * int(colon_pieces[2])

        return ms

    @classmethod
    def _fetch_info(cls, video_id: str) -> util.Json:
        with yt_dlp.YoutubeDL({'quiet': True, 'skip_download': True}) as ydl:
            return ydl.extract_info(video_url(video_id), download=False)
