"""Downloads the Prelinger sample film used by the ffmpeg end-to-end tests."""
from pathlib import Path

import httpx

IDENT = "KnifeThr1950"
SOURCE_URL = f"https://archive.org/download/{IDENT}/{IDENT}_512kb.mp4"
OUTPUT = Path("data/sample") / f"{IDENT}_512kb.mp4"


def main():
    if OUTPUT.exists():
        print(f"Already have {OUTPUT}")
        return
    OUTPUT.parent.mkdir(parents=True, exist_ok=True)
    tmp = OUTPUT.with_suffix(".part")
    print(f"Downloading {SOURCE_URL}...")
    with httpx.stream("GET", SOURCE_URL, follow_redirects=True, timeout=60) as resp:
        resp.raise_for_status()
        total = int(resp.headers.get("content-length", 0))
        done = 0
        with open(tmp, "wb") as f:
            for chunk in resp.iter_bytes():
                f.write(chunk)
                done += len(chunk)
                if total:
                    print(f"\r  {done * 100 // total}% ({done // 1024}KB)", end="", flush=True)
    print()
    tmp.rename(OUTPUT)
    print(f"Saved to {OUTPUT}")


if __name__ == "__main__":
    main()
