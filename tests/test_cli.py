import json

import pytest

from clipline import __main__ as cli


def test_schedule_command_prints_timeline(records, upload, tmp_dir, monkeypatch, capsys):
    upload("duck")
    candidates = tmp_dir / "clips.json"
    candidates.write_text("Here you go:\n" + json.dumps([
        {"videoId": "duck", "transcriptText": "Duck and cover.", "startTime": 10.0, "endTime": 11.0},
        {"videoId": "ghost", "transcriptText": "?", "startTime": 1.0, "endTime": 2.0},
    ]))
    monkeypatch.setattr("sys.argv", [
        "clipline", "--records-dir", str(tmp_dir / "records"), "schedule", str(candidates),
    ])

    cli.main()

    out, err = capsys.readouterr()
    printed = json.loads(out[out.index("[\n"):])
    assert printed == [{"videoId": "duck", "transcriptText": "Duck and cover.", "startTime": 8.0, "endTime": 13.0}]
    assert "unknown-source" in err


def test_no_command_prints_help(monkeypatch, tmp_dir):
    monkeypatch.setattr("sys.argv", ["clipline", "--records-dir", str(tmp_dir)])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 1
