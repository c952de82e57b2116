"""
Tests for the command line entry point
Run with: python -m pytest tests/test_cli.py -v
"""
import json

import structlog

from montage.cli import EXIT_INVALID_INPUT, EXIT_OK, build_parser, main


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestCli:

    def setup_method(self):
        self.audio = {
            "duration": 10.0,
            "tempo": 120.0,
            "beats": [{"time": i * 0.5, "confidence": 0.9} for i in range(21)],
        }
        self.video = {
            "duration": 12.0,
            "scenes": [
                {"id": "s0", "start_time": 0.0, "end_time": 4.0},
                {"id": "s1", "start_time": 4.0, "end_time": 12.0},
            ],
        }

    def teardown_method(self):
        structlog.reset_defaults()

    def test_parser_defaults(self):
        args = build_parser().parse_args(["track.json", "a.json", "b.json"])
        assert args.videos == ["a.json", "b.json"]
        assert args.style is None
        assert args.strict is None

    def test_writes_output_file(self, tmp_path, capsys):
        audio = _write(tmp_path / "track.json", self.audio)
        video = _write(tmp_path / "clip_a.json", self.video)
        output = tmp_path / "edl.json"

        code = main([audio, video, "--seed", "3", "--output", str(output)])

        assert code == EXIT_OK
        assert "EDL written to" in capsys.readouterr().out
        result = json.loads(output.read_text(encoding="utf-8"))
        assert result["seed"] == 3
        assert result["edl"]["clips"][0]["source_video_id"] == "clip_a"
        assert result["edl"]["duration"] == 10.0

    def test_prints_json_to_stdout(self, tmp_path, capsys):
        audio = _write(tmp_path / "track.json", self.audio)
        video = _write(tmp_path / "clip_a.json", self.video)

        assert main([audio, video, "--style", "cinematic"]) == EXIT_OK
        result = json.loads(capsys.readouterr().out)
        assert result["stats"]["total_cuts"] == len(result["edl"]["cut_points"])

    def test_invalid_scene_bounds(self, tmp_path):
        audio = _write(tmp_path / "track.json", self.audio)
        video = _write(tmp_path / "clip_a.json", self.video)
        assert main([audio, video, "--min-scene", "6", "--max-scene", "5"]) == EXIT_INVALID_INPUT

    def test_missing_file(self, tmp_path):
        video = _write(tmp_path / "clip_a.json", self.video)
        assert main([str(tmp_path / "missing.json"), video]) == EXIT_INVALID_INPUT

    def test_not_an_object(self, tmp_path):
        audio = _write(tmp_path / "track.json", [1, 2, 3])
        video = _write(tmp_path / "clip_a.json", self.video)
        assert main([audio, video]) == EXIT_INVALID_INPUT
