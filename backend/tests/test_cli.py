"""
Tests for the esmc command line
"""
import json

import pytest

from esmc.cli.main import build_parser, main

FRAGMENTS = [
    json.dumps({"goals": ["Ship billing export"]}),
    json.dumps({"domains": ["payments"]}),
    json.dumps({"workflow": "trunk"}),
    json.dumps({"patterns": ["repository"]}),
]


class TestSynthesizeCommand:
    """esmc synthesize <piu> <dki> <uip> <pca>"""

    def test_prints_summary(self, capsys):
        code = main(["synthesize", *FRAGMENTS])

        out = json.loads(capsys.readouterr().out)
        assert code == 0
        assert out["technical_summary"]["primary_goal"] == "Ship billing export"
        assert out["complexity"] == "low"

    def test_wrong_argument_count(self, capsys):
        code = main(["synthesize", *FRAGMENTS[:2]])

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Usage: synthesize <piu> <dki> <uip> <pca>" in captured.err

    def test_invalid_json(self, capsys):
        code = main(["synthesize", "{oops", *FRAGMENTS[1:]])

        captured = capsys.readouterr()
        assert code == 1
        assert "Invalid JSON in PIU fragment" in captured.err


class TestHaltCommand:
    """esmc halt and esmc lessons"""

    def test_halt_records_lesson(self, capsys, tmp_path):
        ledger = str(tmp_path / "lessons.json")

        code = main(["halt", "-d", "Untangle the circular import in billing", "-k", "billing",
                     "--ledger", ledger])

        decision = json.loads(capsys.readouterr().out)
        assert code == 0
        assert decision["shouldHalt"] is True
        assert decision["severity"] == "critical"
        assert decision["lesson_id"] == "lesson-001"

        main(["lessons", "--ledger", ledger])
        lessons = json.loads(capsys.readouterr().out)
        assert [lesson["id"] for lesson in lessons] == ["lesson-001"]

    def test_clear_dialogue(self, capsys, tmp_path):
        code = main(["halt", "-d", "Add a footer link", "--ledger", str(tmp_path / "lessons.json"),
                     "--dialogue"])

        out = capsys.readouterr().out
        assert code == 0
        assert out.startswith("PHC CHECKPOINT: clear")

    def test_no_lesson_flag(self, capsys, tmp_path):
        ledger = tmp_path / "lessons.json"

        main(["halt", "-d", "circular import again", "--ledger", str(ledger), "--no-lesson"])

        assert json.loads(capsys.readouterr().out)["shouldHalt"] is True
        assert not ledger.exists()

    def test_corrupt_ledger_reported(self, capsys, tmp_path):
        ledger = tmp_path / "lessons.json"
        ledger.write_text("[", encoding="utf-8")

        code = main(["lessons", "--ledger", str(ledger)])

        assert code == 1
        assert "error" in capsys.readouterr().err


def test_tier_without_credentials(capsys, tmp_path):
    code = main(["tier", "--credentials", str(tmp_path / "missing.json")])

    out = json.loads(capsys.readouterr().out)
    assert code == 0
    assert out["tier"] == "FREE"
    assert out["features"]["intelligence"] == ["PIU"]


def test_verify_missing_manifest(capsys, tmp_path):
    code = main(["verify", str(tmp_path)])

    assert code == 1
    assert "Integrity manifest not found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 2


def test_halt_requires_description():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["halt"])
