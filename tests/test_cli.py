"""
Smoke tests for the generate_mock_bills command line entry point.
"""

import json
import sys

from loguru import logger

import generate_mock_bills


def teardown_function():
    logger.remove()
    logger.add(sys.stderr)


class TestCli:
    def test_list(self, capsys):
        assert generate_mock_bills.main(["--offline", "--list"]) == 0
        assert "clean-er-commercial" in capsys.readouterr().out

    def test_offline_run_with_json_log(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OUTPUT_DIRECTORY", str(tmp_path / "bills"))
        log_file = tmp_path / "run.jsonl"

        code = generate_mock_bills.main(
            ["--offline", "-s", "clean-er-commercial", "--seed", "1", "--log-file", str(log_file)]
        )
        logger.complete()

        assert code == 0
        saved = list((tmp_path / "bills").glob("*.json"))
        assert len(saved) == 1
        first_record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert "record" in first_record

    def test_unknown_scenario_fails(self):
        assert generate_mock_bills.main(["--offline", "-s", "nope", "--no-save"]) == 1
