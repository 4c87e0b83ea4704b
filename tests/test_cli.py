"""
Tests for the claims command-line interface (mock provider only).
"""

import json

import pytest

from src.claims import cli
from src.utils.config import Settings

FRAUD_ARGS = [
    "fraud",
    "--type", "Accident",
    "--date", "2024-05-01",
    "--location", "Main Street, Springfield",
    "--description", "Rear bumper dented in a parking lot collision",
]


@pytest.fixture(autouse=True)
def no_keys(monkeypatch):
    """Ignore any provider keys present in the environment."""
    settings = Settings(_env_file=None, anthropic_api_key=None, openai_api_key=None)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)


class TestHelpers:
    def test_guess_mime_type(self):
        assert cli.guess_mime_type("scan.png") == "image/png"
        assert cli.guess_mime_type("invoice.pdf") == "application/pdf"
        assert cli.guess_mime_type("scan.png", "image/jpeg") == "image/jpeg"
        assert cli.guess_mime_type("no-extension") == "application/octet-stream"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestFraudCommand:
    def test_fraud_with_mock(self, capsys):
        cli.main(FRAUD_ARGS + ["--amount", "1200"])

        output = json.loads(capsys.readouterr().out)
        assert set(output) == {"fraudRiskScore", "riskLevel", "keyFindings", "recommendation"}
        assert 0 <= output["fraudRiskScore"] <= 100

    def test_blank_amount_is_missing(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(FRAUD_ARGS + ["--amount", " "])

        assert exc_info.value.code == 1
        assert '"MISSING_FIELDS"' in capsys.readouterr().err

    def test_provider_without_key(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--llm-provider", "claude"] + FRAUD_ARGS + ["--amount", "1200"])
        assert exc_info.value.code == 1


class TestDocumentCommands:
    def test_ocr_pdf_is_empty(self, tmp_path, capsys):
        pdf = tmp_path / "invoice.pdf"
        pdf.write_bytes(b"%PDF-1.4")

        cli.main(["ocr", str(pdf)])

        assert json.loads(capsys.readouterr().out) == {"file": str(pdf), "text": ""}

    def test_ocr_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["ocr", str(tmp_path / "nope.png")])
        assert exc_info.value.code == 1

    def test_unreadable_image(self, tmp_path, capsys):
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not an image")

        with pytest.raises(SystemExit):
            cli.main(["ocr", str(broken)])
        assert '"stage": "ocr"' in capsys.readouterr().err

    def test_verify_unreadable_invoice(self, tmp_path, capsys):
        pdf = tmp_path / "invoice.pdf"
        pdf.write_bytes(b"%PDF-1.4")

        cli.main([
            "verify", "--name", "Jane Doe", "--amount", "1200",
            "--type", "Accident", "--date", "2024-05-01", "--invoice", str(pdf),
        ])

        output = json.loads(capsys.readouterr().out)
        assert list(output["results"]) == ["invoice"]
        assert output["verification_status"] == "REJECTED"
