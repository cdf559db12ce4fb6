"""
Tests for the AI scan boundary. The HTTP call is always mocked.
"""

from unittest.mock import MagicMock

import pytest
import requests

from rendicion.services.ai_scanner import (
    AIScanner,
    ScanOk,
    ScanError,
    build_prompt,
    parse_model_reply,
    split_image,
)

IMAGE = "data:image/png;base64,aGVsbG8="


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    return response


def _reply(text):
    return _response(payload={"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def scanner(session):
    return AIScanner(api_key="test-key", api_url="https://example.test/generate", timeout=12, session=session)


class TestSplitImage:
    """Data URL and bare base64 handling."""

    def test_data_url(self):
        """The mime type comes from the data URL."""
        assert split_image(IMAGE) == ("image/png", "aGVsbG8=")

    def test_bare_base64_defaults_to_jpeg(self):
        """Bare base64 is treated as JPEG with whitespace removed."""
        assert split_image("aGVs\nbG8=") == ("image/jpeg", "aGVsbG8=")

    def test_invalid(self):
        """Empty or non-base64 payloads raise ValueError."""
        with pytest.raises(ValueError):
            split_image("")
        with pytest.raises(ValueError):
            split_image("not base64!!")


class TestParseModelReply:
    """JSON recovery from model replies."""

    def test_plain_json(self):
        """A plain JSON object parses."""
        assert parse_model_reply('{"importe": 100}') == {"importe": 100}

    def test_fenced_json(self):
        """Markdown fences are stripped."""
        assert parse_model_reply('```json\n{"importe": 100}\n```') == {"importe": 100}

    def test_json_inside_prose(self):
        """An object embedded in prose is found."""
        reply = 'Aquí está el resultado:\n{"importe": 100}\nSaludos'
        assert parse_model_reply(reply) == {"importe": 100}

    def test_unparseable(self):
        """Non-objects and broken JSON give None."""
        assert parse_model_reply("no json here") is None
        assert parse_model_reply("{broken") is None
        assert parse_model_reply("[1, 2]") is None


class TestAIScanner:
    """Scan results for every upstream outcome."""

    def test_not_configured(self, session):
        """A missing key fails before any request."""
        result = AIScanner(api_key="", session=session).scan(IMAGE)
        assert isinstance(result, ScanError)
        assert result.kind == "not_configured"
        session.post.assert_not_called()

    def test_bad_image(self, scanner, session):
        """A bad image fails before any request."""
        result = scanner.scan("not base64!!")
        assert isinstance(result, ScanError)
        assert result.kind == "bad_image"
        session.post.assert_not_called()

    def test_request_shape(self, scanner, session):
        """The request carries key, timeout, image and prompt."""
        session.post.return_value = _reply('{"importe": 1}')
        scanner.scan(IMAGE)

        args, kwargs = session.post.call_args
        assert args[0] == "https://example.test/generate"
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["timeout"] == 12
        body = kwargs["json"]
        assert body["generationConfig"]["temperature"] == 0.1
        parts = body["contents"][0]["parts"]
        assert parts[0]["inlineData"] == {"mimeType": "image/png", "data": "aGVsbG8="}
        assert "TARIFA/5" in parts[1]["text"]

    def test_fenced_reply(self, scanner, session):
        """A fenced reply yields the guess and full text."""
        reply = (
            '```json\n'
            '{"importe": "1234.50", "pais": "ARG", "tipoProducto": "TARIFA", '
            '"codigoArticulo": 5, "textoCompleto": "PEAJE\\nTOTAL 1234,50"}\n'
            '```'
        )
        session.post.return_value = _reply(reply)
        result = scanner.scan(IMAGE)

        assert isinstance(result, ScanOk)
        assert result.guess.amount == "1234.50"
        assert result.guess.country == "ARG"
        assert result.guess.article_code == 5
        assert result.raw_text == "PEAJE\nTOTAL 1234,50"

    def test_reply_without_full_text(self, scanner, session):
        """Without textoCompleto the reply is the raw text."""
        session.post.return_value = _reply('{"importe": 100}')
        result = scanner.scan(IMAGE)
        assert result.raw_text == '{"importe": 100}'

    def test_unparseable_reply_is_still_ok(self, scanner, session):
        """An unreadable reply is ok with an empty guess."""
        session.post.return_value = _reply("TOTAL 500 pesos")
        result = scanner.scan(IMAGE)
        assert isinstance(result, ScanOk)
        assert result.guess.amount is None
        assert result.raw_text == "TOTAL 500 pesos"

    def test_empty_reply(self, scanner, session):
        """A reply with no candidates is ok and empty."""
        session.post.return_value = _response(payload={"candidates": []})
        result = scanner.scan(IMAGE)
        assert isinstance(result, ScanOk)
        assert result.raw_text == ""

    @pytest.mark.parametrize("status,kind", [
        (400, "bad_image"),
        (403, "forbidden"),
        (429, "rate_limited"),
        (500, "upstream"),
        (503, "upstream"),
    ])
    def test_http_errors(self, scanner, session, status, kind):
        """HTTP errors map to error kinds with details."""
        session.post.return_value = _response(status, {"error": {"message": "nope"}})
        result = scanner.scan(IMAGE)
        assert isinstance(result, ScanError)
        assert result.kind == kind
        assert result.details == {"message": "nope"}

    def test_timeout(self, scanner, session):
        """A timeout maps to the timeout kind."""
        session.post.side_effect = requests.Timeout()
        result = scanner.scan(IMAGE)
        assert isinstance(result, ScanError)
        assert result.kind == "timeout"

    def test_connection_error(self, scanner, session):
        """A connection failure maps to upstream."""
        session.post.side_effect = requests.ConnectionError("refused")
        result = scanner.scan(IMAGE)
        assert isinstance(result, ScanError)
        assert result.kind == "upstream"


class TestPrompt:
    """Extraction prompt contents."""

    def test_obsolete_concept_not_offered(self):
        """The prompt lists active concepts only."""
        prompt = build_prompt()
        assert "HONPRO/1:" not in prompt
        assert "HONPRO/6" in prompt
