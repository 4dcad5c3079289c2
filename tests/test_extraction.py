"""Tests for oracle output coercion and the extraction / revision oracles."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from geomatricula.core.config import LLMConfig
from geomatricula.core.types import Hemisphere, PropertyType
from geomatricula.extraction.normalize import (
    coerce_extraction,
    coerce_segment,
    coerce_segments,
    coerce_urban_dimensions,
    coerce_utm,
    parse_decimal,
    parse_oracle_json,
)
from geomatricula.extraction.oracle import (
    HISTORY_LIMIT,
    ExtractionOracle,
    OracleResponseError,
    PropertyContext,
    RevisionOracle,
    coerce_revision_reply,
)
from geomatricula.llm.client import LLMClient, LLMResponseError
from geomatricula.llm.providers.openai_compat import OpenAICompatClient
from tests.conftest import square_payload, square_segments


ORACLE_PAYLOAD = {
    "matricula": "45.678",
    "owner": "Maria Aparecida Souza",
    "registryOffice": "2º Registro de Imóveis de Campinas",
    "city": "Campinas",
    "state": "sp",
    "propertyType": "rural",
    "areaDeclared": "12.500,00 m²",
    "perimeterDeclared": 554.75,
    "utmCoordinates": {"zone": "23K", "hemisphere": "s", "firstVertex": {"n": "7.475.120,50", "e": 287300.2}},
    "segments": square_payload(),
}


def _mock_llm(reply: str | Exception) -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.config = LLMConfig(vision_model="vision-test")
    if isinstance(reply, Exception):
        client.chat = AsyncMock(side_effect=reply)
    else:
        client.chat = AsyncMock(return_value=reply)
    return client


def _fenced(payload: dict) -> str:
    return "Segue a extração:\n```json\n" + json.dumps(payload, ensure_ascii=False) + "\n```"


class TestParseDecimal:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (45.5, 45.5),
            (12, 12.0),
            ("45,50m", 45.5),
            ("12.487,35 m²", 12487.35),
            ("1,234.5", 1234.5),
            ("1.234.567", 1234567.0),
            ("120.00", 120.0),
            ("1.500", 1500.0),
            ("1.500 m²", 1500.0),
            ("-2.000", -2000.0),
            ("0.875", 0.875),
            ("45.5", 45.5),
            ("7382536.544", 7382536.544),
        ],
    )
    def test_readable(self, raw, expected):
        assert parse_decimal(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "sem medida", True, "-"])
    def test_unreadable(self, raw):
        assert parse_decimal(raw) is None


class TestCoerceSegment:
    def test_portuguese_keys(self):
        segment = coerce_segment({"rumo": "N 30° E", "distancia": "45,50 m", "confrontante": "Rio Claro"}, 2)
        assert segment.index == 2
        assert segment.bearing_raw == "N 30° E"
        assert segment.distance_m == pytest.approx(45.5)
        assert segment.neighbor == "Rio Claro"

    def test_camel_case_keys(self):
        segment = coerce_segment(
            {"index": 4, "bearingRaw": "Az 10°", "distanceM": 10, "confrontation": "Lote 3", "customName": "M-04"}, 1
        )
        assert segment.index == 4
        assert segment.custom_name == "M-04"

    def test_derived_fields_dropped(self):
        segment = coerce_segment(
            {"bearingRaw": "Az 90", "distanceM": 10, "deltaX": 5.0, "deltaY": 5.0, "bearingAzimuth": 3.0}, 1
        )
        assert segment.delta_x == 0.0
        assert segment.bearing_azimuth == 0.0

    def test_index_from_point_label(self):
        assert coerce_segment({"point": "P7", "bearing": "Az 1", "distance": 1}, 1).index == 7

    def test_negative_distance_clamped(self):
        assert coerce_segment({"bearing": "Az 1", "distance": -3}, 1).distance_m == 0.0

    def test_missing_fields_default(self):
        segment = coerce_segment({}, 3)
        assert segment.bearing_raw == ""
        assert segment.distance_m == 0.0
        assert segment.confidence == pytest.approx(0.9)

    def test_confidence_clamped(self):
        assert coerce_segment({"confidence": 4}, 1).confidence == 1.0

    def test_skip_non_objects(self):
        segments = coerce_segments([{"bearing": "Az 1", "distance": 1}, "lixo", None])
        assert len(segments) == 1

    def test_non_list(self):
        assert coerce_segments({"bearing": "Az 1"}) == []


class TestCoerceDeed:
    def test_full_payload(self):
        extracted = coerce_extraction(ORACLE_PAYLOAD)
        assert extracted.matricula == "45.678"
        assert extracted.state == "SP"
        assert extracted.property_type == PropertyType.RURAL
        assert extracted.area_declared == pytest.approx(12500.0)
        assert extracted.perimeter_declared == pytest.approx(554.75)
        assert len(extracted.segments) == 4
        assert extracted.registry_office.startswith("2º")

    def test_utm(self):
        utm = coerce_utm(ORACLE_PAYLOAD["utmCoordinates"])
        assert utm.zone == 23
        assert utm.hemisphere == Hemisphere.SOUTH
        assert utm.first_vertex.n == pytest.approx(7475120.5)
        assert utm.first_vertex.e == pytest.approx(287300.2)

    def test_utm_bad_zone_dropped(self):
        assert coerce_utm({"zone": 99, "hemisphere": "x"}).zone is None

    def test_non_positive_area_dropped(self):
        assert coerce_extraction({"areaDeclared": 0}).area_declared is None
        assert coerce_extraction({"areaDeclared": "-10"}).area_declared is None

    def test_urban(self):
        extracted = coerce_extraction({
            "propertyType": "urbana",
            "urbanDimensions": {"front": "7,50", "rightSide": 20, "frontConfrontation": "Rua Sete"},
        })
        assert extracted.property_type == PropertyType.URBAN
        assert extracted.urban_dimensions.front == pytest.approx(7.5)
        assert extracted.urban_dimensions.back is None
        assert extracted.urban_dimensions.front_confrontation == "Rua Sete"

    def test_urban_not_an_object(self):
        assert coerce_urban_dimensions("7x20") is None


class TestParseOracleJson:
    def test_fenced(self):
        assert parse_oracle_json(_fenced({"a": 1})) == {"a": 1}

    def test_bare_object(self):
        assert parse_oracle_json('  {"a": 1}  ') == {"a": 1}

    @pytest.mark.parametrize("content", [None, "", "Claro, posso ajudar.", "```json\n[1, 2]\n```", "{nope"])
    def test_not_an_object(self, content):
        assert parse_oracle_json(content) is None


class TestExtractionOracle:
    @pytest.mark.asyncio
    async def test_extract_from_text(self):
        llm = _mock_llm(_fenced(ORACLE_PAYLOAD))
        extracted = await ExtractionOracle(llm).extract_from_text("MATRÍCULA 45.678 ...")
        assert extracted.city == "Campinas"
        messages = llm.chat.await_args.args[0]
        assert messages[0]["role"] == "system"
        assert "MATRÍCULA 45.678" in messages[1]["content"]
        assert llm.chat.await_args.kwargs["model"] is None

    @pytest.mark.asyncio
    async def test_extract_from_image_uses_vision_model(self):
        llm = _mock_llm(json.dumps(ORACLE_PAYLOAD))
        await ExtractionOracle(llm).extract_from_image("data:image/png;base64,AAAA")
        assert llm.chat.await_args.kwargs["model"] == "vision-test"
        parts = llm.chat.await_args.args[0][1]["content"]
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,AAAA"

    @pytest.mark.asyncio
    async def test_empty_text(self):
        with pytest.raises(OracleResponseError):
            await ExtractionOracle(_mock_llm("{}")).extract_from_text("   ")

    @pytest.mark.asyncio
    async def test_prose_reply(self):
        with pytest.raises(OracleResponseError, match="JSON"):
            await ExtractionOracle(_mock_llm("Não consegui ler o documento.")).extract_from_text("texto")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        llm = _mock_llm(httpx.ConnectError("refused"))
        with pytest.raises(OracleResponseError, match="unavailable"):
            await ExtractionOracle(llm).extract_from_text("texto")

    @pytest.mark.asyncio
    async def test_gateway_error_body(self, httpx_mock):
        httpx_mock.add_response(
            url="http://llm.test/v1/chat/completions",
            method="POST",
            json={"error": {"message": "quota"}},
        )
        client = OpenAICompatClient(LLMConfig(base_url="http://llm.test", api_key="sk-test", max_retries=0))
        try:
            with pytest.raises(OracleResponseError, match="unavailable"):
                await ExtractionOracle(client).extract_from_text("texto")
        finally:
            await client.close()


class TestRevisionOracle:
    CONTEXT = PropertyContext(matricula="45.678", city="Campinas", state="SP", closure_error=0.12)

    def test_history_is_trimmed(self):
        history = [{"role": "user", "content": f"m{i}"} for i in range(15)]
        messages = RevisionOracle(_mock_llm("")).build_messages(
            square_segments(), self.CONTEXT, "corrija o P2", history
        )
        assert len(messages) == 1 + HISTORY_LIMIT + 1
        assert messages[1]["content"] == "m5"
        assert messages[-1] == {"role": "user", "content": "corrija o P2"}
        assert "45.678" in messages[0]["content"]
        assert "Lote 1" in messages[0]["content"]

    def test_image_request(self):
        messages = RevisionOracle(_mock_llm("")).build_messages(
            [], self.CONTEXT, "veja a foto", image_data_url="data:image/jpeg;base64,BBBB"
        )
        assert messages[-1]["content"][1]["type"] == "image_url"

    @pytest.mark.asyncio
    async def test_prose_reply_has_no_segments(self):
        llm = _mock_llm("A matrícula tem 4 segmentos.")
        reply = await RevisionOracle(llm).propose(square_segments(), self.CONTEXT, "quantos?")
        assert reply.updated_segments is None
        assert reply.response_text == "A matrícula tem 4 segmentos."

    @pytest.mark.asyncio
    async def test_structured_reply(self):
        llm = _mock_llm(_fenced({
            "response": "Distância do P2 corrigida.",
            "updatedSegments": square_payload(90.0),
            "requiresConfirmation": True,
            "warningMessage": "Diverge da matrícula",
            "changeDescription": "P2: 100m -> 90m",
        }))
        reply = await RevisionOracle(llm).propose(square_segments(), self.CONTEXT, "corrija")
        assert reply.response_text == "Distância do P2 corrigida."
        assert len(reply.updated_segments) == 4
        assert reply.requires_confirmation is True
        assert reply.warning_message == "Diverge da matrícula"
        assert reply.change_description == "P2: 100m -> 90m"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        llm = _mock_llm(httpx.ReadTimeout("slow"))
        with pytest.raises(OracleResponseError):
            await RevisionOracle(llm).propose([], self.CONTEXT, "oi")

    @pytest.mark.asyncio
    async def test_malformed_completion(self):
        llm = _mock_llm(LLMResponseError("no choices"))
        with pytest.raises(OracleResponseError):
            await RevisionOracle(llm).propose([], self.CONTEXT, "oi")

    def test_malformed_segments_kept_for_validation(self):
        reply = coerce_revision_reply('{"response": "ok", "updated_segments": {"index": 1}}')
        assert reply.updated_segments == {"index": 1}
        assert reply.requires_confirmation is False
