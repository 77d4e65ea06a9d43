"""Tests du client du moteur astrologique et du stockage des PDF."""

import pytest

from jyotish.domain.errors import AstroEngineError
from jyotish.infra.storage.pdf_storage import PDFStorage
from tests.fakes import FakeAstroEngine, chart_payload


@pytest.mark.asyncio
async def test_calculate_chart_sends_birth_data_and_validates_payload():
    astro = FakeAstroEngine()
    chart, raw = await astro.calculate_chart(
        birth_date="1990-08-15",
        birth_time="06:30",
        latitude=18.52,
        longitude=73.85,
        timezone="Asia/Kolkata",
    )
    await astro.aclose()
    assert chart.lagna.sign == "Aries"
    assert chart.planet("Moon").nakshatra == "Pushya"
    assert raw == chart_payload()
    _, path, body = astro.requests[0]
    assert path == "/chart"
    assert "ayanamsha" not in body


@pytest.mark.asyncio
async def test_extra_keys_are_kept_and_missing_optionals_defaulted():
    payload = chart_payload()
    payload["vargas"] = {"D9": {}}
    payload.pop("yogas")
    payload.pop("houses")
    astro = FakeAstroEngine(chart=payload)
    chart, _ = await astro.calculate_chart("1990-08-15", "06:30", 0.0, 0.0, "UTC")
    await astro.aclose()
    assert chart.yogas == []
    assert chart.house(10).sign == "Unknown"
    assert chart.model_extra["vargas"] == {"D9": {}}


@pytest.mark.asyncio
async def test_malformed_chart_is_engine_error():
    astro = FakeAstroEngine(chart={"lagna": {"sign": "Aries"}})
    with pytest.raises(AstroEngineError):
        await astro.calculate_chart("1990-08-15", "06:30", 0.0, 0.0, "UTC")
    await astro.aclose()


@pytest.mark.asyncio
async def test_engine_status_error_is_mapped():
    astro = FakeAstroEngine(status=502)
    with pytest.raises(AstroEngineError) as ei:
        await astro.current_transits()
    await astro.aclose()
    assert ei.value.status == 502
    assert ei.value.endpoint == "/chart/transits"


@pytest.mark.asyncio
async def test_natal_aspects_and_pdf():
    astro = FakeAstroEngine()
    transits = await astro.current_transits()
    aspects = await astro.natal_aspects(chart_payload(), transits.model_dump(mode="json"))
    pdf = await astro.render_pdf("Career - Asha", "## Career\nText", "JyotishAI", "career")
    await astro.aclose()
    assert [a.transiting_planet for a in aspects] == ["Saturn", "Jupiter", "Mars"]
    assert pdf.startswith(b"%PDF")
    _, _, body = astro.requests[-1]
    assert body == {
        "title": "Career - Asha",
        "content": "## Career\nText",
        "author": "JyotishAI",
        "subject": "career",
    }


def test_pdf_storage_writes_atomically(tmp_path):
    storage = PDFStorage(str(tmp_path / "pdf"))
    assert not storage.exists("r1")
    path = storage.save("r1", b"%PDF-1.4")
    assert path.read_bytes() == b"%PDF-1.4"
    assert storage.exists("r1")
    assert not list((tmp_path / "pdf").glob("*.tmp"))


@pytest.mark.parametrize("bad", ["", "../etc", "a/b", ".hidden"])
def test_pdf_storage_rejects_path_tricks(tmp_path, bad):
    with pytest.raises(ValueError):
        PDFStorage(str(tmp_path)).path_for(bad)
