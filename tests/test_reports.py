"""Tests de bout en bout de la génération de rapports (SSE, indexation, PDF)."""

import pytest

from jyotish.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_OK,
)
from jyotish.domain.errors import PersistenceError
from jyotish.domain.sse import GENERIC_STREAM_ERROR
from tests.conftest import signup_and_login, sse_events
from tests.fakes import PDF_BYTES


def _generate(client, headers, profile_id, report_type="career", **extra):
    return client.post(
        "/api/v1/reports/generate",
        json={"profileId": profile_id, "reportType": report_type, **extra},
        headers=headers,
    )


def _report_id(events):
    return events[0]["reportId"]


def test_career_report_end_to_end(client, auth_headers, make_profile, completions, embedder):
    completions.deltas = ["Strong", " leadership."]
    profile = make_profile()

    r = _generate(client, auth_headers, profile["id"])
    assert r.status_code == HTTP_OK
    assert r.headers["content-type"].startswith("text/event-stream")
    events = sse_events(r.text)
    assert "reportId" in events[0]
    assert [e["content"] for e in events if isinstance(e, dict) and "content" in e] == [
        "Strong",
        " leadership.",
    ]
    assert events[-1] == "[DONE]"

    report_id = _report_id(events)
    r = client.get(f"/api/v1/reports/{report_id}", headers=auth_headers)
    assert r.status_code == HTTP_OK
    detail = r.json()
    assert detail["report"]["generation_status"] == "complete"
    assert detail["report"]["content"] == "Strong leadership."
    assert detail["report"]["model_used"] == "fake/model"
    assert detail["sections"] == [{"title": "Report", "content": "Strong leadership."}]

    # un seul segment, index 0, embarqué en un seul lot
    assert embedder.batches == [["Strong leadership."]]
    container = client.app.state.container
    query = client.portal.call(embedder.embed, "leadership")
    chunks = client.portal.call(
        container.chunk_store.search, profile["id"], query, "leadership", 10
    )
    assert len(chunks) == 1
    assert chunks[0].report_id == report_id
    assert chunks[0].metadata["report_type"] == "career"

    # prompt: système avec la langue, gabarit carrière
    messages = completions.last_messages
    assert messages[0]["role"] == "system"
    assert messages[0]["content"].endswith("Respond in English.")
    assert "Career & Business Horoscope Analysis" in messages[1]["content"]
    assert completions.calls[-1]["title"] == "JyotishAI"


def test_report_pdf_is_generated_by_background_job(client, auth_headers, make_profile, astro):
    profile = make_profile()
    events = sse_events(_generate(client, auth_headers, profile["id"]).text)
    report_id = _report_id(events)

    container = client.app.state.container
    client.portal.call(container.jobs.drain)

    assert ("POST", "/pdf/report") in [(m, p) for m, p, _ in astro.requests]
    detail = client.get(f"/api/v1/reports/{report_id}", headers=auth_headers).json()
    assert detail["report"]["pdf_url"] == f"/api/v1/reports/{report_id}/pdf"

    r = client.get(f"/api/v1/reports/{report_id}/pdf", headers=auth_headers)
    assert r.status_code == HTTP_OK
    assert r.headers["content-type"] == "application/pdf"
    assert r.content == PDF_BYTES


def test_pdf_missing_is_not_found(client, auth_headers, make_profile, astro):
    profile = make_profile()
    astro.status = 500
    # le moteur échoue aussi pour le PDF: le rapport reste sans PDF
    events = sse_events(_generate(client, auth_headers, profile["id"]).text)
    report_id = _report_id(events)
    r = client.get(f"/api/v1/reports/{report_id}/pdf", headers=auth_headers)
    assert r.status_code == HTTP_NOT_FOUND


def test_hindi_report_with_year(client, auth_headers, make_profile, completions):
    profile = make_profile()
    r = _generate(client, auth_headers, profile["id"], "yearly", language="hi", year=2027)
    assert r.status_code == HTTP_OK
    messages = completions.last_messages
    assert messages[0]["content"].endswith("Respond in Hindi.")
    assert "2027 Yearly Horoscope" in messages[1]["content"]
    report_id = _report_id(sse_events(r.text))
    detail = client.get(f"/api/v1/reports/{report_id}", headers=auth_headers).json()
    assert detail["report"]["language"] == "hi"
    assert detail["report"]["year"] == 2027


def test_stream_failure_marks_report_failed(client, auth_headers, make_profile, completions):
    completions.deltas = ["## Career\n", "partial text"]
    completions.fail_after = 1
    profile = make_profile()
    events = sse_events(_generate(client, auth_headers, profile["id"]).text)

    assert {"content": "## Career\n"} in events
    assert {"type": "error", "message": GENERIC_STREAM_ERROR} in events
    assert events[-1] == "[DONE]"
    detail = client.get(f"/api/v1/reports/{_report_id(events)}", headers=auth_headers).json()
    assert detail["report"]["generation_status"] == "failed"


def test_save_failure_marks_report_failed_and_signals_client(
    client, auth_headers, make_profile, completions, embedder, monkeypatch
):
    completions.deltas = ["Strong", " leadership."]
    profile = make_profile()
    container = client.app.state.container

    async def broken_mark_complete(report_id, content):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(container.reports, "mark_complete", broken_mark_complete)
    events = sse_events(_generate(client, auth_headers, profile["id"]).text)

    assert {"content": " leadership."} in events
    assert events[-2] == {"type": "error", "message": GENERIC_STREAM_ERROR}
    assert events[-1] == "[DONE]"
    detail = client.get(f"/api/v1/reports/{_report_id(events)}", headers=auth_headers).json()
    assert detail["report"]["generation_status"] == "failed"
    # ni indexation ni PDF pour un texte non enregistré
    assert embedder.batches == []
    client.portal.call(container.jobs.drain)
    assert not container.pdf_storage.exists(_report_id(events))


def test_provider_rejection_before_stream(client, auth_headers, make_profile, completions):
    completions.fail_on_open = True
    profile = make_profile()
    r = _generate(client, auth_headers, profile["id"])
    assert r.status_code == HTTP_INTERNAL_SERVER_ERROR
    assert r.json()["code"] == "UPSTREAM_ERROR"

    reports = client.get(
        f"/api/v1/profiles/{profile['id']}/reports", headers=auth_headers
    ).json()
    assert [rep["generation_status"] for rep in reports] == ["failed"]


def test_embedding_failure_keeps_report_complete(
    client, auth_headers, make_profile, embedder
):
    embedder.fail = True
    profile = make_profile()
    events = sse_events(_generate(client, auth_headers, profile["id"]).text)
    assert events[-1] == "[DONE]"
    assert not any(isinstance(e, dict) and e.get("type") == "error" for e in events)
    detail = client.get(f"/api/v1/reports/{_report_id(events)}", headers=auth_headers).json()
    assert detail["report"]["generation_status"] == "complete"


def test_report_requires_calculated_chart(client, auth_headers, make_profile):
    profile = make_profile(calculate=False)
    r = _generate(client, auth_headers, profile["id"])
    assert r.status_code == HTTP_NOT_FOUND


@pytest.mark.parametrize("body", [{"reportType": "tarot"}, {"language": "fr"}])
def test_invalid_report_request(client, auth_headers, make_profile, body):
    profile = make_profile()
    payload = {"profileId": profile["id"], "reportType": "career", **body}
    r = client.post("/api/v1/reports/generate", json=payload, headers=auth_headers)
    assert r.status_code == HTTP_BAD_REQUEST


def test_reports_are_private(client, auth_headers, make_profile):
    profile = make_profile()
    report_id = _report_id(sse_events(_generate(client, auth_headers, profile["id"]).text))
    intruder = signup_and_login(client, "other@example.com")
    assert client.get(f"/api/v1/reports/{report_id}", headers=intruder).status_code == 404
    r = client.get(f"/api/v1/profiles/{profile['id']}/reports", headers=intruder)
    assert r.status_code == HTTP_NOT_FOUND
    r = _generate(client, intruder, profile["id"])
    assert r.status_code == HTTP_NOT_FOUND


def test_list_reports_for_profile(client, auth_headers, make_profile):
    profile = make_profile()
    _generate(client, auth_headers, profile["id"], "career")
    _generate(client, auth_headers, profile["id"], "wealth")
    reports = client.get(
        f"/api/v1/profiles/{profile['id']}/reports", headers=auth_headers
    ).json()
    assert sorted(r["report_type"] for r in reports) == ["career", "wealth"]
