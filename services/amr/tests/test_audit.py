import pytest
import httpx
from httpx import ASGITransport

from answer_sets import EXAMPLE_LABELS
from services.amr import models
from services.amr.app import app
from services.amr.audit import verify_audit_chain, write_audit
from services.amr.db import get_db


@pytest.fixture(autouse=True)
def override_db(test_db_session):
    def _get_db_override():
        yield test_db_session

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_every_write_endpoint_creates_audit_record(test_db_session):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        r = await client.post("/assessments/sessions", headers={"X-Forwarded-For": "198.51.100.4"})
        session_id = r.json()["session_id"]

        for question_id, answer in EXAMPLE_LABELS.items():
            r = await client.post(
                f"/assessments/sessions/{session_id}/responses",
                json={"question_id": question_id, "answer": answer},
            )
            assert r.status_code == 200

        r = await client.post(f"/assessments/sessions/{session_id}/finalize")
        assert r.status_code == 200

        r = await client.get("/audit/verify")
        assert r.status_code == 200
        assert r.json() == {"ok": True}

    rows = test_db_session.query(models.AuditLog).order_by(models.AuditLog.ts.asc()).all()
    assert len(rows) == 1 + 12 + 1
    assert rows[0].ip_hash is not None
    assert "198.51.100.4" not in (rows[0].ip_hash or "")
    assert {r.entity_id for r in rows} == {session_id}


@pytest.mark.anyio
async def test_audit_chain_detects_tampering(test_db_session):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post("/assessments/sessions")
        await client.post("/assessments/sessions")

        row = test_db_session.query(models.AuditLog).order_by(models.AuditLog.ts.asc()).first()
        row.action = "assessment.session.delete"
        test_db_session.commit()

        r = await client.get("/audit/verify")
    assert r.json() == {"ok": False}


def test_audit_entries_chain_within_one_transaction(test_db_session):
    first = write_audit(db=test_db_session, action="a", entity_id="s1")
    second = write_audit(db=test_db_session, action="b", entity_id="s1", detail={"k": 1})
    test_db_session.commit()

    assert first.prev_hash is None
    assert second.prev_hash == first.entry_hash
    assert second.ts > first.ts
    assert verify_audit_chain(test_db_session) is True


def test_empty_audit_chain_verifies(test_db_session):
    assert verify_audit_chain(test_db_session) is True
