"""Tests for the Kincho CLI.

Covers run (text, JSON, overrides, persistence, errors), decisions
list/show, config show/path, and --version via CliRunner.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from kincho import __version__
from kincho.cli import app
from kincho.consensus.evaluators import FunctionEvaluators
from kincho.persistence.database import close_db, init_db
from kincho.persistence.decisions import DecisionStore
from kincho.schemas import DecisionQuery, DecisionRecord, FinancialResult, MetaResult

# NO_COLOR=1 keeps Rich from injecting ANSI codes into matched text.
# COLUMNS=200 prevents wrapping that could split a phrase across lines.
runner = CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})

_SAMPLE = Path(__file__).parent.parent / "scenarios" / "negotiated.json"


# ── Factories ──────────────────────────────────────────────────────


def _write_scenario(tmp_path: Path, **evaluations) -> Path:
    data = json.loads(_SAMPLE.read_text())
    data["evaluations"].update(evaluations)
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(data))
    return path


def _split_deadlock(tmp_path: Path) -> Path:
    return _write_scenario(
        tmp_path,
        financial_analyzer=[{"approved": True, "fit_score": 0.9}],
        risk_engine=[{"approved": False, "risk_assessment": {"aggregate_risk": 0.8}}],
        meta_cognition=[{"confidence": 0.4}],
    )


def _seed_record(db_path: str, record: DecisionRecord) -> None:
    async def _save():
        db = await init_db(db_path)
        try:
            await DecisionStore(db).save_record(record)
        finally:
            await close_db(db)

    asyncio.run(_save())


def _make_record(record_id: str = "5f2c9a10-0000-4000-8000-000000000001") -> DecisionRecord:
    return DecisionRecord(
        id=record_id,
        user_id="donor-117",
        allocation_request_id="req-2041",
        content=json.dumps({
            "decision": "escalated",
            "votes": [
                {"subagent": "financial_analyzer", "vote": "approve", "confidence": 0.9},
                {"subagent": "risk_engine", "vote": "reject", "confidence": 0.2},
                {"subagent": "meta_cognition", "vote": "reject", "confidence": 0.4},
            ],
            "concerns": ["Aggregate risk too high: 0.80"],
        }),
        importance=0.5,
        metadata={"decision": "escalated", "round_count": 1, "amount": 10000.0},
    )


# ── Top level ─────────────────────────────────────────────────────


class TestTopLevel:
    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "run" in result.output
        assert "decisions" in result.output
        assert "config" in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"kincho {__version__}" in result.output


# ── kincho run ────────────────────────────────────────────────────


class TestRun:
    def test_json_output(self):
        result = runner.invoke(app, ["run", str(_SAMPLE), "--no-persist", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["decision"] == "modified"
        assert data["achieved"] is True
        assert len(data["rounds"]) == 2
        assert {m["cause_id"]: m["proposed_amount"] for m in data["final_modifications"]} == {
            "clean-water-kenya": 3900.0, "rural-schools": 2600.0,
        }

    def test_rendered_output(self):
        result = runner.invoke(app, ["run", str(_SAMPLE), "--no-persist"])
        assert result.exit_code == 0, result.output
        assert "Consensus Decision" in result.output
        assert "MODIFIED" in result.output
        assert "Negotiation Rounds" in result.output
        assert "Final Modifications" in result.output

    def test_audit_trail(self):
        result = runner.invoke(app, ["run", str(_SAMPLE), "--no-persist", "--audit"])
        assert result.exit_code == 0, result.output
        assert "Audit Trail" in result.output
        assert "round_start" in result.output

    def test_max_rounds_override(self):
        result = runner.invoke(
            app, ["run", str(_SAMPLE), "--no-persist", "--json", "--max-rounds", "1"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["decision"] == "escalated"
        assert data["human_review_recommended"] is True

    def test_no_escalate(self, tmp_path):
        path = _split_deadlock(tmp_path)
        escalated = json.loads(
            runner.invoke(app, ["run", str(path), "--no-persist", "--json"]).output,
        )
        rejected = json.loads(
            runner.invoke(
                app, ["run", str(path), "--no-persist", "--json", "--no-escalate"],
            ).output,
        )
        assert escalated["decision"] == "escalated"
        assert rejected["decision"] == "rejected"

    def test_invalid_threshold(self):
        result = runner.invoke(
            app, ["run", str(_SAMPLE), "--no-persist", "--threshold", "1.5"],
        )
        assert result.exit_code == 1
        assert "Invalid option" in result.output

    def test_missing_scenario(self, tmp_path):
        result = runner.invoke(app, ["run", str(tmp_path / "absent.json"), "--no-persist"])
        assert result.exit_code == 1
        assert "Invalid scenario file" in result.output

    def test_malformed_scenario(self, tmp_path):
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps({"request": {}}))
        result = runner.invoke(app, ["run", str(path), "--no-persist"])
        assert result.exit_code == 1
        assert "Invalid scenario file" in result.output

    def test_evaluator_failure(self):
        def _broken(req, fund):
            raise TimeoutError("risk model timed out")

        evaluators = FunctionEvaluators(
            financial=lambda req, fund: FinancialResult(approved=True, fit_score=0.9),
            risk=_broken,
            meta=lambda req, fund: MetaResult(confidence=0.9),
        )
        with patch(
            "kincho.cli.ScriptedEvaluators.from_evaluations", return_value=evaluators,
        ):
            result = runner.invoke(app, ["run", str(_SAMPLE), "--no-persist"])
        assert result.exit_code == 1
        assert "Evaluator failed" in result.output
        assert "risk_engine" in result.output

    def test_persists_decision(self, tmp_path):
        db_path = str(tmp_path / "decisions.db")
        result = runner.invoke(app, ["run", str(_SAMPLE), "--db", db_path, "--json"])
        assert result.exit_code == 0, result.output

        listed = runner.invoke(app, ["decisions", "list", "--db", db_path])
        assert listed.exit_code == 0
        assert "1 shown" in listed.output

        async def _load():
            db = await init_db(db_path)
            try:
                return await DecisionStore(db).list_records(DecisionQuery())
            finally:
                await close_db(db)

        records = asyncio.run(_load())
        assert [r.decision for r in records] == ["modified"]
        assert records[0].allocation_request_id == "req-2041"


# ── kincho decisions ──────────────────────────────────────────────


class TestDecisions:
    def test_list_empty(self, tmp_path):
        db_path = tmp_path / "store" / "decisions.db"
        result = runner.invoke(app, ["decisions", "list", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "No decision records found" in result.output
        assert not db_path.exists()
        assert not db_path.parent.exists()

    def test_list_filter(self, tmp_path):
        db_path = str(tmp_path / "decisions.db")
        _seed_record(db_path, _make_record())
        matched = runner.invoke(
            app, ["decisions", "list", "--db", db_path, "--decision", "escalated"],
        )
        unmatched = runner.invoke(
            app, ["decisions", "list", "--db", db_path, "--decision", "approved"],
        )
        assert "1 shown" in matched.output
        assert "No decision records found" in unmatched.output

    def test_show_by_prefix(self, tmp_path):
        db_path = str(tmp_path / "decisions.db")
        _seed_record(db_path, _make_record())
        result = runner.invoke(app, ["decisions", "show", "5f2c9a10", "--db", db_path])
        assert result.exit_code == 0, result.output
        assert "ESCALATED" in result.output
        assert "req-2041" in result.output
        assert "Final Votes" in result.output
        assert "Aggregate risk too high: 0.80" in result.output

    def test_show_not_found(self, tmp_path):
        db_path = str(tmp_path / "decisions.db")
        _seed_record(db_path, _make_record())
        result = runner.invoke(app, ["decisions", "show", "deadbeef", "--db", db_path])
        assert result.exit_code == 1
        assert "Decision record not found" in result.output

    def test_show_missing_database(self, tmp_path):
        db_path = tmp_path / "store" / "decisions.db"
        result = runner.invoke(app, ["decisions", "show", "deadbeef", "--db", str(db_path)])
        assert result.exit_code == 1
        assert "Decision record not found" in result.output
        assert not db_path.exists()
        assert not db_path.parent.exists()


# ── kincho config ─────────────────────────────────────────────────


class TestConfig:
    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "Max Rounds" in result.output
        assert "Approval Threshold" in result.output
        assert "0.67" in result.output

    def test_show_custom_file(self, tmp_path):
        path = tmp_path / "kincho.toml"
        path.write_text("[consensus]\nmax_rounds = 7\n")
        result = runner.invoke(app, ["config", "show", "--config", str(path)])
        assert result.exit_code == 0
        assert "7" in result.output

    def test_show_bad_file(self, tmp_path):
        path = tmp_path / "kincho.toml"
        path.write_text("[consensus]\nmin_confidence = 3.0\n")
        result = runner.invoke(app, ["config", "show", "--config", str(path)])
        assert result.exit_code == 1
        assert "Error loading config" in result.output

    def test_path(self):
        result = runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert "Defaults:" in result.output
        assert "found" in result.output
