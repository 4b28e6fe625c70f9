"""Tests for analysis result polling and the analyzer-execution fallback."""

from __future__ import annotations

import pytest
from conftest import FakeGovernanceClient

from ruleset_validation.governance import AnalysisPoller, NoAnalysisResults, ResultSource
from ruleset_validation.governance.analysis_poller import filter_entries, result_entries

DEFINITION_SCOPE = "https://management.azure.com/.../apis/ruleset-test-1/versions/v/definitions/openapi"
EXECUTIONS_SCOPE = "https://management.azure.com/.../analyzerConfigs/spectral-openapi/analysisExecutions"
MATCH_TERMS = ["ruleset-test-20261017120000", "openapi"]


def routed(primary: list, fallback=None):
    """Responder serving queued primary responses, then the fallback payload."""
    queue = list(primary)

    def responder(method, url):
        if url.endswith("/analysisResults"):
            return queue.pop(0) if queue else None
        if url == EXECUTIONS_SCOPE:
            return fallback
        return None

    return responder


@pytest.fixture
def make_poller(fake_clock):
    def _make(responder, interval=10.0):
        client = FakeGovernanceClient(responder=responder)
        poller = AnalysisPoller(
            client,
            poll_interval=interval,
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )
        return poller, client

    return _make


class TestResultEntries:
    """Test extraction of result lists from feed responses."""

    def test_bare_list(self):
        assert result_entries([{"a": 1}]) == [{"a": 1}]

    def test_wrapped_list(self):
        assert result_entries({"value": [{"a": 1}], "nextLink": None}) == [{"a": 1}]
        assert result_entries({"results": [1]}) == [1]

    def test_no_list(self):
        assert result_entries(None) == []
        assert result_entries({"value": []}) == []
        assert result_entries({"status": "running"}) == []
        assert result_entries("text") == []


class TestFilterEntries:
    """Test textual filtering of analyzer executions."""

    def test_keeps_entries_mentioning_terms(self):
        entries = [
            {"id": "exec-1", "properties": {"apiId": "ruleset-test-20261017120000"}},
            {"id": "exec-2", "properties": {"apiId": "orders"}},
        ]
        assert filter_entries(entries, MATCH_TERMS) == [entries[0]]

    def test_falls_back_to_all_entries(self):
        entries = [{"id": "exec-1"}, {"id": "exec-2"}]
        assert filter_entries(entries, MATCH_TERMS) == entries

    def test_empty_terms_are_ignored(self):
        entries = [{"id": "exec-1"}, {"id": "exec-2"}]
        assert filter_entries(entries, ["", "exec-2"]) == [entries[1]]


class TestPrimaryFeed:
    """Test the definition analysisResults loop."""

    def test_returns_first_non_empty_results(self, make_poller, fake_clock):
        results = {"value": [{"ruleName": "info-contact", "severity": "warning"}]}
        poller, client = make_poller(routed([None, results]))

        outcome = poller.poll_for_results(
            DEFINITION_SCOPE,
            poller.deadline_after(240),
            EXECUTIONS_SCOPE,
            MATCH_TERMS,
        )

        assert outcome.source is ResultSource.DEFINITION_ANALYSIS_RESULTS
        assert outcome.payload == results
        assert poller.stats.primary_attempts == 2
        assert fake_clock.sleeps == [10.0]
        assert client.json_calls == [
            ("GET", f"{DEFINITION_SCOPE}/analysisResults"),
            ("GET", f"{DEFINITION_SCOPE}/analysisResults"),
        ]

    def test_empty_list_keeps_polling(self, make_poller):
        """Test an empty result list is treated like no response."""
        results = [{"severity": "error"}]
        poller, _ = make_poller(routed([[], {"value": []}, results]))

        outcome = poller.poll_for_results(
            DEFINITION_SCOPE,
            poller.deadline_after(240),
            EXECUTIONS_SCOPE,
            MATCH_TERMS,
        )

        assert outcome.payload == results
        assert poller.stats.primary_attempts == 3
        assert poller.stats.fallback_attempts == 0

    def test_fixed_interval(self, make_poller, fake_clock):
        poller, _ = make_poller(routed([None, None, None, [{"ok": True}]]), interval=7.5)

        poller.poll_for_results(DEFINITION_SCOPE, poller.deadline_after(240), EXECUTIONS_SCOPE, [])

        assert fake_clock.sleeps == [7.5, 7.5, 7.5]


class TestDeadline:
    """Test deadline handling and the fallback feed."""

    def test_stops_within_one_interval_and_queries_fallback_once(self, make_poller, fake_clock):
        executions = {"value": [{"id": "exec-1", "properties": {"apiId": MATCH_TERMS[0]}}]}
        poller, client = make_poller(routed([], fallback=executions))
        start = fake_clock.now
        deadline = poller.deadline_after(240)

        outcome = poller.poll_for_results(DEFINITION_SCOPE, deadline, EXECUTIONS_SCOPE, MATCH_TERMS)

        assert fake_clock.now >= deadline
        assert fake_clock.now - deadline < poller.poll_interval
        assert poller.stats.primary_attempts == 24
        assert poller.stats.fallback_attempts == 1
        assert [url for _, url in client.json_calls].count(EXECUTIONS_SCOPE) == 1
        assert fake_clock.now - start == 240
        assert outcome.source is ResultSource.ANALYZER_EXECUTIONS
        assert outcome.payload == executions["value"]

    def test_fallback_uses_all_entries_without_match(self, make_poller):
        executions = [{"id": "exec-1"}, {"id": "exec-2"}]
        poller, _ = make_poller(routed([], fallback=executions))

        outcome = poller.poll_for_results(
            DEFINITION_SCOPE,
            poller.deadline_after(30),
            EXECUTIONS_SCOPE,
            MATCH_TERMS,
        )

        assert outcome.source is ResultSource.ANALYZER_EXECUTIONS
        assert outcome.payload == executions

    @pytest.mark.parametrize("fallback", [None, [], {"value": []}])
    def test_both_feeds_empty_raises(self, make_poller, fallback):
        poller, _ = make_poller(routed([], fallback=fallback))

        with pytest.raises(NoAnalysisResults) as exc_info:
            poller.poll_for_results(
                DEFINITION_SCOPE,
                poller.deadline_after(30),
                EXECUTIONS_SCOPE,
                MATCH_TERMS,
            )

        message = str(exc_info.value)
        assert "definitionAnalysisResults" in message
        assert "analyzerExecutions" in message

    def test_expired_deadline_goes_straight_to_fallback(self, make_poller, fake_clock):
        poller, client = make_poller(routed([[{"ok": True}]], fallback=[{"id": "exec-1"}]))

        outcome = poller.poll_for_results(
            DEFINITION_SCOPE,
            fake_clock.now,
            EXECUTIONS_SCOPE,
            MATCH_TERMS,
        )

        assert poller.stats.primary_attempts == 0
        assert client.json_calls == [("GET", EXECUTIONS_SCOPE)]
        assert outcome.source is ResultSource.ANALYZER_EXECUTIONS
