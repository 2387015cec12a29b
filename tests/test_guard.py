"""Tests for the push-safety decision engine."""

import threading
import time

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tagguard.config import GuardConfig
from tagguard.guard import (
    REASON_EXISTS,
    REASON_FAILED,
    REASON_MUTABLE,
    REASON_NOT_FOUND,
    TagGuard,
)
from tagguard.models.result import Decision, Existence, ExitStatus
from tagguard.registry.client import RegistryClient
from tagguard.registry.errors import QueryError


@pytest.fixture
def guard(guard_config, registry_client):
    """TagGuard backed by the fake registry."""
    return TagGuard(guard_config, registry_client)


class StubClient:
    """Registry client returning canned outcomes by tag, without HTTP."""

    def __init__(self, outcomes: dict[str, Existence | Exception], delay: float = 0.0) -> None:
        self.outcomes = outcomes
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def tag_exists(self, repository: str, tag: str) -> Existence:
        with self._lock:
            self.calls.append(tag)
        if self.delay:
            time.sleep(self.delay)
        outcome = self.outcomes.get(tag, Existence.NOT_FOUND)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        pass


class TestCheckTag:
    """Per-tag state machine."""

    def test_existing_immutable_tag_is_skipped(self, guard, fake_registry):
        """Immutable tag on the registry -> SKIP."""
        fake_registry.existing.add("liskl/base:alpine-3.22.1")

        result = guard.check_tag("alpine-3.22.1")

        assert result.decision == Decision.SKIP
        assert result.reason == REASON_EXISTS
        assert result.is_immutable_pattern is True
        assert result.exists is True
        assert result.should_skip_push is True

    def test_missing_immutable_tag_is_pushed(self, guard, fake_registry):
        """Immutable tag not on the registry -> PUSH."""
        result = guard.check_tag("alpine-9.9.9")

        assert result.decision == Decision.PUSH
        assert result.reason == REASON_NOT_FOUND
        assert result.exists is False

    def test_mutable_tag_pushed_without_network(self, guard, fake_registry):
        """Mutable tags never touch the registry."""
        result = guard.check_tag("latest")

        assert result.decision == Decision.PUSH
        assert result.reason == REASON_MUTABLE
        assert result.is_immutable_pattern is False
        assert result.exists is None
        assert fake_registry.requests == []

    def test_four_components_is_mutable(self, guard, fake_registry):
        """alpine-3.22.1.1 is not a release tag."""
        result = guard.check_tag("alpine-3.22.1.1")

        assert result.decision == Decision.PUSH
        assert result.reason == REASON_MUTABLE
        assert fake_registry.requests == []

    def test_auth_failure_is_error(self, guard, fake_registry):
        """Token endpoint 500 -> ERROR with unknown existence."""
        fake_registry.token_status = 500

        result = guard.check_tag("alpine-3.22.1")

        assert result.decision == Decision.ERROR
        assert result.reason == REASON_FAILED
        assert result.exists is None
        assert result.api_error is True
        assert "HTTP 500" in result.detail

    @pytest.mark.parametrize("status", [401, 403, 429, 500, 503, 302])
    def test_manifest_failure_is_error(self, guard, fake_registry, status):
        """Auth failures on the manifest endpoint are never treated as existence."""
        fake_registry.manifest_status = status

        result = guard.check_tag("alpine-3.22.1")

        assert result.decision == Decision.ERROR
        assert f"HTTP {status}" in result.detail

    def test_timeout_is_error(self, guard, fake_registry):
        fake_registry.timeout_manifest = True
        assert guard.check_tag("alpine-3.22.1").decision == Decision.ERROR

    def test_idempotent(self, guard, fake_registry):
        """Same tag and registry state -> same decision."""
        fake_registry.existing.add("liskl/base:alpine-3.22.1")

        first = guard.check_tag("alpine-3.22.1")
        second = guard.check_tag("alpine-3.22.1")

        assert first == second

    def test_custom_prefix(self, guard_config, fake_registry):
        """The configured prefix decides which tags are immutable."""
        config = guard_config.model_copy(update={"tag_prefix": "debian"})
        fake_registry.existing.add("liskl/base:debian-12.1.0")
        with RegistryClient(config, transport=fake_registry.transport()) as client:
            guard = TagGuard(config, client)
            assert guard.check_tag("debian-12.1.0").decision == Decision.SKIP
            assert guard.check_tag("alpine-3.22.1").reason == REASON_MUTABLE

    def test_unexpected_exceptions_propagate(self, guard_config):
        """Only registry errors become ERROR results."""
        guard = TagGuard(guard_config, StubClient({"alpine-1.0.0": RuntimeError("bug")}))
        with pytest.raises(RuntimeError):
            guard.check_tag("alpine-1.0.0")


class TestCheckTags:
    """Aggregation across tags."""

    def test_skip_and_mutable(self, guard, fake_registry):
        """Existing immutable plus mutable -> [SKIP, PUSH], exit 1."""
        fake_registry.existing.add("liskl/base:alpine-3.22.1")

        report = guard.check_tags(["alpine-3.22.1", "test-dev-1"])

        assert [r.decision for r in report.results] == [Decision.SKIP, Decision.PUSH]
        assert report.summary.push_count == 1
        assert report.summary.skip_count == 1
        assert report.summary.error_count == 0
        assert report.exit_status == ExitStatus.SKIP
        assert report.exit_code == 1

    def test_errors_do_not_stop_processing(self, guard_config):
        """Every tag is attempted even after an error."""
        client = StubClient({"alpine-1.0.0": QueryError("boom"), "alpine-1.0.2": Existence.EXISTS})
        guard = TagGuard(guard_config, client)

        report = guard.check_tags(["alpine-1.0.0", "alpine-1.0.1", "alpine-1.0.2", "latest"])

        assert client.calls == ["alpine-1.0.0", "alpine-1.0.1", "alpine-1.0.2"]
        assert [r.decision for r in report.results] == [
            Decision.ERROR,
            Decision.PUSH,
            Decision.SKIP,
            Decision.PUSH,
        ]
        assert report.exit_code == 2

    def test_all_push_is_success(self, guard):
        report = guard.check_tags(["latest", "alpine-9.9.9"])
        assert report.exit_status == ExitStatus.SUCCESS
        assert report.exit_code == 0

    def test_empty_list(self, guard):
        """No tags gives an empty successful report."""
        report = guard.check_tags([])
        assert report.results == []
        assert report.summary.total_tags == 0
        assert report.exit_code == 0

    def test_results_carry_registry(self, guard):
        report = guard.check_tags(["latest"])
        assert report.registry == "liskl/base"
        assert report.results[0].registry == "liskl/base"

    def test_parallel_preserves_input_order(self, guard_config):
        """Thread-pool fan-out still reports in input order."""
        config = guard_config.model_copy(update={"max_workers": 4})
        tags = [f"alpine-1.0.{i}" for i in range(12)] + ["latest"]
        outcomes = {t: Existence.EXISTS for t in tags[::2]}
        guard = TagGuard(config, StubClient(outcomes, delay=0.01))

        report = guard.check_tags(tags)

        assert [r.tag for r in report.results] == tags
        assert report.summary.skip_count == 6

    def test_accepts_any_iterable(self, guard):
        report = guard.check_tags(t for t in ["latest", "main"])
        assert report.summary.total_tags == 2

    @given(
        st.lists(
            st.sampled_from(["exists", "missing", "error", "mutable"]),
            max_size=15,
        )
    )
    def test_aggregation_properties(self, kinds):
        """N tags -> N ordered results; exit status follows error > skip > success."""
        tags: list[str] = []
        outcomes: dict[str, Existence | Exception] = {}
        for i, kind in enumerate(kinds):
            if kind == "mutable":
                tag = f"dev-{i}"
            else:
                tag = f"alpine-1.0.{i}"
                if kind == "exists":
                    outcomes[tag] = Existence.EXISTS
                elif kind == "error":
                    outcomes[tag] = QueryError("failed")
            tags.append(tag)

        guard = TagGuard(GuardConfig(), StubClient(outcomes))
        report = guard.check_tags(tags)
        summary = report.summary

        assert [r.tag for r in report.results] == tags
        assert summary.total_tags == len(tags)
        assert summary.push_count + summary.skip_count + summary.error_count == len(tags)
        assert summary.error_count == kinds.count("error")
        assert summary.skip_count == kinds.count("exists")
        if summary.error_count > 0:
            assert report.exit_status == ExitStatus.ERROR
        elif summary.skip_count > 0:
            assert report.exit_status == ExitStatus.SKIP
        else:
            assert report.exit_status == ExitStatus.SUCCESS


class TestOwnership:
    """Client lifecycle."""

    def test_creates_and_closes_own_client(self, guard_config):
        guard = TagGuard(guard_config)
        assert isinstance(guard.client, RegistryClient)
        guard.close()

    def test_does_not_close_injected_client(self, guard_config):
        closed = []

        class Client(StubClient):
            def close(self):
                closed.append(True)

        with TagGuard(guard_config, Client({})):
            pass
        assert closed == []
