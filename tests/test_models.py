"""Tests for data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ddns_multiplexer.models import (
    ADDRESS_LABELS,
    LABEL_PRIORITY,
    SEVERITY_RANKS,
    ProviderOutcome,
    Status,
    UpdateRequest,
    UpdateResult,
    to_status,
)


class TestStatus:
    """Tests for Status enum."""

    def test_status_values(self):
        assert Status.BADAUTH == "badauth"
        assert Status.NOT_YOURS == "!yours"
        assert Status.NOT_DONATOR == "!donator"
        assert Status.ADMINISTRATIVE_ERROR == "administrative-error"

    def test_status_from_string(self):
        assert Status("nochg") is Status.NOCHG
        assert Status("!yours") is Status.NOT_YOURS

    def test_every_status_ranked(self):
        assert set(SEVERITY_RANKS) == set(Status)

    def test_ranks_are_unique(self):
        assert len(set(SEVERITY_RANKS.values())) == len(SEVERITY_RANKS)

    def test_rank_order(self):
        order = [
            "badauth",
            "notfqdn",
            "nohost",
            "numhost",
            "abuse",
            "badagent",
            "!yours",
            "!donator",
            "administrative-error",
            "dnserr",
            "unknown",
            "good",
            "ok",
            "nochg",
        ]
        ranks = [SEVERITY_RANKS[Status(label)] for label in order]
        assert ranks == sorted(ranks, reverse=True)
        assert SEVERITY_RANKS[Status.BADAUTH] == 12
        assert SEVERITY_RANKS[Status.NOCHG] == -1


class TestLabelPriority:
    """Tests for LABEL_PRIORITY."""

    def test_most_severe_first(self):
        assert LABEL_PRIORITY[0] is Status.BADAUTH
        assert LABEL_PRIORITY[-1] is Status.NOCHG

    def test_ok_excluded(self):
        assert Status.OK not in LABEL_PRIORITY
        assert len(LABEL_PRIORITY) == len(Status) - 1

    def test_address_labels(self):
        assert frozenset({Status.GOOD, Status.NOCHG}) == ADDRESS_LABELS


class TestToStatus:
    """Tests for to_status function."""

    @pytest.mark.parametrize("label", ["good", "!donator", "administrative-error"])
    def test_known_label(self, label: str):
        assert to_status(label) == label

    @pytest.mark.parametrize("label", ["", "911", "GOOD", "good 1.2.3.4"])
    def test_unknown_label(self, label: str):
        assert to_status(label) is Status.UNKNOWN


class TestUpdateRequest:
    """Tests for UpdateRequest model."""

    def test_valid_request(self):
        request = UpdateRequest(
            username="router",
            passwd="router-secret",
            domain="home.example.org",
            ipaddr="198.51.100.7",
        )
        assert request.password == "router-secret"
        assert request.ip6addr == ""
        assert request.ip6_lan_network is None

    def test_populate_by_name(self):
        request = UpdateRequest(username="r", password="s", domain="d", ipaddr="1.2.3.4")
        assert request.password == "s"

    def test_missing_password(self):
        with pytest.raises(ValidationError):
            UpdateRequest(username="r", domain="d", ipaddr="1.2.3.4")

    def test_password_not_in_repr(self):
        request = UpdateRequest(
            username="r",
            passwd="router-secret",
            domain="d",
            ipaddr="1.2.3.4",
        )
        assert "router-secret" not in repr(request)

    def test_anchor_prefers_ipv4(self):
        request = UpdateRequest(
            username="r",
            passwd="s",
            domain="d",
            ipaddr="1.2.3.4",
            ip6addr="2001:db8::1",
        )
        assert request.anchor_address == "1.2.3.4"

    def test_anchor_falls_back_to_ipv6(self):
        request = UpdateRequest(username="r", passwd="s", domain="d", ip6addr="2001:db8::1")
        assert request.anchor_address == "2001:db8::1"

    def test_frozen(self):
        request = UpdateRequest(username="r", passwd="s", domain="d", ipaddr="1.2.3.4")
        with pytest.raises(ValidationError):
            request.ipaddr = "5.6.7.8"


class TestProviderOutcome:
    """Tests for ProviderOutcome model."""

    def test_status(self):
        outcome = ProviderOutcome(provider_index=0, label="!yours", exact_match=True)
        assert outcome.status is Status.NOT_YOURS

    def test_unrecognized_label_keeps_raw_value(self):
        outcome = ProviderOutcome(provider_index=1, label="whatever", exact_match=True)
        assert outcome.label == "whatever"
        assert outcome.status is Status.UNKNOWN


class TestUpdateResult:
    """Tests for UpdateResult model."""

    def test_default_outcomes(self):
        result = UpdateResult(final_status="nochg 1.2.3.4")
        assert result.outcomes == ()

    def test_outcomes_kept_in_order(self):
        outcomes = (
            ProviderOutcome(provider_index=0, label="good", exact_match=False),
            ProviderOutcome(provider_index=1, label="dnserr", exact_match=False),
        )
        result = UpdateResult(final_status="dnserr", outcomes=outcomes)
        assert [o.provider_index for o in result.outcomes] == [0, 1]
