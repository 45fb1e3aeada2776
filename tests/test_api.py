import dataclasses

import pytest

from mcagent.api import (
    APIError,
    CheckConfig,
    CheckReport,
    CheckSource,
    CheckStatus,
    Client,
    CreateHostParam,
    HostStatus,
)


def test_check_source_host():
    source = CheckSource.host("abcde")
    assert source.type == "host"
    assert source.host_id == "abcde"
    assert source == CheckSource.host("abcde")


def test_api_error_keeps_status_code_and_message():
    err = APIError(500, "boom")
    assert err.status_code == 500
    assert err.message == "boom"
    assert "boom" in str(err)
    with pytest.raises(APIError):
        raise err


def test_host_status_from_value():
    assert HostStatus("working") is HostStatus.WORKING
    for status in HostStatus:
        assert HostStatus(status.value) is status
    with pytest.raises(ValueError):
        HostStatus("unknown")


def test_check_status_values_round_trip():
    assert CheckStatus.OK.value == "OK"
    for status in CheckStatus:
        assert CheckStatus(status.value) is status


def test_check_config_is_frozen_and_comparable():
    config = CheckConfig(name="g1", memo="g1 memo")
    assert config == CheckConfig("g1", "g1 memo")
    assert len({config, CheckConfig("g1", "g1 memo")}) == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.name = "g2"


def test_create_host_param_defaults_are_independent():
    first = CreateHostParam()
    second = CreateHostParam()
    first.role_fullnames.append("service:role")
    first.checks.append(CheckConfig("g1"))
    assert second.role_fullnames == []
    assert second.checks == []


def test_check_report_source_can_be_set():
    report = CheckReport(name="g1", status=CheckStatus.CRITICAL, message="m", occurred_at=10)
    assert report.source is None or report.source == CheckSource.host("x")
    report.source = CheckSource.host("abcde")
    assert report.source.host_id == "abcde"


def test_client_is_abstract():
    with pytest.raises(TypeError):
        Client()