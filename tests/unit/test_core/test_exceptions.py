"""Tests for core exceptions and Consul response helpers."""

import pytest

from consee.core import exceptions as exc
from consee.core.responses import call_consul, ensure_ok, is_missing
from consee.infra.consul import ConsulResponse, ConsulTransportError


@pytest.mark.parametrize(
    ("code", "status"),
    [
        (exc.DomainErrorCode.NOT_IMPLEMENTED, 404),
        (exc.DomainErrorCode.ALREADY_EXISTS, 409),
        (exc.DomainErrorCode.NOT_FOUND, 404),
        (exc.DomainErrorCode.INVALID_INPUT, 400),
        (exc.DomainErrorCode.PERMISSION_DENIED, 403),
        (exc.DomainErrorCode.INTERNAL_ERROR, 500),
        (exc.DomainErrorCode.MULTIPLE_ERRORS_OCCURED, 500),
        (exc.DomainErrorCode.UNKNOWN, 500),
    ],
)
def test_domain_error_status(code, status) -> None:
    assert exc.DomainError(code, "x").status_code == status


def test_domain_errors_compare_by_code_and_message() -> None:
    assert exc.not_found("key not found") == exc.DomainError(exc.DomainErrorCode.NOT_FOUND, "key not found")
    assert exc.not_found("a") != exc.not_found("b")
    assert str(exc.permission_denied()) == "permission denied"


def test_admin_refusal_is_internal() -> None:
    assert exc.admin_permission_denied().code == exc.DomainErrorCode.INTERNAL_ERROR
    assert exc.not_admin().code == exc.DomainErrorCode.PERMISSION_DENIED


def test_status_error_render() -> None:
    error = exc.StatusError(400, "token is empty")
    assert error.render() == "an error occurred while processing request: token is empty (status: 400)"


def test_status_error_from_domain_error() -> None:
    error = exc.StatusError.from_domain_error(exc.already_exists("key already exists"))
    assert error.status == 409
    assert error.message == "key already exists"


def test_unmapped_domain_error_hides_message() -> None:
    error = exc.StatusError.from_domain_error(
        exc.DomainError(exc.DomainErrorCode.MULTIPLE_ERRORS_OCCURED, "2 errors occured")
    )
    assert error.status == 500
    assert error.message == "unknown error"


# ============================================================================
# Consul response helpers
# ============================================================================


def test_is_missing() -> None:
    assert is_missing(ConsulResponse(status=404))
    assert is_missing(ConsulResponse(status=403, raw_body=b"ACL not found"))
    assert not is_missing(ConsulResponse(status=403, raw_body=b"Permission denied"))
    assert not is_missing(ConsulResponse(status=200))


def test_ensure_ok_missing_message() -> None:
    with pytest.raises(exc.DomainError) as info:
        ensure_ok(ConsulResponse(status=404), missing="token not found")
    assert info.value == exc.not_found("token not found")


def test_ensure_ok_missing_without_message_is_unknown() -> None:
    with pytest.raises(exc.DomainError) as info:
        ensure_ok(ConsulResponse(status=404))
    assert info.value.code == exc.DomainErrorCode.UNKNOWN


def test_ensure_ok_forbidden() -> None:
    with pytest.raises(exc.DomainError) as info:
        ensure_ok(ConsulResponse(status=403, raw_body=b"Permission denied"))
    assert info.value == exc.permission_denied()

    with pytest.raises(exc.DomainError) as info:
        ensure_ok(ConsulResponse(status=403), forbidden=exc.admin_permission_denied())
    assert info.value.code == exc.DomainErrorCode.INTERNAL_ERROR


def test_ensure_ok_parse_error() -> None:
    with pytest.raises(exc.DomainError) as info:
        ensure_ok(ConsulResponse(status=200, error="bad json"))
    assert info.value == exc.failed_to_parse()


async def test_call_consul_converts_transport_error() -> None:
    async def failing() -> ConsulResponse[None]:
        raise ConsulTransportError("kv.get", "connection", "refused")

    with pytest.raises(exc.DomainError) as info:
        await call_consul(failing(), "read key", key="a")
    assert info.value == exc.failed_to_connect_consul()
