import pytest

from ntsclient.errors import ErrorType, NTSError, error_string


@pytest.mark.parametrize("kind", [e for e in ErrorType if e is not ErrorType.SUCCESS])
def test_error_string_is_member_name(kind):
    assert error_string(kind) == kind.name


def test_error_string_accepts_plain_ints():
    assert error_string(0x10004) == "NO_AEAD"
    assert error_string(1) == "SERVER_BAD_REQUEST"


def test_error_string_success():
    assert error_string(ErrorType.SUCCESS) == "Success?"


def test_error_string_unknown_code():
    with pytest.raises(ValueError):
        error_string(42)


def test_codes_match_protocol_values():
    assert error_string(2) == "SERVER_INTERNAL_ERROR"
    assert error_string(0x10000) == "UNEXPECTED_WARNING"
    assert error_string(0x10006) == "UNKNOWN_CRIT_RECORD"
    assert NTSError(0x10006).error is ErrorType.UNKNOWN_CRIT_RECORD


def test_nts_error_known_kind():
    err = NTSError(ErrorType.BAD_RESPONSE)
    assert err.error is ErrorType.BAD_RESPONSE
    assert str(err) == "BAD_RESPONSE"


def test_nts_error_converts_int_to_kind():
    err = NTSError(0x10005)
    assert err.error is ErrorType.INSUFFICIENT_DATA


def test_nts_error_keeps_unknown_server_code():
    err = NTSError(42)
    assert err.error == 42
    assert "42" in str(err)


def test_nts_error_message_from_int():
    err = NTSError(0x10003)
    assert err.error is ErrorType.NO_PROTOCOL
    assert str(err) == "NO_PROTOCOL"