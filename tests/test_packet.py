import struct

import pytest

from ntsclient.aead import AEADAlgorithm
from ntsclient.errors import ErrorType, NTSError
from ntsclient.packet import Agreement, RecordType, decode_response, encode_request


def record(record_type, body=b""):
    return struct.pack(">HH", record_type, len(body)) + body


def u16(value):
    return struct.pack(">H", value)


EOM = record(0)


def decode_error(data):
    with pytest.raises(NTSError) as excinfo:
        decode_response(data)
    return excinfo.value.error


def test_default_request_bytes():
    assert encode_request() == bytes.fromhex(
        "80010002" "0000"
        "80040004" "000f" "0011"
        "04000000"
        "80000000"
    )


@pytest.mark.parametrize(
    "preferred, expected",
    [
        (None, AEADAlgorithm.AES_SIV_CMAC_256),
        ([AEADAlgorithm.AES_SIV_CMAC_256, AEADAlgorithm.AES_SIV_CMAC_512], AEADAlgorithm.AES_SIV_CMAC_256),
        ([AEADAlgorithm.AES_SIV_CMAC_512, AEADAlgorithm.AES_SIV_CMAC_256], AEADAlgorithm.AES_SIV_CMAC_512),
    ],
)
def test_request_decodes_as_response(preferred, expected):
    agreement = decode_response(encode_request(preferred) + bytes(100))
    assert agreement == Agreement(expected)
    assert agreement.ntp_server is None
    assert agreement.ntp_port == 0
    assert agreement.cookies == []


def test_too_many_algorithms_rejected():
    with pytest.raises(ValueError):
        encode_request([15] * 0x8000)


def test_empty_message_is_bad():
    assert decode_error(EOM) == ErrorType.BAD_RESPONSE


def test_missing_aead():
    assert decode_error(record(1, u16(0)) + EOM) == ErrorType.BAD_RESPONSE


def test_missing_next_proto():
    assert decode_error(record(4, u16(15)) + EOM) == ErrorType.BAD_RESPONSE


def test_invalid_next_proto():
    assert decode_error(record(4, u16(15)) + record(1, u16(3)) + EOM) == ErrorType.NO_PROTOCOL


def test_invalid_aead():
    assert decode_error(record(1, u16(0)) + record(4, u16(37)) + EOM) == ErrorType.NO_AEAD


def test_unknown_critical_record():
    data = record(1, u16(0)) + record(4, u16(15)) + record(0xFE | 0x8000, u16(15)) + EOM
    assert decode_error(data) == ErrorType.UNKNOWN_CRIT_RECORD


def test_error_record():
    data = record(1, u16(0)) + record(4, u16(15)) + record(2, u16(42)) + EOM
    assert decode_error(data) == 42


def test_error_record_with_known_server_code():
    data = record(1, u16(0)) + record(4, u16(15)) + record(2, u16(1)) + EOM
    assert decode_error(data) is ErrorType.SERVER_BAD_REQUEST


def test_warning_record():
    data = record(1, u16(0)) + record(4, u16(15)) + record(3, u16(42)) + EOM
    assert decode_error(data) == ErrorType.UNEXPECTED_WARNING


def test_valid_response():
    data = (
        record(1, u16(0))
        + record(5, b"token")
        + record(4, u16(15))
        + record(5, b"secret")
        + record(0xEE, b"unknown")
        + record(7, u16(42))
        + record(5, b"password")
        + record(6, b"localhost")
        + record(5, b"placeholder")
        + bytes(4)  # trailing zero bytes read as end of message
    )
    agreement = decode_response(data)
    assert agreement.aead_id == AEADAlgorithm.AES_SIV_CMAC_256
    assert agreement.ntp_port == 42
    assert agreement.ntp_server == "localhost"
    assert agreement.cookies == [b"token", b"secret", b"password", b"placeholder"]


def test_truncated_response_needs_more_data():
    assert decode_error(encode_request()[:-1]) == ErrorType.INSUFFICIENT_DATA


def test_response_without_end_needs_more_data():
    assert decode_error(record(1, u16(0)) + record(4, u16(15))) == ErrorType.INSUFFICIENT_DATA


def test_record_body_longer_than_data():
    assert decode_error(struct.pack(">HH", 5, 10) + b"abc") == ErrorType.INSUFFICIENT_DATA


def test_port_record_with_wrong_size():
    assert decode_error(record(1, u16(0)) + record(7, b"\x00\x01\x02") + EOM) == ErrorType.BAD_RESPONSE


def test_odd_sized_aead_record():
    assert decode_error(record(1, u16(0)) + record(4, b"\x00\x0f\x00") + EOM) == ErrorType.BAD_RESPONSE


def test_server_name_with_space_is_bad():
    data = record(1, u16(0)) + record(4, u16(15)) + record(6, b"local host") + EOM
    assert decode_error(data) == ErrorType.BAD_RESPONSE


def test_server_name_too_long_is_bad():
    data = record(1, u16(0)) + record(4, u16(15)) + record(6, b"a" * 256) + EOM
    assert decode_error(data) == ErrorType.BAD_RESPONSE


def test_next_proto_later_in_list():
    data = record(1, u16(3) + u16(0)) + record(4, u16(17)) + EOM
    assert decode_response(data).aead_id == AEADAlgorithm.AES_SIV_CMAC_512


def test_only_eight_cookies_kept():
    cookies = [bytes([n]) * 4 for n in range(10)]
    data = record(1, u16(0)) + record(4, u16(15)) + b"".join(record(5, c) for c in cookies) + EOM
    assert decode_response(data).cookies == cookies[:8]


def test_chrony_record_type_value():
    assert encode_request()[12:14] == struct.pack(">H", RecordType.CHRONY_BUG_WORKAROUND)