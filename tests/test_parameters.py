"""Tests for data encryption parameters."""

import pytest

from c4gh.parameters import PARAMETERS_PAYLOAD_SIZE, EncryptionParameters
from c4gh.types import (
    DataEncryptionMethod,
    FormatError,
    SecurityError,
    UnsupportedMethodError,
)
from .test_vectors import SESSION_KEY_HEX


SESSION_KEY = bytes.fromhex(SESSION_KEY_HEX)


class TestEncryptionParameters:
    def test_defaults(self) -> None:
        parameters = EncryptionParameters(session_key=SESSION_KEY)

        assert parameters.method == DataEncryptionMethod.CHACHA20_IETF_POLY1305
        assert parameters.session_key == SESSION_KEY

    @pytest.mark.parametrize("length", [0, 16, 31, 33])
    def test_invalid_key_length(self, length: int) -> None:
        with pytest.raises(SecurityError, match="32 bytes"):
            EncryptionParameters(session_key=bytes(length))

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(UnsupportedMethodError):
            EncryptionParameters(session_key=SESSION_KEY, method=7)

    def test_method_coerced_to_enum(self) -> None:
        parameters = EncryptionParameters(session_key=SESSION_KEY, method=0)

        assert parameters.method is DataEncryptionMethod.CHACHA20_IETF_POLY1305
        assert parameters == EncryptionParameters(session_key=SESSION_KEY)

    def test_repr_hides_key(self) -> None:
        parameters = EncryptionParameters(session_key=SESSION_KEY)

        assert SESSION_KEY_HEX not in repr(parameters)
        assert repr(SESSION_KEY) not in repr(parameters)

    def test_immutable(self) -> None:
        parameters = EncryptionParameters(session_key=SESSION_KEY)

        with pytest.raises(AttributeError):
            parameters.session_key = bytes(32)  # type: ignore[misc]

    def test_generate_uses_factory(self) -> None:
        parameters = EncryptionParameters.generate(lambda: SESSION_KEY)

        assert parameters.session_key == SESSION_KEY

    def test_generate_is_fresh(self) -> None:
        assert EncryptionParameters.generate() != EncryptionParameters.generate()


class TestParametersEncoding:
    def test_payload_layout(self) -> None:
        encoded = EncryptionParameters(session_key=SESSION_KEY).to_bytes()

        assert len(encoded) == PARAMETERS_PAYLOAD_SIZE == 40
        assert encoded[0:4] == b"\x00\x00\x00\x00"  # packet type
        assert encoded[4:8] == b"\x00\x00\x00\x00"  # chacha20_ietf_poly1305
        assert encoded[8:] == SESSION_KEY

    def test_decode(self) -> None:
        original = EncryptionParameters(session_key=SESSION_KEY)

        assert EncryptionParameters.from_bytes(original.to_bytes()) == original

    def test_wrong_packet_type(self) -> None:
        encoded = b"\x01\x00\x00\x00" + EncryptionParameters(session_key=SESSION_KEY).to_bytes()[4:]

        with pytest.raises(FormatError, match="Not a data encryption packet"):
            EncryptionParameters.from_bytes(encoded)

    def test_unknown_method(self) -> None:
        encoded = b"\x00\x00\x00\x00" + b"\x07\x00\x00\x00" + SESSION_KEY

        with pytest.raises(UnsupportedMethodError) as exc_info:
            EncryptionParameters.from_bytes(encoded)
        assert exc_info.value.value == 7

    def test_truncated(self) -> None:
        encoded = EncryptionParameters(session_key=SESSION_KEY).to_bytes()[:-1]

        with pytest.raises(FormatError):
            EncryptionParameters.from_bytes(encoded)
