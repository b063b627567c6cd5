from u2fhid.errors import (
    AuthenticatorError,
    DeviceError,
    InvalidDataError,
    InvalidInputError,
    U2FTokenError,
    io_err,
)


def test_io_err_carries_message():
    err = io_err("boom")
    assert isinstance(err, DeviceError)
    assert str(err) == "boom"


def test_io_err_is_os_error():
    err = io_err("device write failed")
    assert isinstance(err, OSError)
    assert str(err) == "device write failed"


def test_specific_device_errors_are_device_errors():
    wrong_length = InvalidInputError("wrong length")
    wrong_data = InvalidDataError("wrong data")
    assert isinstance(wrong_length, DeviceError)
    assert isinstance(wrong_data, DeviceError)
    assert str(wrong_length) == "wrong length"
    assert str(wrong_data) == "wrong data"


def test_token_error_is_kept():
    err = AuthenticatorError(U2FTokenError.NOT_ALLOWED)
    assert err.token_error is U2FTokenError.NOT_ALLOWED
    assert err.is_platform is False


def test_platform_error():
    err = AuthenticatorError.platform()
    assert err.token_error is None
    assert err.is_platform is True


def test_explicit_message_is_used():
    err = AuthenticatorError(U2FTokenError.INVALID_STATE, "excluded")
    assert str(err) == "excluded"
    assert err.message == "excluded"


def test_errors_compare_by_kind():
    assert AuthenticatorError(U2FTokenError.UNKNOWN) == AuthenticatorError(U2FTokenError.UNKNOWN)
    assert not (
        AuthenticatorError(U2FTokenError.UNKNOWN) == AuthenticatorError(U2FTokenError.NOT_SUPPORTED)
    )


def test_authenticator_error_is_an_exception():
    err = AuthenticatorError(U2FTokenError.NOT_SUPPORTED)
    assert isinstance(err, Exception)
    assert err.token_error is U2FTokenError.NOT_SUPPORTED
    assert err == AuthenticatorError(U2FTokenError.NOT_SUPPORTED)