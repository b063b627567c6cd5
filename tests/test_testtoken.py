import pytest

from u2fhid import testtoken
from u2fhid.errors import AuthenticatorError, U2FTokenError
from u2fhid.software_u2f import SoftwareU2FToken


def make_token():
    return testtoken.TestToken(
        7, testtoken.TestWireProtocol.CTAP1, "usb", True, False, False, False
    )


def add(token, credential, rp_id="example.com"):
    token.insert_credential(credential, b"\x10\x20", rp_id, False, b"\x01", 0)


def test_webdriver_strings():
    assert testtoken.TestWireProtocol.CTAP1.to_webdriver_string() == "ctap1/u2f"
    assert testtoken.TestWireProtocol.CTAP2.to_webdriver_string() == "ctap2"


def test_ctap2_token_is_rejected():
    with pytest.raises(ValueError):
        testtoken.TestToken(
            1, testtoken.TestWireProtocol.CTAP2, "usb", True, False, False, False
        )


def test_new_token_keeps_settings():
    token = make_token()
    assert token.id == 7
    assert token.transport == "usb"
    assert token.is_user_consenting is True
    assert token.credentials == []


def test_credentials_kept_sorted():
    token = make_token()
    for cred in (b"\x05", b"\x01", b"\x03\x00", b"\x02"):
        add(token, cred)
    ids = [c.credential for c in token.credentials]
    assert ids == sorted(ids)
    assert len(ids) == 4


def test_insert_duplicate_is_ignored():
    token = make_token()
    add(token, b"\x01", rp_id="first.example.com")
    add(token, b"\x01", rp_id="second.example.com")
    assert len(token.credentials) == 1
    assert token.credentials[0].rp_id == "first.example.com"


def test_insert_stores_fields():
    token = make_token()
    token.insert_credential(b"\xaa", b"\xbb", "example.com", True, b"\xcc", 4)
    cred = token.credentials[0]
    assert cred.credential == b"\xaa"
    assert cred.privkey == b"\xbb"
    assert cred.user_handle == b"\xcc"
    assert cred.is_resident_credential is True
    assert cred.sign_count == 4


def test_delete_credential():
    token = make_token()
    add(token, b"\x01")
    add(token, b"\x02")
    assert token.delete_credential(b"\x01") is True
    assert [c.credential for c in token.credentials] == [b"\x02"]
    assert token.delete_credential(b"\x01") is False
    assert token.delete_credential(b"\x09") is False


def test_register_and_sign_use_software_token():
    token = make_token()
    software = SoftwareU2FToken()
    response, info = token.register()
    assert response == bytes(16)
    assert info == software.dev_info()
    assert token.sign() == (b"", b"", b"", software.dev_info())


def test_without_implementation_operations_fail():
    token = make_token()
    token.u2f_impl = None
    with pytest.raises(AuthenticatorError) as reg:
        token.register()
    assert reg.value.token_error is U2FTokenError.UNKNOWN
    with pytest.raises(AuthenticatorError) as sig:
        token.sign()
    assert sig.value.token_error is U2FTokenError.UNKNOWN