import pytest

from app.core import business_codes
from app.core.business_codes import (
    SUCCESS_CODE,
    AuthErrorCode,
    BusinessErrorCode,
    ResourceErrorCode,
    SystemErrorCode,
    SystemManageErrorCode,
    UserErrorCode,
    ValidationErrorCode,
)


@pytest.mark.parametrize("code", [-1, 0, 1, 9999, 10001, 19999, 23000, 24999, 26000, 29999, 33000, 99999,
                                  -(10 ** 20), 10 ** 30])
def test_resolve_is_total_for_unregistered_codes(code):
    info = business_codes.resolve(code)
    assert info.message
    assert isinstance(info.http_status, int)


def test_resolve_never_raises_on_garbage():
    info = business_codes.resolve("not-a-code")
    assert info.message == "Unknown error"
    assert info.http_status == 500


def test_every_registered_code_has_message_and_status():
    for code in business_codes.MESSAGES:
        info = business_codes.resolve(code)
        assert info.message == business_codes.MESSAGES[code]
        assert 200 <= info.http_status < 600


def test_band_fallback_statuses():
    assert business_codes.get_http_status(20099) == 500
    assert business_codes.get_http_status(21099) == 400
    assert business_codes.get_http_status(22099) == 401
    # user/resource/business errors are soft errors carried in a 200 response
    assert business_codes.get_http_status(UserErrorCode.USER_NOT_FOUND) == 200
    assert business_codes.get_http_status(BusinessErrorCode.DATA_CONFLICT) == 200
    assert business_codes.get_http_status(30999) == 200


def test_explicit_status_wins_over_band():
    assert business_codes.get_http_status(ValidationErrorCode.TOO_MANY_REQUESTS) == 429
    assert business_codes.get_http_status(AuthErrorCode.FORBIDDEN) == 403
    assert business_codes.get_http_status(ResourceErrorCode.RESOURCE_NOT_FOUND) == 404
    assert business_codes.get_http_status(SystemErrorCode.SERVICE_UNAVAILABLE) == 503


def test_system_manage_codes_only_use_explicit_statuses():
    assert business_codes.get_http_status(SystemManageErrorCode.INVALID_CRON_TOKEN) == 401
    assert business_codes.get_http_status(SystemManageErrorCode.LOGIN_LOG_NOT_FOUND) == 404
    assert business_codes.get_http_status(25999) == 500
    assert business_codes.get_module_name(25001) == "system_manage"


def test_unknown_codes():
    assert business_codes.get_message(-5) == "Unknown error"
    assert not business_codes.is_registered(12345)
    assert business_codes.get_module_name(12345) == "unknown"


def test_success_code():
    assert business_codes.is_success(SUCCESS_CODE)
    assert not business_codes.is_success(AuthErrorCode.UNAUTHORIZED)
    assert business_codes.resolve(SUCCESS_CODE).http_status == 200
    assert business_codes.get_module_name(SUCCESS_CODE) == "success"
    assert business_codes.get_error_type(22003) == "Permission error"


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        business_codes.MESSAGES[SUCCESS_CODE] = "changed"
