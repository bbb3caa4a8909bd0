from webcore.health import HealthCheck


def test_empty_optionals_are_omitted():
    assert HealthCheck(app_name="svc").to_dict() == {"app_name": "svc"}


def test_all_fields_present():
    check = HealthCheck(app_name="svc", message="ok", version="1.2.3")
    assert check.to_dict() == {"app_name": "svc", "message": "ok", "version": "1.2.3"}


def test_only_version():
    assert set(HealthCheck(app_name="svc", version="2").to_dict()) == {"app_name", "version"}