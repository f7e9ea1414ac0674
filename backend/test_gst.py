from app.services.gst import is_valid_gstin, state_code, state_code_from_gstin


def test_state_codes():
    assert state_code("Maharashtra") == "27"
    assert state_code("Delhi") == "07"
    assert state_code("Atlantis") == ""


def test_gstin_format():
    assert is_valid_gstin("27AAPFU0939F1ZV")
    assert not is_valid_gstin("27aapfu0939f1zv")
    assert not is_valid_gstin("27AAPFU0939F1XV")
    assert not is_valid_gstin("")
    assert not is_valid_gstin(None)


def test_state_code_from_gstin():
    assert state_code_from_gstin("29ABCDE1234F1Z5") == "29"
    assert state_code_from_gstin("2") == ""


def test_health_reports_monitor_state(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["stock_monitor"]["enabled"] is False
    assert body["stock_monitor"]["tick_running"] is False
