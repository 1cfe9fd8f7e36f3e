from storefront.services import ProtocolError, RequestLog


def test_history_is_bounded():
    log = RequestLog(max_entries=3)
    for i in range(5):
        pending = log.log_request("GET", f"/products/{i}")
        log.log_response(pending, 200)

    assert [entry.url for entry in log.get_logs()] == [
        "/products/2",
        "/products/3",
        "/products/4",
    ]


def test_stats_and_error_filter():
    log = RequestLog()
    log.log_response(log.log_request("GET", "/products"), 200)
    log.log_error(
        log.log_request("GET", "/products/x"),
        ProtocolError(404, "Not Found"),
        status=404,
    )

    stats = log.get_stats()
    assert (stats.total, stats.errors, stats.success) == (2, 1, 1)
    assert stats.avg_duration_ms >= 0

    errors = log.get_error_logs()
    assert len(errors) == 1
    assert errors[0].to_dict()["status"] == 404
    assert errors[0].error == "Not Found"


def test_empty_stats_and_clear():
    log = RequestLog()
    assert log.get_stats().to_dict() == {
        "total": 0,
        "errors": 0,
        "success": 0,
        "avg_duration_ms": 0,
    }

    log.log_response(log.log_request("GET", "/x"), 200)
    log.clear()
    assert log.get_logs() == []
