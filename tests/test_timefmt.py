from rankreel.utils.timefmt import format_duration, format_offset


def test_format_offset_basic():
    assert format_offset(0) == "0:00.0"
    assert format_offset(13) == "0:13.0"
    assert format_offset(75.25) == "1:15.3"  # half-up rounding
    assert format_offset(-2.0) == "0:00.0"  # negative clamps


def test_format_duration_compact():
    assert format_duration(5) == "5s"
    assert format_duration(2.5) == "2.5s"
    assert format_duration(0.25) == "0.3s"
    assert format_duration(90) == "1m 30s"
