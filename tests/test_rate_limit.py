import pytest

from whatsapp_checker.rate_limit import DelayPolicy, InterCallDelay


def test_wait_sleeps_for_configured_delay() -> None:
    sleeps = []
    delay = InterCallDelay(DelayPolicy(delay_seconds=3), sleep=sleeps.append)

    delay.wait()
    delay.wait()

    assert sleeps == [3, 3]
    assert delay.waits == 2


def test_default_policy_is_one_second() -> None:
    sleeps = []
    InterCallDelay(sleep=sleeps.append).wait()

    assert sleeps == [1.0]


def test_zero_delay_skips_sleep() -> None:
    sleeps = []
    delay = InterCallDelay.seconds(0, sleep=sleeps.append)

    delay.wait()

    assert sleeps == []
    assert delay.waits == 1


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(ValueError):
        DelayPolicy(delay_seconds=-0.5)
