from unittest.mock import MagicMock

import httpx
import pytest

from protochannels.core.exceptions import DevServiceStartError
from protochannels.devservices.container import READINESS_PATH, wait_until_ready

BASE_URL = "http://localhost:32768"


def _response(status_code):
    response = MagicMock()
    response.status_code = status_code
    return response


def test_polls_until_registry_answers():
    client = MagicMock(spec=httpx.Client)
    client.get.side_effect = [httpx.ConnectError("refused"), _response(503), _response(200)]
    sleeps = []

    wait_until_ready(BASE_URL, 60.0, client=client, clock=lambda: 0.0, sleep=sleeps.append, interval=0.1)

    assert client.get.call_count == 3
    client.get.assert_called_with(BASE_URL + READINESS_PATH)
    assert sleeps == [0.1, 0.1]
    client.close.assert_not_called()


def test_times_out_with_last_error():
    client = MagicMock(spec=httpx.Client)
    client.get.return_value = _response(503)
    ticks = iter([0.0, 5.0, 11.0])

    with pytest.raises(DevServiceStartError) as exc_info:
        wait_until_ready(BASE_URL, 10.0, client=client, clock=lambda: next(ticks), sleep=lambda _: None)

    assert client.get.call_count == 2
    assert exc_info.value.details["last_error"] == "HTTP 503"
    assert exc_info.value.details["url"] == BASE_URL + READINESS_PATH
