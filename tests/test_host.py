import pytest

from mcagent.api import APIError, Client, CreateHostParam, Host, HostStatus
from mcagent.host import HostResolveError, HostResolver, retire, retry_from_error

HOST_ID = "abcde"
CUSTOM_IDENTIFIER = "custom-identifier-abcde"


class FakeClient(Client):
    def __init__(self, **handlers):
        self.handlers = handlers
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, *args))
        handler = self.handlers.get(name)
        if handler is None:
            raise RuntimeError(f"unexpected call: {name}")
        return handler(*args)

    def called(self, name):
        return [c for c in self.calls if c[0] == name]

    def find_host(self, host_id):
        return self._call("find_host", host_id)

    def find_hosts(self, param):
        return self._call("find_hosts", param)

    def create_host(self, param):
        return self._call("create_host", param)

    def update_host(self, host_id, param):
        return self._call("update_host", host_id, param)

    def update_host_status(self, host_id, status):
        return self._call("update_host_status", host_id, status)

    def retire_host(self, host_id):
        return self._call("retire_host", host_id)

    def post_host_metric_values_by_host_id(self, host_id, metric_values):
        return self._call("post_metrics", host_id, metric_values)

    def create_graph_defs(self, params):
        return self._call("create_graph_defs", params)

    def post_check_reports(self, reports):
        return self._call("post_check_reports", reports)


def raise_(err):
    def handler(*args):
        raise err

    return handler


def test_get_host_creates_new_host(tmp_path):
    client = FakeClient(create_host=lambda p: HOST_ID, find_host=lambda i: Host(id=i))
    resolver = HostResolver(client, tmp_path)
    host = resolver.get_host(CreateHostParam())
    assert host.id == HOST_ID
    assert (tmp_path / "id").read_text() == HOST_ID
    assert resolver.get_local_host_id() == HOST_ID


def test_get_host_by_custom_identifier(tmp_path):
    client = FakeClient(
        find_hosts=lambda p: [Host(id=HOST_ID)],
        update_host=lambda i, p: i,
    )
    resolver = HostResolver(client, tmp_path)
    param = CreateHostParam(custom_identifier=CUSTOM_IDENTIFIER)
    host = resolver.get_host(param)
    assert host.id == HOST_ID
    assert client.called("create_host") == []
    (_, search), = client.called("find_hosts")
    assert search.custom_identifier == CUSTOM_IDENTIFIER
    assert search.statuses == [s.value for s in HostStatus]
    assert client.called("update_host") == [("update_host", HOST_ID, param)]
    assert resolver.get_local_host_id() == HOST_ID


def test_get_host_custom_identifier_not_found_creates(tmp_path):
    client = FakeClient(
        find_hosts=lambda p: [],
        create_host=lambda p: HOST_ID,
        find_host=lambda i: Host(id=i),
    )
    resolver = HostResolver(client, tmp_path)
    param = CreateHostParam(custom_identifier=CUSTOM_IDENTIFIER)
    assert resolver.get_host(param).id == HOST_ID
    assert client.called("create_host") == [("create_host", param)]


def test_get_host_from_id_file(tmp_path):
    (tmp_path / "id").write_text(HOST_ID + "\n")
    client = FakeClient(find_host=lambda i: Host(id=i), update_host=lambda i, p: i)
    resolver = HostResolver(client, tmp_path)
    assert resolver.get_host(CreateHostParam()).id == HOST_ID
    assert len(client.called("update_host")) == 1
    assert client.called("create_host") == []


def test_get_host_empty_id_file(tmp_path):
    (tmp_path / "id").write_text("\r\n")
    resolver = HostResolver(FakeClient(), tmp_path)
    with pytest.raises(HostResolveError) as info:
        resolver.get_host(CreateHostParam())
    assert info.value.retry is False


@pytest.mark.parametrize(
    "error, retry",
    [
        (APIError(500, "internal"), True),
        (APIError(400, "bad request"), False),
        (RuntimeError("error"), True),
    ],
)
def test_get_host_create_failure(tmp_path, error, retry):
    client = FakeClient(create_host=raise_(error))
    resolver = HostResolver(client, tmp_path)
    with pytest.raises(HostResolveError) as info:
        resolver.get_host(CreateHostParam())
    assert info.value.retry is retry
    assert not (tmp_path / "id").exists()


def test_get_host_find_hosts_failure_is_retried(tmp_path):
    client = FakeClient(find_hosts=raise_(RuntimeError("error")))
    resolver = HostResolver(client, tmp_path)
    with pytest.raises(HostResolveError) as info:
        resolver.get_host(CreateHostParam(custom_identifier=CUSTOM_IDENTIFIER))
    assert info.value.retry is True


@pytest.mark.parametrize(
    "error, expected",
    [
        (None, False),
        (APIError(500), True),
        (APIError(503), True),
        (APIError(400), False),
        (ValueError("x"), True),
    ],
)
def test_retry_from_error(error, expected):
    assert retry_from_error(error) is expected


def test_save_and_remove_host_id(tmp_path):
    resolver = HostResolver(FakeClient(), tmp_path / "nested" / "dir")
    resolver.save_host_id(HOST_ID)
    assert resolver.get_local_host_id() == HOST_ID
    resolver.remove_host_id()
    with pytest.raises(FileNotFoundError):
        resolver.get_local_host_id()


def test_retire_without_host(tmp_path):
    client = FakeClient(retire_host=lambda i: None)
    retire(client, HostResolver(client, tmp_path), interval=0)
    assert client.called("retire_host") == []


def test_retire(tmp_path):
    client = FakeClient(retire_host=lambda i: None)
    resolver = HostResolver(client, tmp_path)
    resolver.save_host_id(HOST_ID)
    retire(client, resolver, interval=0)
    assert client.called("retire_host") == [("retire_host", HOST_ID)]
    assert not (tmp_path / "id").exists()


def test_retire_retries(tmp_path):
    failures = [APIError(500), APIError(500)]

    def flaky(host_id):
        if failures:
            raise failures.pop()

    client = FakeClient(retire_host=flaky)
    resolver = HostResolver(client, tmp_path)
    resolver.save_host_id(HOST_ID)
    retire(client, resolver, attempts=3, interval=0)
    assert len(client.called("retire_host")) == 3
    assert not (tmp_path / "id").exists()


def test_retire_gives_up(tmp_path):
    client = FakeClient(retire_host=raise_(APIError(500)))
    resolver = HostResolver(client, tmp_path)
    resolver.save_host_id(HOST_ID)
    with pytest.raises(APIError):
        retire(client, resolver, attempts=3, interval=0)
    assert len(client.called("retire_host")) == 3
    assert resolver.get_local_host_id() == HOST_ID