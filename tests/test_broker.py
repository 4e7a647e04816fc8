import os
import subprocess
import threading
from types import SimpleNamespace

import pytest

from privbroker.config import BrokerConfig
from privbroker.facilities.pkexec import PkexecFacility
from privbroker.facilities.sudo import SudoFacility
from privbroker.managers.broker import Broker, build_fragment
from privbroker.managers.facility_registry import FacilityRegistry
from privbroker.models import CancelReason, Cancelled, ErrorKind, ExecutionError, Succeeded


def _registry(*facilities):
    reg = FacilityRegistry()
    for f in facilities:
        reg.register_facility(f)
    return reg


class FakeRun:
    """Stands in for subprocess.run and records what the broker spawned."""

    def __init__(self, returncode=0, stdout=b'', stderr=b'', exc=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.exc = exc
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        if self.exc is not None:
            raise self.exc
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, self.stderr)


def test_build_fragment_orders_marker_first():
    frag = build_fragment(['ls', '-l', "it's here"], 'AUTHENTICATION SUCCEEDED', {'FOO': 'a b'})
    assert frag == "printf '%s\\n' 'AUTHENTICATION SUCCEEDED' && export FOO='a b' && ls -l 'it'\"'\"'s here'"


def test_build_fragment_prints_marker_verbatim():
    frag = build_fragment('true', 'OK\\tDONE')
    assert frag.startswith("printf '%s\\n' 'OK\\tDONE' && ")


def test_build_fragment_rejects_bad_env_name():
    with pytest.raises(ValueError):
        build_fragment('true', 'M', {'BAD-NAME': 'x'})


def test_run_success_builds_sudo_invocation(monkeypatch, askpass):
    fake = FakeRun(0, b'AUTHENTICATION SUCCEEDED\nhi\n')
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)

    cfg = BrokerConfig(facility='sudo', locale='de', askpass_path=askpass)
    broker = Broker(config=cfg, registry=_registry(SudoFacility()),
                    base_env={'PATH': '/usr/bin', 'DISPLAY': ':0', 'SECRET_TOKEN': 'x'})
    res = broker.run('echo hi')

    assert res == Succeeded(stdout='hi\n', stderr='', exit_code=0)
    argv, kwargs = fake.calls[0]
    assert argv == ['sudo', '--reset-timestamp', '--askpass', 'sh', '-c',
                    "printf '%s\\n' 'AUTHENTICATION SUCCEEDED' && echo hi"]
    assert kwargs['env'] == {'PATH': '/usr/bin', 'DISPLAY': ':0', 'SUDO_ASKPASS': str(askpass)}
    assert kwargs['stdin'] is subprocess.DEVNULL


def test_run_cancelled(monkeypatch, askpass):
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', FakeRun(255))
    broker = Broker(config=BrokerConfig(askpass_path=askpass), registry=_registry(SudoFacility()), base_env={})
    assert isinstance(broker.run('echo hi'), Cancelled)


def test_missing_askpass_never_spawns(monkeypatch, tmp_path):
    fake = FakeRun(0, b'AUTHENTICATION SUCCEEDED\n')
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)
    broker = Broker(config=BrokerConfig(askpass_path=tmp_path / 'missing'),
                    registry=_registry(SudoFacility()), base_env={})

    res = broker.run('echo hi')

    assert isinstance(res, ExecutionError)
    assert res.kind is ErrorKind.SPAWN_FAILURE
    assert res.errno == 'ENOENT'
    assert fake.calls == []


def test_unexecutable_askpass_is_spawn_failure(monkeypatch, tmp_path):
    helper = tmp_path / 'askpass'
    helper.write_text('#!/bin/sh\n')
    helper.chmod(0o644)
    fake = FakeRun()
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)
    broker = Broker(config=BrokerConfig(askpass_path=helper), registry=_registry(SudoFacility()), base_env={})

    res = broker.run('true')

    assert res.kind is ErrorKind.SPAWN_FAILURE
    assert res.errno == 'EACCES'
    assert fake.calls == []


def test_no_askpass_configured(monkeypatch):
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', FakeRun())
    broker = Broker(config=BrokerConfig(askpass_path=None), registry=_registry(SudoFacility()), base_env={})
    res = broker.run('true')
    assert res.kind is ErrorKind.SPAWN_FAILURE


def test_missing_facility_binary(monkeypatch, askpass):
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run',
                        FakeRun(exc=FileNotFoundError(2, 'No such file or directory')))
    broker = Broker(config=BrokerConfig(askpass_path=askpass), registry=_registry(SudoFacility()), base_env={})
    res = broker.run('true')
    assert isinstance(res, ExecutionError)
    assert res.kind is ErrorKind.SPAWN_FAILURE
    assert res.errno == 'ENOENT'


def test_pkexec_needs_no_askpass(monkeypatch):
    fake = FakeRun(126)
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)
    broker = Broker(config=BrokerConfig(facility='pkexec', askpass_path=None),
                    registry=_registry(PkexecFacility()), base_env={'PATH': '/bin'})

    res = broker.run(['dd', 'if=/dev/zero'])

    assert res == Cancelled(reason=CancelReason.DECLINED)
    argv, kwargs = fake.calls[0]
    assert argv[:3] == ['pkexec', '--disable-internal-agent', '/bin/sh']
    assert 'SUDO_ASKPASS' not in kwargs['env']


def test_unknown_facility_raises():
    broker = Broker(config=BrokerConfig(facility='doas'), registry=_registry(SudoFacility()), base_env={})
    with pytest.raises(ValueError):
        broker.run('true')


def test_each_run_spawns_again(monkeypatch, askpass):
    fake = FakeRun(0, b'AUTHENTICATION SUCCEEDED\n')
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)
    broker = Broker(config=BrokerConfig(askpass_path=askpass), registry=_registry(SudoFacility()), base_env={})
    broker.run('true')
    broker.run('true')
    assert len(fake.calls) == 2


def test_serialized_runs_do_not_overlap(monkeypatch, askpass):
    active = []
    peak = []
    lock = threading.Lock()

    def slow_run(argv, **kwargs):
        with lock:
            active.append(1)
            peak.append(len(active))
        threading.Event().wait(0.05)
        with lock:
            active.pop()
        return subprocess.CompletedProcess(argv, 0, b'AUTHENTICATION SUCCEEDED\n', b'')

    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', slow_run)
    broker = Broker(config=BrokerConfig(askpass_path=askpass, serialize=True),
                    registry=_registry(SudoFacility()), base_env={})
    threads = [threading.Thread(target=broker.run, args=('true',)) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert max(peak) == 1


# End-to-end against stand-ins for sudo and the askpass helper

FAKE_SUDO = """#!/bin/sh
# behaves like `sudo --reset-timestamp --askpass sh -c FRAGMENT` for a user who may sudo
[ "$1" = "--reset-timestamp" ] || exit 98
shift
[ "$1" = "--askpass" ] || exit 99
shift
pw=$("$SUDO_ASKPASS" "[sudo] password:")
if [ $? -ne 0 ]; then
    echo "sudo: no password was provided" >&2
    echo "sudo: a password is required" >&2
    exit 1
fi
if [ "$pw" != "hunter2" ]; then
    echo "sudo: 1 incorrect password attempt" >&2
    exit 1
fi
exec "$@"
"""


@pytest.fixture
def fake_sudo(make_executable):
    return make_executable("sudo", FAKE_SUDO)


def _e2e_broker(fake_sudo, helper):
    cfg = BrokerConfig(askpass_path=helper)
    return Broker(config=cfg, registry=_registry(SudoFacility(executable=str(fake_sudo))),
                  base_env={'PATH': os.environ.get('PATH', '/usr/bin:/bin')})


def test_e2e_success(fake_sudo, askpass):
    res = _e2e_broker(fake_sudo, askpass).run('echo hi')
    assert res == Succeeded(stdout='hi\n', stderr='', exit_code=0)


def test_e2e_failing_command(fake_sudo, askpass):
    res = _e2e_broker(fake_sudo, askpass).run('exit 7')
    assert res == Succeeded(stdout='', stderr='', exit_code=7)


def test_e2e_argv_and_environment(fake_sudo, askpass):
    res = _e2e_broker(fake_sudo, askpass).run(['sh', '-c', 'printf "%s" "$GREETING"'],
                                               environment={'GREETING': "it's me"})
    assert isinstance(res, Succeeded)
    assert res.stdout == "it's me"


def test_e2e_cancel_never_runs_command(fake_sudo, make_executable, tmp_path):
    helper = make_executable("cancel", '#!/bin/sh\nexit 255\n')
    flag = tmp_path / 'ran'
    res = _e2e_broker(fake_sudo, helper).run(f"touch {flag}; echo done")
    assert res == Cancelled(reason=CancelReason.DECLINED)
    assert not flag.exists()


def test_e2e_wrong_password(fake_sudo, make_executable):
    helper = make_executable("wrong", '#!/bin/sh\necho letmein\n')
    res = _e2e_broker(fake_sudo, helper).run('echo hi')
    assert res == Cancelled(reason=CancelReason.REJECTED)


def test_e2e_password_never_in_result(fake_sudo, askpass):
    res = _e2e_broker(fake_sudo, askpass).run('echo hi; echo err >&2')
    assert 'hunter2' not in repr(res)


def test_invalid_marker_rejected_before_spawn(monkeypatch, askpass):
    fake = FakeRun(0, b'A\nB\n')
    monkeypatch.setattr('privbroker.managers.broker.subprocess.run', fake)
    with pytest.raises(ValueError):
        BrokerConfig(marker='A\nB', askpass_path=askpass)

    # a config object that skipped validation is still stopped by the broker
    cfg = SimpleNamespace(facility='sudo', locale='en', askpass_path=askpass, marker='A\nB',
                          serialize=False, extra_env_keys=())
    broker = Broker(config=cfg, registry=_registry(SudoFacility()), base_env={})
    with pytest.raises(ValueError):
        broker.run('true')
    assert fake.calls == []


def test_e2e_non_utf8_output_round_trips(fake_sudo, askpass):
    res = _e2e_broker(fake_sudo, askpass).run(r"printf '\377\376\000A'")
    assert isinstance(res, Succeeded)
    assert res.stdout_bytes == b'\xff\xfe\x00A'
    assert res.stdout.encode('utf-8', 'surrogateescape') == b'\xff\xfe\x00A'


def test_e2e_marker_with_backslash(fake_sudo, askpass):
    cfg = BrokerConfig(askpass_path=askpass, marker='OK\\tDONE')
    broker = Broker(config=cfg, registry=_registry(SudoFacility(executable=str(fake_sudo))),
                    base_env={'PATH': os.environ.get('PATH', '/usr/bin:/bin')})
    res = broker.run('echo hi')
    assert res == Succeeded(stdout='hi\n', stderr='', exit_code=0)


def test_e2e_headless_askpass_is_prompt_unavailable(fake_sudo, make_executable, tmp_path):
    helper = make_executable(
        "headless",
        '#!/bin/sh\necho "privbroker-askpass: prompt unavailable: no graphical session" >&2\nexit 2\n',
    )
    flag = tmp_path / 'ran'
    res = _e2e_broker(fake_sudo, helper).run(f"touch {flag}")
    assert isinstance(res, ExecutionError)
    assert res.kind is ErrorKind.PROMPT_UNAVAILABLE
    assert not flag.exists()


CACHING_SUDO = """#!/bin/sh
# remembers a successful authentication like sudo's timestamp file
stamp="$(dirname "$0")/timestamp"
reset=0
if [ "$1" = "--reset-timestamp" ]; then reset=1; shift; fi
[ "$1" = "--askpass" ] || exit 99
shift
if [ $reset -eq 1 ] || [ ! -f "$stamp" ]; then
    pw=$("$SUDO_ASKPASS" "[sudo] password:") || {
        echo "sudo: no password was provided" >&2
        exit 1
    }
    [ "$pw" = "hunter2" ] || exit 1
    touch "$stamp"
fi
exec "$@"
"""


def test_e2e_cached_credentials_still_prompt(make_executable, askpass):
    caching_sudo = make_executable("sudo", CACHING_SUDO)
    assert isinstance(_e2e_broker(caching_sudo, askpass).run('true'), Succeeded)

    cancel = make_executable("cancel", '#!/bin/sh\nexit 255\n')
    res = _e2e_broker(caching_sudo, cancel).run('echo hi')
    assert res == Cancelled(reason=CancelReason.DECLINED)
