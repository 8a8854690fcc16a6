import signal
import time

import pytest

import presence_detector
from data import PresenceStore
from exceptions import CaptureError
from presence_detector import main
from tests.conftest import LAPTOP, PHONE, ScriptedCapture

SETTINGS = """\
[general]
store_dir = "{store_dir}"
capture_budget = 3
timeout = 600

[devices]
phone = "{phone}"
laptop = "{laptop}"
"""


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text(SETTINGS.format(store_dir=tmp_path / "store", phone=PHONE.upper(), laptop=LAPTOP),
                    encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path):
    return PresenceStore(tmp_path / "store")


def run(settings_file, *args):
    return main(["-c", str(settings_file), *args])


class TestQueryCommand:

    def test_never_seen_prints_nothing(self, settings_file, capsys):
        assert run(settings_file, "--query", "phone") == 0
        assert capsys.readouterr().out == ""

    def test_never_seen_on_off(self, settings_file, capsys):
        assert run(settings_file, "--query", "phone", "-b") == 0
        assert capsys.readouterr().out == "Off\n"

    def test_recent_sighting(self, settings_file, store, capsys):
        store.write("phone", int(time.time()) - 100)
        assert run(settings_file, "--query", "phone") == 0
        assert int(capsys.readouterr().out) in (100, 101)

        assert run(settings_file, "--query", "phone", "--on-off") == 0
        assert capsys.readouterr().out == "On\n"

    def test_settings_timeout_applies(self, settings_file, store, capsys):
        store.write("phone", int(time.time()) - 700)
        assert run(settings_file, "--query", "phone", "-b") == 0
        assert capsys.readouterr().out == "Off\n"

    def test_timeout_flag_overrides_settings(self, settings_file, store, capsys):
        store.write("phone", int(time.time()) - 700)
        assert run(settings_file, "--query", "phone", "-b", "-t", "3600") == 0
        assert capsys.readouterr().out == "On\n"

    def test_unknown_device(self, settings_file, capsys):
        assert run(settings_file, "--query", "tablet") == 3
        assert capsys.readouterr().out == ""


class TestConfiguration:

    def test_missing_settings_file(self, tmp_path):
        assert run(tmp_path / "nope.toml", "--query", "phone") == 3

    def test_settings_without_general_table(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text('[devices]\nphone = "%s"\n' % PHONE, encoding="utf-8")
        assert run(path, "--query", "phone") == 3

    def test_no_devices_for_detector(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text('[general]\nstore_dir = "%s"\n\n[devices]\n' % (tmp_path / "store"), encoding="utf-8")
        assert run(path, "--once") == 3


class TestUsage:

    def test_mode_is_required(self, settings_file):
        with pytest.raises(SystemExit) as excinfo:
            run(settings_file)
        assert excinfo.value.code == 2

    def test_modes_are_exclusive(self, settings_file):
        with pytest.raises(SystemExit) as excinfo:
            run(settings_file, "--once", "--query", "phone")
        assert excinfo.value.code == 2

    def test_negative_timeout(self, settings_file):
        with pytest.raises(SystemExit) as excinfo:
            run(settings_file, "--query", "phone", "-t", "-5")
        assert excinfo.value.code == 2


class TestDetectorCommands:

    def test_once_prints_devices_not_seen(self, settings_file, store, monkeypatch, capsys):
        capture = ScriptedCapture([LAPTOP, None])
        monkeypatch.setattr(presence_detector, "get_capture", lambda config: capture)
        assert run(settings_file, "--once") == 0
        assert capsys.readouterr().out == "phone\n"
        assert store.read("laptop") is not None
        assert capture.budgets == [3.0, 3.0]

    def test_capture_unavailable(self, settings_file, monkeypatch):
        class Unavailable(ScriptedCapture):
            def listen(self, addresses, budget):
                raise CaptureError("Not permitted to capture packets")

        monkeypatch.setattr(presence_detector, "get_capture", lambda config: Unavailable([]))
        assert run(settings_file, "--once") == 4

    def test_continuous_stops_on_sigterm(self, settings_file, store, monkeypatch):
        handlers = {}
        monkeypatch.setattr(presence_detector.signal, "signal",
                            lambda signum, handler: handlers.__setitem__(signum, handler))

        class StopAfterPhone(ScriptedCapture):
            def listen(self, addresses, budget):
                result = super().listen(addresses, budget)
                if not self.script:
                    handlers[signal.SIGTERM](signal.SIGTERM, None)
                return result

        capture = StopAfterPhone([PHONE])
        monkeypatch.setattr(presence_detector, "get_capture", lambda config: capture)
        assert run(settings_file, "--continuous") == 0
        assert len(capture.calls) == 1
        assert store.read("phone") is not None
        assert signal.SIGINT in handlers

    def test_list(self, settings_file, store, capsys):
        store.write("laptop", int(time.time()))
        assert run(settings_file, "--list") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["NAME", "MAC", "STATUS", "AGE", "VENDOR"]
        phone = lines[1].split()
        laptop = lines[2].split()
        assert phone[:4] == ["phone", PHONE, "unknown", "-"]
        assert laptop[:3] == ["laptop", LAPTOP, "present"]

    def test_forget(self, settings_file, store):
        store.write("phone", 1000)
        assert run(settings_file, "--forget", "phone") == 0
        assert store.read("phone") is None
        assert run(settings_file, "--forget", "phone") == 0
        assert run(settings_file, "--forget", "tablet") == 3


class TestVendorDatabase:

    def test_update_failure_alone(self, settings_file, monkeypatch):
        def offline():
            raise OSError("Network is unreachable")

        monkeypatch.setattr(presence_detector, "update_vendor_db", offline)
        assert run(settings_file, "--update-mac-db") == presence_detector.EXIT_VENDOR_DB

    def test_update_failure_does_not_block_mode(self, settings_file, monkeypatch, capsys):
        def offline():
            raise OSError("Network is unreachable")

        monkeypatch.setattr(presence_detector, "update_vendor_db", offline)
        assert run(settings_file, "--update-mac-db", "--query", "phone", "-b") == 0
        assert capsys.readouterr().out == "Off\n"

    def test_update_success(self, settings_file, monkeypatch):
        calls = []
        monkeypatch.setattr(presence_detector, "update_vendor_db", lambda: calls.append(True))
        assert run(settings_file, "--update-mac-db") == 0
        assert calls == [True]


class TestStoreAccess:

    def test_unopenable_record_is_an_error_not_off(self, settings_file, store, capsys):
        # A directory in place of the record cannot be opened, even by root
        store.path_for("phone").mkdir(parents=True)
        assert run(settings_file, "--query", "phone", "-b") == 5
        assert capsys.readouterr().out == ""
