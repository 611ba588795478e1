"""Tests for the materializer: writes, pins, disable markers, legacy names."""

import os

from conftest import make_archive

from optplug.plugins.materialize import materialize, normalize_legacy
from optplug.plugins.models import InstalledPlugin

STAMP = 1_600_000_000


def staged(tmp_path, host, name, version="1.0", **kw):
    path = make_archive(tmp_path / "staging", name, version, **kw)
    os.utime(path, (STAMP, STAMP))
    return host.wrap(path)


class TestMaterialize:
    def test_writes_new_archive_with_declared_mtime(self, tmp_path, host):
        c = staged(tmp_path, host, "foo")
        result = materialize([c], {"foo"}, host)
        target = host.plugins_dir / "foo.plugin"
        assert target.read_bytes() == c.archive.read_bytes()
        assert target.stat().st_mtime == STAMP
        assert result.written == ["foo"]
        assert result.ready == {"foo": target}
        assert not result.restart_required

    def test_unchanged_file_not_rewritten(self, tmp_path, host):
        c = staged(tmp_path, host, "foo")
        materialize([c], {"foo"}, host)
        result = materialize([c], {"foo"}, host)
        assert result.written == []
        assert "foo" in result.ready

    def test_timestamp_change_rewrites(self, tmp_path, host):
        c = staged(tmp_path, host, "foo")
        materialize([c], {"foo"}, host)
        os.utime(c.archive, (STAMP + 60, STAMP + 60))
        result = materialize([c], {"foo"}, host)
        assert result.written == ["foo"]

    def test_pin_marker_freezes_file(self, tmp_path, host):
        host.plugins_dir.mkdir(parents=True)
        target = host.plugins_dir / "foo.plugin"
        target.write_bytes(b"pinned content")
        (host.plugins_dir / "foo.plugin.pinned").touch()
        c = staged(tmp_path, host, "foo", "2.0")
        result = materialize([c], {"foo"}, host)
        assert target.read_bytes() == b"pinned content"
        assert result.written == []
        assert "foo" not in result.ready

    def test_disable_marker_for_unsatisfied(self, tmp_path, host):
        c = staged(tmp_path, host, "foo", deps=["missing:1.0"])
        result = materialize([c], set(), host)
        marker = host.plugins_dir / "foo.plugin.disabled"
        assert marker.exists()
        assert marker.stat().st_size == 0
        assert (host.plugins_dir / "foo.plugin").exists()
        assert "foo" not in result.ready

    def test_disable_marker_removed_when_enabled(self, tmp_path, host):
        host.plugins_dir.mkdir(parents=True)
        marker = host.plugins_dir / "foo.plugin.disabled"
        marker.touch()
        c = staged(tmp_path, host, "foo")
        materialize([c], {"foo"}, host)
        assert not marker.exists()

    def test_active_same_version_skipped(self, tmp_path, host):
        host.installed["foo"] = InstalledPlugin("foo", "1.0", active=True)
        c = staged(tmp_path, host, "foo", "1.0")
        result = materialize([c], {"foo"}, host)
        assert not (host.plugins_dir / "foo.plugin").exists()
        assert not result.restart_required

    def test_active_pinned_left_untouched_restart_required(self, tmp_path, host):
        host.plugins_dir.mkdir(parents=True)
        target = host.plugins_dir / "bar.plugin"
        target.write_bytes(b"v1")
        (host.plugins_dir / "bar.plugin.pinned").touch()
        host.installed["bar"] = InstalledPlugin("bar", "1.0", active=True, pinned=True)
        c = staged(tmp_path, host, "bar", "1.5")
        result = materialize([c], {"bar"}, host)
        assert target.read_bytes() == b"v1"
        assert result.restart_required

    def test_active_unpinned_written_restart_required(self, tmp_path, host):
        host.installed["bar"] = InstalledPlugin("bar", "1.0", active=True)
        c = staged(tmp_path, host, "bar", "1.5")
        result = materialize([c], {"bar"}, host)
        assert (host.plugins_dir / "bar.plugin").exists()
        assert result.restart_required
        assert "bar" not in result.ready


class TestNormalizeLegacy:
    def test_moves_archive_and_markers(self, tmp_path):
        (tmp_path / "foo.plg").write_bytes(b"x")
        (tmp_path / "foo.plg.pinned").touch()
        (tmp_path / "foo.plg.disabled").touch()
        normalize_legacy(tmp_path, "foo")
        assert (tmp_path / "foo.plugin").read_bytes() == b"x"
        assert (tmp_path / "foo.plugin.pinned").exists()
        assert (tmp_path / "foo.plugin.disabled").exists()
        assert not list(tmp_path.glob("*.plg*"))

    def test_existing_destination_kept(self, tmp_path):
        (tmp_path / "foo.plg").write_bytes(b"old")
        (tmp_path / "foo.plugin").write_bytes(b"new")
        normalize_legacy(tmp_path, "foo")
        assert (tmp_path / "foo.plugin").read_bytes() == b"new"
        assert (tmp_path / "foo.plg").exists()

    def test_nothing_to_do(self, tmp_path):
        normalize_legacy(tmp_path, "foo")
        assert list(tmp_path.iterdir()) == []
