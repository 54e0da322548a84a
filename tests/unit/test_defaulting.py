"""Unit tests for process input defaulting."""

from unittest.mock import MagicMock

import pytest

from testplane.errors import (
    BinaryNotFoundError,
    ConfigurationError,
    DirectoryCreationError,
    InvalidBindURLError,
)
from testplane.process.defaulting import (
    DEFAULT_START_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
    do_defaulting,
    remove_owned_dir,
)
from testplane.process.ports import PortAllocator
from testplane.process.templates import BoundURL


class TestDoDefaulting:
    """Tests for do_defaulting function."""

    def test_caller_values_preserved(self, executable, tmp_path):
        """Test every caller-supplied value is kept as given."""
        binary = executable()
        data_dir = tmp_path / "data"
        data_dir.mkdir()

        defaulted = do_defaulting(
            "etcd",
            bind_url="http://127.0.0.1:2379",
            data_dir=data_dir,
            binary_path=binary,
            start_timeout=3.0,
            stop_timeout=1.5,
        )

        assert defaulted.url == BoundURL.parse("http://127.0.0.1:2379")
        assert defaulted.dir == data_dir
        assert defaulted.dir_needs_cleanup is False
        assert defaulted.path == binary.resolve()
        assert defaulted.start_timeout == 3.0
        assert defaulted.stop_timeout == 1.5

    def test_bind_url_round_trip(self, executable):
        """Test a caller's bind URL comes back exactly as written."""
        defaulted = do_defaulting("etcd", bind_url="http://EtcdHost:2379", binary_path=executable())
        assert str(defaulted.url) == "http://EtcdHost:2379"
        remove_owned_dir(defaulted)

    def test_allocates_url(self, executable):
        """Test an empty bind URL gets a free local port."""
        defaulted = do_defaulting("etcd", binary_path=executable())
        remove_owned_dir(defaulted)

        assert defaulted.url.scheme == "http"
        assert defaulted.url.hostname == "127.0.0.1"
        assert 0 < defaulted.url.port < 65536
        assert BoundURL.parse(str(defaulted.url)) == defaulted.url

    def test_uses_given_allocator(self, executable):
        """Test the port comes from the caller's allocator."""
        ports = MagicMock(spec=PortAllocator)
        ports.suggest.return_value = 40123
        defaulted = do_defaulting("etcd", binary_path=executable(), ports=ports)
        remove_owned_dir(defaulted)
        assert defaulted.url.port == 40123

    def test_allocation_failure(self, executable):
        """Test a failed allocation is a configuration error."""
        ports = MagicMock(spec=PortAllocator)
        ports.suggest.side_effect = OSError("exhausted")
        with pytest.raises(ConfigurationError, match="Cannot allocate a free port"):
            do_defaulting("etcd", binary_path=executable(), ports=ports)

    def test_temp_dir_created_and_owned(self, executable):
        """Test an empty data dir becomes a fresh owned temp dir."""
        defaulted = do_defaulting("etcd", binary_path=executable())
        try:
            assert defaulted.dir.is_dir()
            assert defaulted.dir.name.startswith("testplane-etcd-")
            assert defaulted.dir_needs_cleanup is True
        finally:
            remove_owned_dir(defaulted)
        assert not defaulted.dir.exists()

    def test_missing_caller_dir_created_and_owned(self, executable, tmp_path):
        """Test a caller dir that does not exist is created and owned."""
        data_dir = tmp_path / "nested" / "data"
        defaulted = do_defaulting("etcd", data_dir=str(data_dir), binary_path=executable())
        assert data_dir.is_dir()
        assert defaulted.dir_needs_cleanup is True

    def test_dir_creation_failure(self, executable, tmp_path):
        """Test a directory that cannot be created."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(DirectoryCreationError) as exc_info:
            do_defaulting("etcd", data_dir=blocker / "data", binary_path=executable())
        assert exc_info.value.path == str(blocker / "data")
        assert exc_info.value.component == "etcd"

    @pytest.mark.parametrize("value", [None, 0])
    def test_default_timeouts(self, executable, value):
        """Test unset timeouts get the defaults."""
        defaulted = do_defaulting(
            "etcd", binary_path=executable(), start_timeout=value, stop_timeout=value
        )
        remove_owned_dir(defaulted)
        assert defaulted.start_timeout == DEFAULT_START_TIMEOUT
        assert defaulted.stop_timeout == DEFAULT_STOP_TIMEOUT

    def test_component_default_timeouts(self, executable):
        """Test a component can bring its own defaults."""
        defaulted = do_defaulting(
            "etcd", binary_path=executable(), default_start_timeout=60, default_stop_timeout=9
        )
        remove_owned_dir(defaulted)
        assert defaulted.start_timeout == 60
        assert defaulted.stop_timeout == 9

    def test_negative_timeout(self, executable):
        """Test negative timeouts are rejected."""
        with pytest.raises(ConfigurationError, match="start_timeout"):
            do_defaulting("etcd", binary_path=executable(), start_timeout=-1)

    def test_invalid_bind_url(self, executable):
        """Test an invalid bind URL names the component."""
        with pytest.raises(InvalidBindURLError) as exc_info:
            do_defaulting("etcd", bind_url="localhost:2379", binary_path=executable())
        assert exc_info.value.component == "etcd"

    def test_missing_binary_creates_nothing(self, tmp_path):
        """Test no directory is created when the binary is missing."""
        data_dir = tmp_path / "data"
        with pytest.raises(BinaryNotFoundError):
            do_defaulting("etcd", data_dir=data_dir, binary_path=tmp_path / "missing")
        assert not data_dir.exists()


class TestRemoveOwnedDir:
    """Tests for remove_owned_dir function."""

    def test_keeps_caller_dir(self, executable, tmp_path):
        """Test a pre-existing caller dir is never removed."""
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        defaulted = do_defaulting("etcd", data_dir=data_dir, binary_path=executable())
        remove_owned_dir(defaulted)
        assert data_dir.is_dir()

    def test_already_removed(self, executable):
        """Test removing twice is harmless."""
        defaulted = do_defaulting("etcd", binary_path=executable())
        remove_owned_dir(defaulted)
        remove_owned_dir(defaulted)
        assert not defaulted.dir.exists()
