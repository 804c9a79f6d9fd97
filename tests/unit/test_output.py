"""
ECounter Test Suite - Output File Tests
=======================================
Tests for the per-unit energy files.
"""

import pytest


class TestFormatEnergy:
    """Tests for format_energy."""

    def test_whole_joules(self):
        """Test that fractional Joules are floored."""
        from ecounter.core.output import format_energy

        assert format_energy(0) == "0 Joules"
        assert format_energy(1234.99) == "1234 Joules"
        assert format_energy(10**12) == "1000000000000 Joules"


class TestEnergyFile:
    """Tests for EnergyFile."""

    def test_rewrite_in_place(self, temp_dir):
        """Test that every write replaces the previous content."""
        from ecounter.core.output import EnergyFile

        path = temp_dir / "cpu_package_0_energy"
        energy_file = EnergyFile(path).open()
        energy_file.write(12)
        assert path.read_text() == "12 Joules"
        energy_file.write(345)
        assert path.read_text() == "345 Joules"
        energy_file.close()

    def test_shorter_value_leaves_no_stale_bytes(self, temp_dir):
        """Test truncation after a shorter write."""
        from ecounter.core.output import EnergyFile

        path = temp_dir / "mock_0_energy"
        energy_file = EnergyFile(path).open()
        energy_file.write(1_000_000)
        energy_file.write(7)
        energy_file.close()

        assert path.read_text() == "7 Joules"

    def test_close_is_idempotent(self, temp_dir):
        """Test closing twice."""
        from ecounter.core.output import EnergyFile

        energy_file = EnergyFile(temp_dir / "f").open()
        assert energy_file.is_open
        energy_file.close()
        energy_file.close()
        assert not energy_file.is_open

    def test_write_closed_file(self, temp_dir):
        """Test writing before opening."""
        from ecounter.core.errors import OutputFileError
        from ecounter.core.output import EnergyFile

        with pytest.raises(OutputFileError):
            EnergyFile(temp_dir / "f").write(1)

    def test_open_missing_directory(self, temp_dir):
        """Test opening a file in a directory that does not exist."""
        from ecounter.core.errors import OutputFileError
        from ecounter.core.output import EnergyFile

        with pytest.raises(OutputFileError):
            EnergyFile(temp_dir / "missing" / "gpu_c1_energy").open()
