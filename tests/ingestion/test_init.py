import io
import pytest

from ingestion import (
    detect_format,
    detect_source_format,
    get_available_modules,
    get_ingestion_module,
)
import ingestion.amex as amex
import ingestion.bank as bank
import ingestion.chase as chase


class TestGetIngestionModule:
    """Tests for get_ingestion_module function."""

    @pytest.mark.parametrize("name, module", [("amex", amex), ("bank", bank), ("chase", chase)])
    def test_get_module(self, name, module):
        assert get_ingestion_module(name) is module

    def test_get_invalid_module_raises_error(self):
        with pytest.raises(ValueError, match="Unknown ingestion module: invalid"):
            get_ingestion_module("invalid")

    def test_get_case_sensitive(self):
        with pytest.raises(ValueError, match="Unknown ingestion module: AMEX"):
            get_ingestion_module("AMEX")


class TestGetAvailableModules:
    def test_returns_all_modules(self):
        assert set(get_available_modules()) == {"amex", "bank", "chase"}


class TestDetectFormat:
    def test_detects_each_format(self):
        assert detect_format(["Transaction Date", "Post Date", "Description", "Category", "Type", "Amount", "Memo"]) == "chase"
        assert detect_format(["Date", "Description", "Card Member", "Account #", "Amount"]) == "amex"
        assert detect_format(["Date", "Description", "Amount", "Running Bal."]) == "bank"

    def test_unknown_header(self):
        assert detect_format(["foo", "bar"]) is None

    def test_detect_source_format_rewinds(self):
        source = io.StringIO(
            "Description,,Summary Amt.\n"
            "Total credits,,100.00\n"
            "Date,Description,Amount,Running Bal.\n"
            "01/02/2025,PAYROLL,100.00,100.00\n"
        )

        assert detect_source_format(source) == "bank"
        assert source.tell() == 0
        assert len(bank.ingest(source)) == 1

    def test_detect_source_format_unknown(self):
        assert detect_source_format(io.StringIO("a,b\n1,2\n")) is None
