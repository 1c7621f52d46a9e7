"""
Tests for utils.py
"""
import re

from wallet_gateway.utils import (
    endpoint_label,
    first_present,
    is_nonzero_amount,
    lamports_to_sol,
    new_id,
    short_mint,
)


class TestUtils:
    """Tests for utility functions."""

    def test_endpoint_label_strips_query(self):
        """Test API keys in query strings never reach the label."""
        label = endpoint_label("https://mainnet.helius-rpc.com/?api-key=SECRET")

        assert "SECRET" not in label
        assert label == "https://mainnet.helius-rpc.com/"

    def test_endpoint_label_truncates(self):
        """Test long URLs are cut to the maximum length."""
        assert len(endpoint_label("https://" + "a" * 100)) == 50

    def test_short_mint(self, sol_mint):
        """Test mints are shortened for logs."""
        assert short_mint(sol_mint) == "So111111..."
        assert short_mint("abc") == "abc"

    def test_new_id_format(self):
        """Test generated ids are prefix-millis-random6."""
        assert re.fullmatch(r"order-\d{13}-[a-z0-9]{6}", new_id("order"))

    def test_new_id_unique(self):
        """Test consecutive ids differ."""
        assert new_id("order") != new_id("order")

    def test_lamports_to_sol(self):
        """Test lamport conversion."""
        assert lamports_to_sol(1_500_000_000) == 1.5

    def test_is_nonzero_amount(self):
        """Test amount truthiness across strings and numbers."""
        assert is_nonzero_amount("1500")
        assert is_nonzero_amount(2)
        assert not is_nonzero_amount("0")
        assert not is_nonzero_amount("")
        assert not is_nonzero_amount(None)
        assert not is_nonzero_amount("abc")

    def test_first_present(self):
        """Test the first non-empty value is returned."""
        assert first_present(None, "", "x", "y") == "x"
        assert first_present(None, "") is None
        assert first_present(0, 1) == 0
