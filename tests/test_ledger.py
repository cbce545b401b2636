import pytest

from metachain.ledger import BalanceChange, Ledger, LedgerError


def test_apply_accumulates():
    ledger = Ledger("MCRC")
    ledger.apply([BalanceChange("MCRC", "A", 3), BalanceChange("MCRC", "A", 4)])
    assert ledger.balance("A") == 7
    assert ledger.balance("B") == 0
    assert ledger.totals() == {"MCRC": 7}


def test_addresses_are_normalized():
    ledger = Ledger("MCRC")
    ledger.apply([BalanceChange("MCRC", "MC12 3456", 1)])
    assert ledger.balance("MC123456") == 1
    assert ledger.snapshot() == {"MCRC": {"MC123456": 1}}


def test_rejected_batch_changes_nothing():
    ledger = Ledger("MCRC")
    ledger.apply([BalanceChange("MCRC", "A", 2)])
    with pytest.raises(LedgerError):
        ledger.apply([BalanceChange("MCRC", "B", 5), BalanceChange("MCRC", "A", -3)])
    assert ledger.snapshot() == {"MCRC": {"A": 2}}
