"""
Unit tests for the in-memory transfer primitive, payment batches and the clock.
"""

import pytest

from datamarket.clock import LogicalClock
from datamarket.errors import InsufficientFunds
from datamarket.transfer import InMemoryBank, PaymentBatch


def make_bank(**balances):
    bank = InMemoryBank()
    for account, amount in balances.items():
        bank.deposit(account, amount)
    return bank


class TestInMemoryBank:
    def test_transfer_moves_value(self):
        bank = make_bank(alice=100)
        bank.transfer(40, "alice", "bob")
        assert bank.balance_of("alice") == 60
        assert bank.balance_of("bob") == 40

    def test_overdraw_declined_without_change(self):
        bank = make_bank(alice=10)
        with pytest.raises(InsufficientFunds):
            bank.transfer(11, "alice", "bob")
        assert bank.balances == {"alice": 10}

    def test_non_positive_amount_rejected(self):
        bank = make_bank(alice=10)
        with pytest.raises(ValueError):
            bank.transfer(0, "alice", "bob")

    def test_negative_deposit_rejected(self):
        with pytest.raises(ValueError):
            InMemoryBank().deposit("alice", -1)


class TestPaymentBatch:
    def test_all_legs_land(self):
        bank = make_bank(buyer=100)
        with PaymentBatch(bank) as batch:
            batch.pay(90, "buyer", "seller")
            batch.pay(10, "buyer", "fees")
        assert bank.balances == {"buyer": 0, "seller": 90, "fees": 10}

    def test_declined_leg_reverses_earlier_ones(self):
        bank = make_bank(buyer=95)
        with pytest.raises(InsufficientFunds):
            with PaymentBatch(bank) as batch:
                batch.pay(90, "buyer", "seller")
                batch.pay(10, "buyer", "fees")
        assert bank.balance_of("buyer") == 95
        assert bank.balance_of("seller") == 0
        assert bank.balance_of("fees") == 0

    def test_error_in_block_reverses_payments(self):
        bank = make_bank(buyer=50)
        with pytest.raises(RuntimeError):
            with PaymentBatch(bank) as batch:
                batch.pay(50, "buyer", "seller")
                raise RuntimeError("record write failed")
        assert bank.balance_of("buyer") == 50
        assert bank.balance_of("seller") == 0

    def test_zero_leg_skipped(self):
        bank = make_bank(buyer=5)
        with PaymentBatch(bank) as batch:
            batch.pay(5, "buyer", "seller")
            batch.pay(0, "buyer", "fees")
        assert "fees" not in bank.balances


class TestLogicalClock:
    def test_advance(self):
        clock = LogicalClock(start=7)
        assert clock.now() == 7
        assert clock.advance() == 8
        assert clock.advance(3) == 11
        assert clock.now() == 11

    def test_never_moves_backwards(self):
        clock = LogicalClock()
        with pytest.raises(ValueError):
            clock.advance(-1)
        with pytest.raises(ValueError):
            LogicalClock(start=-1)
