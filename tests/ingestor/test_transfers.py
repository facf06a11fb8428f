"""Tests for balance-delta transfer extraction."""

from decimal import Decimal

from solana_copytrader.ingestor.tokens import NATIVE_MINT
from solana_copytrader.ingestor.transfers import (
    MIN_TRANSFER_AMOUNT,
    extract_transfers,
    native_transfer,
    token_balance_transfers,
)

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
UNKNOWN_MINT = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


class TestNativeTransfer:
    def test_fee_is_added_back(self, make_tx) -> None:
        # 10 SOL -> 9.4995 SOL with a 0.0005 SOL fee is a 0.5 SOL transfer out.
        tx = make_tx(
            pre_balances=[10_000_000_000, 0, 1],
            post_balances=[9_499_500_000, 0, 1],
            fee=500_000,
        )

        transfer = native_transfer(tx, WALLET)

        assert transfer is not None
        assert transfer.direction == "out"
        assert transfer.amount == Decimal("0.5")
        assert transfer.mint == NATIVE_MINT
        assert transfer.symbol == "SOL"
        assert transfer.decimals == 9

    def test_fee_only_transaction_yields_nothing(self, make_tx) -> None:
        tx = make_tx(pre_balances=[1_000_000, 0, 1], post_balances=[995_000, 0, 1], fee=5000)
        assert native_transfer(tx, WALLET) is None

    def test_incoming_transfer(self, make_tx) -> None:
        tx = make_tx(
            account_keys=[OTHER, WALLET],
            pre_balances=[5_000_000_000, 1_000_000_000],
            post_balances=[3_999_995_000, 2_000_000_000],
        )
        transfer = native_transfer(tx, WALLET)
        # Fee is added back to the wallet's own delta even when it is not the payer.
        assert transfer is not None
        assert transfer.direction == "in"
        assert transfer.amount == Decimal("1.000005")

    def test_wallet_not_in_account_keys(self, make_tx) -> None:
        tx = make_tx(
            account_keys=[OTHER],
            pre_balances=[10_000_000_000],
            post_balances=[1_000_000_000],
        )
        assert native_transfer(tx, WALLET) is None

    def test_missing_balances(self, make_tx) -> None:
        tx = make_tx()
        tx["meta"]["preBalances"] = []
        assert native_transfer(tx, WALLET) is None


class TestTokenBalanceTransfers:
    def test_pre_and_post_matched_by_account_index(self, make_tx, token_balance) -> None:
        tx = make_tx(
            pre_token_balances=[token_balance(4, USDC_MINT, WALLET, "100")],
            post_token_balances=[token_balance(4, USDC_MINT, WALLET, "75.5")],
        )

        [transfer] = token_balance_transfers(tx, WALLET)

        assert transfer.mint == USDC_MINT
        assert transfer.amount == Decimal("24.5")
        assert transfer.direction == "out"
        assert transfer.symbol == "USDC"
        assert transfer.decimals == 6

    def test_new_token_account_seeds_pre_zero(self, make_tx, token_balance) -> None:
        tx = make_tx(
            post_token_balances=[token_balance(5, UNKNOWN_MINT, WALLET, "42", decimals=9)],
        )

        [transfer] = token_balance_transfers(tx, WALLET)

        assert transfer.direction == "in"
        assert transfer.amount == Decimal("42")
        assert transfer.symbol is None

    def test_closed_token_account_seeds_post_zero(self, make_tx, token_balance) -> None:
        tx = make_tx(pre_token_balances=[token_balance(5, USDC_MINT, WALLET, "3")])

        [transfer] = token_balance_transfers(tx, WALLET)

        assert transfer.direction == "out"
        assert transfer.amount == Decimal("3")

    def test_ignores_other_owners(self, make_tx, token_balance) -> None:
        tx = make_tx(
            pre_token_balances=[token_balance(4, USDC_MINT, OTHER, "100")],
            post_token_balances=[token_balance(4, USDC_MINT, OTHER, "0")],
        )
        assert token_balance_transfers(tx, WALLET) == []

    def test_dust_below_threshold_dropped(self, make_tx, token_balance) -> None:
        tx = make_tx(
            pre_token_balances=[token_balance(4, USDC_MINT, WALLET, "1.0000000")],
            post_token_balances=[token_balance(4, USDC_MINT, WALLET, "1.0000005")],
        )
        assert token_balance_transfers(tx, WALLET) == []

    def test_falls_back_to_ui_amount(self, make_tx, token_balance) -> None:
        balance = token_balance(4, USDC_MINT, WALLET, "2")
        del balance["uiTokenAmount"]["uiAmountString"]
        tx = make_tx(post_token_balances=[balance])

        [transfer] = token_balance_transfers(tx, WALLET)
        assert transfer.amount == Decimal("2.0")

    def test_missing_token_balance_lists(self, make_tx) -> None:
        tx = make_tx(pre_balances=[2_000_000_000, 0, 1], post_balances=[1_000_000_000, 0, 1])
        del tx["meta"]["preTokenBalances"]
        del tx["meta"]["postTokenBalances"]

        transfers = extract_transfers(tx, WALLET)

        assert [t.mint for t in transfers] == [NATIVE_MINT]


class TestExtractTransfers:
    def test_token_transfers_precede_native(self, make_tx, token_balance) -> None:
        tx = make_tx(
            pre_balances=[5_000_000_000, 0, 1],
            post_balances=[3_999_995_000, 0, 1],
            pre_token_balances=[
                token_balance(3, USDC_MINT, WALLET, "0"),
                token_balance(4, UNKNOWN_MINT, WALLET, "10", decimals=9),
            ],
            post_token_balances=[
                token_balance(3, USDC_MINT, WALLET, "150"),
                token_balance(4, UNKNOWN_MINT, WALLET, "0", decimals=9),
            ],
        )

        transfers = extract_transfers(tx, WALLET)

        assert [t.mint for t in transfers] == [USDC_MINT, UNKNOWN_MINT, NATIVE_MINT]
        assert [t.direction for t in transfers] == ["in", "out", "out"]
        assert all(t.amount > MIN_TRANSFER_AMOUNT for t in transfers)

    def test_no_movement(self, make_tx) -> None:
        assert extract_transfers(make_tx(), WALLET) == []
