"""
Tests for claimer.py - claim method/venue resolution and the claim chain.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.system_program import TransferParams, transfer

from autoburner.claimer import (
    MULTI_VENUES,
    ClaimConfig,
    ClaimResolver,
    with_blockhash,
)
from autoburner.errors import ErrorKind, RelayError
from autoburner.state import CycleState, ReplayCache


class TestClaimConfig:
    """Tests for ClaimConfig validation."""

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            ClaimConfig(method="magic")

    def test_method_lowercased(self):
        assert ClaimConfig(method="Replay").method == "replay"


class TestClaimResolution:
    """Tests for method, venue, fee and body resolution."""

    def _resolver(self, solana, pumpportal, mint, **config):
        return ClaimResolver(solana, pumpportal, mint, ClaimConfig(**config))

    def test_explicit_method_wins(self, mock_solana_client, mock_pumpportal_client, token_mint):
        mock_pumpportal_client.api_key = "key"
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint,
                                  method="local", reference_signature="sig")
        assert resolver.resolve_method() == "local"

    def test_auto_prefers_replay_then_lightning_then_local(
        self, mock_solana_client, mock_pumpportal_client, token_mint
    ):
        mock_pumpportal_client.api_key = "key"
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint, reference_signature="sig")
        assert resolver.resolve_method() == "replay"

        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint)
        assert resolver.resolve_method() == "lightning"

        mock_pumpportal_client.api_key = None
        assert resolver.resolve_method() == "local"

    @pytest.mark.parametrize("claim_pool,method,expected", [
        ("multi", "local", MULTI_VENUES),
        ("pump", "lightning", MULTI_VENUES),
        ("raydium", "local", ["raydium"]),
        (None, "local", ["pump-amm"]),
        ("multi", "replay", ["pump-amm"]),
        ("raydium", "replay", ["raydium"]),
    ])
    def test_resolve_venues(self, mock_solana_client, mock_pumpportal_client, token_mint,
                            claim_pool, method, expected):
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint,
                                  pool="pump-amm", claim_pool=claim_pool)
        assert resolver.resolve_venues(method) == expected

    def test_priority_fee_fallbacks(self, mock_solana_client, mock_pumpportal_client, token_mint):
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint, priority_fee=0)
        assert resolver.priority_fees() == [0, 0.00001, 0.00005]
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint, priority_fee=0.0002)
        assert resolver.priority_fees() == [0.0002]

    def test_claim_bodies(self, mock_solana_client, mock_pumpportal_client, token_mint):
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint)
        wallet = str(mock_solana_client.pubkey)
        base = {"publicKey": wallet, "action": "collectCreatorFee", "priorityFee": 0.0001}

        assert resolver.claim_bodies("pump", 0.0001) == [base, {**base, "pool": "pump"}]
        assert resolver.claim_bodies("raydium", 0.0001) == [
            {**base, "pool": "raydium"},
            {**base, "pool": "raydium", "mint": token_mint},
        ]

    def test_build_attempts_marks_final_per_venue(self, mock_solana_client, mock_pumpportal_client, token_mint):
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint,
                                  claim_pool="multi", priority_fee=0)
        attempts = resolver.build_attempts("local")

        # 5 venues x 3 fees x 2 bodies
        assert len(attempts) == 30
        finals = [a for a in attempts if a.final_for_venue]
        assert [a.venue for a in finals] == MULTI_VENUES
        assert all(a.priority_fee == 0.00005 for a in finals)

    def test_replay_yields_one_attempt_per_venue(self, mock_solana_client, mock_pumpportal_client, token_mint):
        resolver = self._resolver(mock_solana_client, mock_pumpportal_client, token_mint,
                                  priority_fee=0, reference_signature="sig")
        attempts = resolver.build_attempts("replay")
        assert len(attempts) == 1
        assert attempts[0].final_for_venue


class TestClaimChain:
    """Tests for ClaimResolver.claim."""

    @pytest.fixture
    def resolver(self, mock_solana_client, mock_pumpportal_client, token_mint):
        return ClaimResolver(
            mock_solana_client, mock_pumpportal_client, token_mint,
            ClaimConfig(method="local", claim_pool="multi")
        )

    @pytest.mark.asyncio
    async def test_first_rewarding_claim_wins(self, resolver, mock_solana_client, mock_pumpportal_client):
        mock_pumpportal_client.trade_local.return_value = b"\x00" * 10
        mock_solana_client.send_transaction.return_value = "claimSig"
        mock_solana_client.get_transaction_logs.return_value = ["Program log: Instruction: CollectCreatorFee"]

        assert await resolver.claim(CycleState()) == "claimSig"
        assert mock_pumpportal_client.trade_local.await_count == 1
        body = mock_pumpportal_client.trade_local.call_args.args[0]
        assert body["action"] == "collectCreatorFee"
        assert "pool" not in body

    @pytest.mark.asyncio
    async def test_no_reward_logs_move_to_next_attempt(self, resolver, mock_solana_client, mock_pumpportal_client):
        mock_pumpportal_client.trade_local.return_value = b"\x00"
        mock_solana_client.send_transaction.side_effect = ["sig1", "sig2"]
        mock_solana_client.get_transaction_logs.side_effect = [
            ["Program log: No creator fee to collect"],
            ["Program log: ok"],
        ]

        assert await resolver.claim(CycleState()) == "sig2"
        assert mock_pumpportal_client.trade_local.await_count == 2

    @pytest.mark.asyncio
    async def test_failures_continue_to_next_venue(self, resolver, mock_solana_client, mock_pumpportal_client):
        rejected = RelayError("PumpPortal error 400: bad", ErrorKind.RELAY_REJECTED)
        mock_pumpportal_client.trade_local.side_effect = [rejected, rejected, b"\x00"]
        mock_solana_client.send_transaction.return_value = "ammSig"
        mock_solana_client.get_transaction_logs.return_value = []

        assert await resolver.claim(CycleState()) == "ammSig"
        third_body = mock_pumpportal_client.trade_local.call_args_list[2].args[0]
        assert third_body["pool"] == "pump-amm"

    @pytest.mark.asyncio
    async def test_log_lookup_failure_counts_as_rewarded(self, resolver, mock_solana_client, mock_pumpportal_client):
        mock_pumpportal_client.trade_local.return_value = b"\x00"
        mock_solana_client.send_transaction.return_value = "sig"
        mock_solana_client.get_transaction_logs.side_effect = RuntimeError("rpc down")

        assert await resolver.claim(CycleState()) == "sig"

    @pytest.mark.asyncio
    async def test_exhaustion_returns_none(self, resolver, mock_pumpportal_client):
        mock_pumpportal_client.trade_local.side_effect = RelayError("PumpPortal error 500", ErrorKind.TRANSIENT)

        assert await resolver.claim(CycleState()) is None
        assert mock_pumpportal_client.trade_local.await_count == 10

    @pytest.mark.asyncio
    async def test_lightning_uses_relay_signature(self, mock_solana_client, mock_pumpportal_client, token_mint):
        mock_pumpportal_client.api_key = "key"
        mock_pumpportal_client.trade_lightning.return_value = "lightSig"
        mock_solana_client.get_transaction_logs.return_value = []
        resolver = ClaimResolver(mock_solana_client, mock_pumpportal_client, token_mint, ClaimConfig())

        assert await resolver.claim(CycleState()) == "lightSig"
        mock_solana_client.send_transaction.assert_not_called()


class TestReplay:
    """Tests for replaying a reference claim transaction."""

    @pytest.mark.asyncio
    async def test_reference_fetched_once(self, mock_solana_client, mock_pumpportal_client, token_mint):
        mock_solana_client.get_transaction_raw.return_value = b"raw-claim"
        mock_solana_client.get_latest_blockhash.return_value = Hash.default()
        mock_solana_client.send_transaction.return_value = "replaySig"
        mock_solana_client.get_transaction_logs.return_value = []
        resolver = ClaimResolver(
            mock_solana_client, mock_pumpportal_client, token_mint,
            ClaimConfig(method="replay", reference_signature="refSig")
        )
        state = CycleState()

        with patch('autoburner.claimer.VersionedTransaction') as vtx, \
                patch('autoburner.claimer.with_blockhash', side_effect=lambda m, h: m):
            assert await resolver.claim(state) == "replaySig"
            assert await resolver.claim(state) == "replaySig"

        mock_solana_client.get_transaction_raw.assert_awaited_once_with("refSig")
        assert state.replay_cache == ReplayCache(signature="refSig", raw_tx=b"raw-claim")
        vtx.from_bytes.assert_called_with(b"raw-claim")

    @pytest.mark.asyncio
    async def test_missing_reference_fails_claim(self, mock_solana_client, mock_pumpportal_client, token_mint):
        mock_solana_client.get_transaction_raw.return_value = None
        resolver = ClaimResolver(
            mock_solana_client, mock_pumpportal_client, token_mint,
            ClaimConfig(method="replay", reference_signature="refSig")
        )
        assert await resolver.claim(CycleState()) is None
        mock_solana_client.send_transaction.assert_not_called()

    def test_with_blockhash_legacy_message(self):
        payer = Keypair().pubkey()
        ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Keypair().pubkey(), lamports=1))
        message = Message.new_with_blockhash([ix], payer, Hash.default())
        fresh = Hash.new_unique()

        updated = with_blockhash(message, fresh)

        assert updated.recent_blockhash == fresh
        assert updated.account_keys == message.account_keys
        assert updated.instructions == message.instructions
