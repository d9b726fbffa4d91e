"""End-to-end scenarios — conservation, rate uniformity, and reentrancy rejection."""

import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from redemption.adapters.memory import (
    InMemoryAssetContract,
    InMemoryBeneficiary,
    InMemoryValueRail,
    ManualClock,
)
from redemption.config import RedemptionConfig
from redemption.contract import RedemptionContract
from redemption.errors import (
    AfterDeadline,
    InvalidConfiguration,
    InvalidDuration,
    ReentrantCall,
    TransferFailed,
    UncommittedHash,
)
from redemption.models.redemption import Phase, to_base_units


UNIT = 10**18
CORE = "redemption"
DAO = "dao"


def _start() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class _World:
    """A contract wired to fresh in-memory collaborators."""

    def __init__(self, holdings: dict[str, list[int]], duration: int = 3600) -> None:
        self.clock = ManualClock(_start())
        self.asset = InMemoryAssetContract(governance_cap=1000)
        self.rail = InMemoryValueRail()
        self.contract = RedemptionContract(
            duration,
            self.asset,
            InMemoryBeneficiary(DAO, self.asset),
            self.rail,
            config=RedemptionConfig(reserved_id_floor=100),
            clock=self.clock,
        )
        for holder, token_ids in holdings.items():
            self.asset.mint(holder, token_ids)
            self.asset.set_approval_for_all(holder, CORE, True)

    def close(self) -> None:
        self.clock.advance(3600)


def _three_holders_543() -> dict[str, list[int]]:
    return {
        "alice": list(range(100, 281)),
        "bob": list(range(281, 462)),
        "carol": list(range(462, 643)),
    }


class TestUnderfundedPool:
    """542.97 units over 543 commitments: every token redeems just under one unit."""

    def test_each_token_redeems_equal_share(self) -> None:
        world = _World(_three_holders_543())
        funding = to_base_units(Decimal("542.97"), 18)
        world.contract.receive("treasury", funding)
        for holder, token_ids in _three_holders_543().items():
            world.contract.commit(holder, token_ids)
        assert world.contract.total_commitments == 543
        world.close()

        expected = funding // 543
        assert expected < UNIT
        for holder, token_ids in _three_holders_543().items():
            for token_id in token_ids:
                assert world.contract.redeem(holder, [token_id]).amount == expected

        paid = sum(world.rail.balance_of(h) for h in ("alice", "bob", "carol"))
        assert paid == 543 * expected
        assert paid <= funding

        assert world.contract.draw() == 0
        assert world.rail.balance_of(DAO) == 0
        assert world.contract.total_commitments == 543


class TestOverfundedPool:
    """10 units over 8 commitments: one unit each, 2 units swept."""

    def test_capped_redemption_and_sweep(self) -> None:
        holdings = {"alice": [101, 102, 103], "bob": [201, 202, 203, 204, 205]}
        world = _World(holdings)
        world.contract.receive("treasury", 10 * UNIT)
        world.contract.commit("alice", [101, 102, 103])
        world.contract.commit("bob", [201, 202, 203, 204, 205])
        world.close()

        assert world.contract.redeem("bob", [201, 202, 203, 204, 205]).amount == 5 * UNIT
        assert world.contract.draw() == 2 * UNIT
        assert world.contract.redeem("alice", [101, 102, 103]).amount == 3 * UNIT
        assert world.rail.balance_of(DAO) == 2 * UNIT
        assert world.contract.balance == 0


class TestConservation:
    def test_uneven_batches_never_exceed_funding(self) -> None:
        holdings = {"a": [101, 102], "b": [201, 202, 203], "c": [301, 302, 303, 304]}
        world = _World(holdings)
        funding = 7 * UNIT + 3
        world.contract.receive("treasury", funding)
        for holder, token_ids in holdings.items():
            world.contract.commit(holder, token_ids)
        world.close()

        for holder, token_ids in holdings.items():
            world.contract.redeem(holder, token_ids)
        paid = sum(world.rail.balance_of(h) for h in holdings)
        assert paid <= funding
        assert world.contract.balance == funding - paid

    def test_rate_independent_of_redemption_order(self) -> None:
        holdings = {"a": [101], "b": [201], "c": [301]}
        forward = _World(holdings)
        backward = _World(holdings)
        for world in (forward, backward):
            world.contract.receive("treasury", 2 * UNIT)
            for holder, token_ids in holdings.items():
                world.contract.commit(holder, token_ids)
            world.close()

        forward_paid = {h: forward.contract.redeem(h, ids).amount for h, ids in holdings.items()}
        backward_paid = {
            h: backward.contract.redeem(h, ids).amount
            for h, ids in reversed(list(holdings.items()))
        }
        assert forward_paid == backward_paid
        assert set(forward_paid.values()) == {2 * UNIT // 3}


class TestRecommit:
    def test_commit_revoke_recommit_pays_as_single_commit(self) -> None:
        once = _World({"alice": [101, 102]})
        twice = _World({"alice": [101, 102]})
        for world in (once, twice):
            world.contract.receive("treasury", UNIT)
        once.contract.commit("alice", [101, 102])
        twice.contract.commit("alice", [101, 102])
        twice.contract.revoke("alice", [101, 102])
        twice.contract.commit("alice", [101, 102])
        once.close()
        twice.close()
        assert once.contract.redeem("alice", [101, 102]) == twice.contract.redeem("alice", [101, 102])


class TestPhaseLifecycle:
    def test_funding_only_while_open(self) -> None:
        world = _World({})
        world.contract.receive("treasury", UNIT)
        assert world.contract.phase() == Phase.OPEN
        world.close()
        assert world.contract.phase() == Phase.CLOSED
        with pytest.raises(AfterDeadline):
            world.contract.receive("treasury", UNIT)
        assert world.contract.total_funding == UNIT

    def test_negative_funding_rejected(self) -> None:
        world = _World({})
        with pytest.raises(ValueError, match="non-negative"):
            world.contract.receive("treasury", -1)


class TestReentrancy:
    def test_reentrant_redeem_from_payment_is_rejected(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.receive("treasury", 2 * UNIT)
        world.contract.commit("alice", [101, 102])
        world.close()

        world.rail.on_send = lambda recipient, amount: world.contract.redeem("alice", [102])
        with pytest.raises(ReentrantCall):
            world.contract.redeem("alice", [101])
        assert world.contract.commitments(101) == "alice"
        assert world.contract.commitments(102) == "alice"
        assert world.contract.balance == 2 * UNIT

    def test_swallowed_reentry_cannot_double_pay(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.receive("treasury", 2 * UNIT)
        world.contract.commit("alice", [101, 102])
        world.close()
        rejected: list[Exception] = []

        def reenter(recipient: str, amount: int) -> None:
            try:
                world.contract.redeem("alice", [101])
            except ReentrantCall as e:
                rejected.append(e)

        world.rail.on_send = reenter
        assert world.contract.redeem("alice", [101]).amount == UNIT
        assert len(rejected) == 1
        world.rail.on_send = None
        with pytest.raises(UncommittedHash):
            world.contract.redeem("alice", [101])

    def test_reentrant_revoke_from_custody_transfer_is_rejected(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.commit("alice", [101])

        def hook(sender: str, recipient: str, token_id: int) -> None:
            if token_id == 102:
                world.contract.revoke("alice", [101])

        world.asset.on_transfer = hook
        with pytest.raises(ReentrantCall):
            world.contract.commit("alice", [102])
        world.asset.on_transfer = None
        assert world.contract.total_commitments == 1
        assert world.asset.owner_of(102) == "alice"
        assert world.contract.commit("alice", [102]) == 1

    def test_reentrant_draw_from_sweep_is_rejected(self) -> None:
        world = _World({})
        world.contract.receive("treasury", UNIT)
        world.close()
        world.rail.on_send = lambda recipient, amount: world.contract.draw()
        with pytest.raises(ReentrantCall):
            world.contract.draw()
        assert not world.contract.was_drawn
        world.rail.on_send = None
        assert world.contract.draw() == UNIT


class TestStatus:
    def test_status_reports_display_units(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.receive("treasury", 3 * UNIT)
        world.contract.commit("alice", [101, 102])
        status = world.contract.status()
        assert status["phase"] == "open"
        assert Decimal(status["total_funding"]) == Decimal("3")
        assert Decimal(status["leftover"]) == Decimal("1")
        assert status["total_commitments"] == 2
        assert status["was_drawn"] is False

    def test_snapshot_round_trips_state(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.receive("treasury", UNIT)
        world.contract.commit("alice", [101, 102])
        snapshot = world.contract.to_dict()
        assert snapshot["commitments"] == {"101": "alice", "102": "alice"}
        assert snapshot["state"]["total_funding"] == str(UNIT)
        assert snapshot["state"]["total_commitments"] == 2

    def test_leftover_drops_to_zero_once_drawn(self) -> None:
        world = _World({"alice": [101, 102]})
        world.contract.receive("treasury", 3 * UNIT)
        world.contract.commit("alice", [101, 102])
        world.close()
        assert world.contract.leftover() == UNIT
        world.contract.draw()
        assert world.contract.leftover() == 0
        assert Decimal(world.contract.status()["leftover"]) == Decimal("0")


class TestConstruction:
    def _collaborators(self) -> tuple[InMemoryAssetContract, InMemoryBeneficiary, InMemoryValueRail]:
        asset = InMemoryAssetContract(governance_cap=1000)
        return asset, InMemoryBeneficiary(DAO, asset), InMemoryValueRail()

    def test_missing_asset_contract_rejected(self) -> None:
        _, beneficiary, rail = self._collaborators()
        with pytest.raises(InvalidConfiguration, match="asset contract"):
            RedemptionContract(3600, None, beneficiary, rail)

    def test_missing_beneficiary_rejected(self) -> None:
        asset, _, rail = self._collaborators()
        with pytest.raises(InvalidConfiguration, match="beneficiary"):
            RedemptionContract(3600, asset, None, rail)

    def test_missing_value_rail_rejected(self) -> None:
        asset, beneficiary, _ = self._collaborators()
        with pytest.raises(InvalidConfiguration, match="value rail"):
            RedemptionContract(3600, asset, beneficiary, None)

    def test_beneficiary_governing_other_collection_rejected(self) -> None:
        asset, _, rail = self._collaborators()
        other = InMemoryAssetContract(governance_cap=1000)
        with pytest.raises(InvalidConfiguration, match="does not govern"):
            RedemptionContract(3600, asset, InMemoryBeneficiary(DAO, other), rail)

    def test_zero_duration_rejected(self) -> None:
        asset, beneficiary, rail = self._collaborators()
        with pytest.raises(InvalidDuration):
            RedemptionContract(0, asset, beneficiary, rail)

    def test_negative_duration_rejected(self) -> None:
        asset, beneficiary, rail = self._collaborators()
        with pytest.raises(InvalidDuration):
            RedemptionContract(-60, asset, beneficiary, rail)

    def test_deadline_is_now_plus_duration(self) -> None:
        asset, beneficiary, rail = self._collaborators()
        clock = ManualClock(_start())
        contract = RedemptionContract(90, asset, beneficiary, rail, clock=clock)
        assert (contract.deadline - _start()).total_seconds() == 90


class TestRestore:
    def test_restored_contract_continues_lifecycle(self) -> None:
        world = _World({"alice": [101, 102], "bob": [200]})
        world.contract.receive("treasury", 2 * UNIT)
        world.contract.commit("alice", [101, 102])
        world.contract.commit("bob", [200])
        snapshot = json.loads(json.dumps(world.contract.to_dict()))

        restored = RedemptionContract.from_dict(
            snapshot,
            world.asset,
            InMemoryBeneficiary(DAO, world.asset),
            world.rail,
            config=RedemptionConfig(reserved_id_floor=100),
            clock=world.clock,
        )
        assert restored.deadline == world.contract.deadline
        assert restored.total_funding == 2 * UNIT
        assert restored.total_commitments == 3
        assert restored.commitments(101) == "alice"
        assert restored.commitments(200) == "bob"
        assert restored.phase() == Phase.OPEN

        world.close()
        quote = restored.redeem("bob", [200])
        assert quote.amount == 2 * UNIT // 3
        assert world.rail.balance_of("bob") == 2 * UNIT // 3
        assert restored.commitments(200) is None

    def test_restored_drawn_flag_blocks_second_sweep(self) -> None:
        world = _World({})
        world.contract.receive("treasury", UNIT)
        world.close()
        world.contract.draw()
        restored = RedemptionContract.from_dict(
            world.contract.to_dict(),
            world.asset,
            InMemoryBeneficiary(DAO, world.asset),
            world.rail,
            clock=world.clock,
        )
        assert restored.was_drawn
        assert restored.draw() == 0
        assert world.rail.balance_of(DAO) == UNIT

    def test_restore_checks_collaborators(self) -> None:
        world = _World({})
        other = InMemoryAssetContract(governance_cap=1000)
        with pytest.raises(InvalidConfiguration):
            RedemptionContract.from_dict(
                world.contract.to_dict(),
                world.asset,
                InMemoryBeneficiary(DAO, other),
                world.rail,
            )


class TestCompensation:
    """A collaborator fails part-way and another one calls back while earlier moves are undone."""

    def test_reentry_while_returning_committed_token_is_rejected(self) -> None:
        world = _World({"alice": [101, 102]})
        rejected: list[Exception] = []

        def hook(sender: str, recipient: str, token_id: int) -> None:
            if token_id == 102 and recipient == CORE:
                raise RuntimeError("receiver rejected token")
            if recipient == "alice":
                try:
                    world.contract.revoke("alice", [])
                except ReentrantCall as e:
                    rejected.append(e)

        world.asset.on_transfer = hook
        with pytest.raises(TransferFailed):
            world.contract.commit("alice", [101, 102])
        assert len(rejected) == 1
        assert world.asset.tokens_of("alice") == [101, 102]
        assert world.contract.commitments(101) is None
        assert world.contract.total_commitments == 0
        assert world.contract.event_log.count == 0

    def test_failed_return_keeps_token_committed(self) -> None:
        world = _World({"alice": [101, 102]})

        def hook(sender: str, recipient: str, token_id: int) -> None:
            if token_id == 102 and recipient == CORE:
                raise RuntimeError("receiver rejected token")
            if recipient == "alice":
                world.contract.revoke("alice", [])

        world.asset.on_transfer = hook
        # the original failure is reported, not the one raised during rollback
        with pytest.raises(TransferFailed):
            world.contract.commit("alice", [101, 102])
        assert world.asset.owner_of(101) == CORE
        assert world.contract.commitments(101) == "alice"
        assert world.contract.total_commitments == 1
        assert world.asset.owner_of(102) == "alice"
        assert world.contract.commitments(102) is None

        world.asset.on_transfer = None
        assert world.contract.revoke("alice", [101]) == 1
        assert world.asset.tokens_of("alice") == [101, 102]
        assert world.contract.total_commitments == 0

    def test_failed_revoke_restores_earlier_tokens(self) -> None:
        world = _World({"alice": [101, 102, 103]})
        world.contract.commit("alice", [101, 102])
        rejected: list[Exception] = []

        def hook(sender: str, recipient: str, token_id: int) -> None:
            if token_id == 102 and recipient == "alice":
                raise RuntimeError("wallet rejected token")
            if recipient == CORE:
                try:
                    world.contract.commit("alice", [103])
                except ReentrantCall as e:
                    rejected.append(e)

        world.asset.on_transfer = hook
        with pytest.raises(TransferFailed):
            world.contract.revoke("alice", [101, 102])
        assert len(rejected) == 1
        assert world.asset.tokens_of(CORE) == [101, 102]
        assert world.contract.commitments(101) == "alice"
        assert world.contract.commitments(102) == "alice"
        assert world.contract.commitments(103) is None
        assert world.contract.total_commitments == 2

    def test_failed_reclaim_restores_earlier_tokens(self) -> None:
        world = _World({CORE: [500, 501]})
        world.contract.receive("treasury", UNIT)
        world.close()
        rejected: list[Exception] = []

        def hook(sender: str, recipient: str, token_id: int) -> None:
            if token_id == 501 and recipient == DAO:
                raise RuntimeError("beneficiary rejected token")
            if recipient == CORE:
                try:
                    world.contract.draw()
                except ReentrantCall as e:
                    rejected.append(e)

        world.asset.on_transfer = hook
        with pytest.raises(TransferFailed):
            world.contract.reclaim([500, 501])
        assert len(rejected) == 1
        assert world.asset.tokens_of(CORE) == [500, 501]
        assert world.asset.tokens_of(DAO) == []
        assert not world.contract.was_drawn
