#!/usr/bin/env python3
"""
Lotus Client
Typed wrappers around the Filecoin node JSON-RPC API
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import ClientConfig
from ..context import CallContext
from ..exceptions import InvalidParamsError, MalformedResponseError, NotFoundError
from ..models import (
    ChainHead,
    Deadline,
    MinerActorState,
    MinerInfo,
    MinerPower,
    Partition,
    ProvingDeadline,
    SectorCount,
    SectorLocation,
    SectorPenalty,
    SectorRecord,
    SectorVesting,
    decode_sector_numbers,
)
from ..utils import estimate_termination_penalty, parse_big_int
from .endpoint import resolve_endpoint
from .retry import RetryingTransport
from .transport import HttpTransport

logger = logging.getLogger(__name__)

METHOD_PREFIX = "Filecoin."

# Latest chain head
HEAD = None


def _require_miner_id(miner_id: str) -> str:
    if not isinstance(miner_id, str) or not miner_id.strip():
        raise InvalidParamsError("miner id is required")
    return miner_id.strip()


def _require_sector_number(sector_number: Any) -> int:
    if isinstance(sector_number, bool) or not isinstance(sector_number, int) or sector_number < 0:
        raise InvalidParamsError(f"invalid sector number: {sector_number!r}")
    return sector_number


def _require_found(result: Any, what: str) -> Any:
    if result is None:
        raise NotFoundError(f"{what} not found")
    return result


def _big_result(result: Any, method: str) -> str:
    amount = parse_big_int(result)
    if amount is None:
        raise MalformedResponseError(f"{method}: expected an integer amount, got {result!r}")
    return str(amount)


def _list_result(result: Any, method: str) -> List[Any]:
    if result is None:
        return []
    if not isinstance(result, list):
        raise MalformedResponseError(f"{method}: expected a list, got {type(result).__name__}")
    return result


class LotusClient:
    """
    Lotus full-node client

    The endpoint is resolved once at construction. Every method takes a
    CallContext first; methods scoped to a miner reject an empty id locally
    without touching the network.
    """

    def __init__(self, config: Optional[ClientConfig] = None, transport=None):
        self.config = config or ClientConfig()
        self.url = resolve_endpoint(self.config.endpoint)

        if transport is None:
            http = HttpTransport(self.url, self.config.auth_token, self.config.timeout)
            transport = RetryingTransport(http, self.config.retry_count)
        self.transport = transport

        logger.debug(f"Lotus client ready for {self.url}")

    def close(self):
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _call(self, ctx: CallContext, method: str, params: List[Any]) -> Any:
        return self.transport.call(ctx, METHOD_PREFIX + method, params)

    # Chain

    def chain_head(self, ctx: CallContext) -> ChainHead:
        return ChainHead.from_rpc(_require_found(self._call(ctx, "ChainHead", []), "chain head"))

    def version(self, ctx: CallContext) -> Dict[str, Any]:
        result = self._call(ctx, "Version", [])
        if not isinstance(result, dict):
            raise MalformedResponseError(f"Version: expected object, got {type(result).__name__}")
        return result

    # Sectors

    def list_sectors(self, ctx: CallContext, miner_id: str, only_active: bool = False) -> List[SectorRecord]:
        """
        List the miner's sectors

        Args:
            only_active: Only sectors currently proven (StateMinerActiveSectors)
        """
        miner_id = _require_miner_id(miner_id)
        if only_active:
            method, params = "StateMinerActiveSectors", [miner_id, HEAD]
        else:
            # Sector filter bitfield, then tipset key
            method, params = "StateMinerSectors", [miner_id, None, HEAD]

        result = _list_result(self._call(ctx, method, params), method)
        sectors = [SectorRecord.from_rpc(item, miner_id) for item in result]
        logger.debug(f"{method} returned {len(sectors)} sectors for {miner_id}")
        return sectors

    def get_sector_info(self, ctx: CallContext, miner_id: str, sector_number: int) -> SectorRecord:
        miner_id = _require_miner_id(miner_id)
        sector_number = _require_sector_number(sector_number)
        result = self._call(ctx, "StateSectorGetInfo", [miner_id, sector_number, HEAD])
        return SectorRecord.from_rpc(_require_found(result, f"sector {sector_number} of {miner_id}"), miner_id)

    def get_sector_location(self, ctx: CallContext, miner_id: str, sector_number: int) -> SectorLocation:
        miner_id = _require_miner_id(miner_id)
        sector_number = _require_sector_number(sector_number)
        result = self._call(ctx, "StateSectorPartition", [miner_id, sector_number, HEAD])
        return SectorLocation.from_rpc(_require_found(result, f"sector {sector_number} of {miner_id}"), sector_number)

    def get_sector_status(self, ctx: CallContext, miner_id: str, sector_number: int) -> SectorRecord:
        """Sector info plus its deadline/partition and proving state (Active, Faulty, Recovering...)"""
        sector = self.get_sector_info(ctx, miner_id, sector_number)
        location = self.get_sector_location(ctx, miner_id, sector_number)
        partitions = self.get_miner_partitions(ctx, miner_id, location.deadline)

        sector.deadline = location.deadline
        sector.partition = location.partition
        if location.partition < len(partitions):
            sector.state = partitions[location.partition].sector_state(sector.sector_number)
        else:
            sector.state = "Terminated"
        return sector

    def get_sector_penalty(self, ctx: CallContext, miner_id: str, sector_number: int) -> SectorPenalty:
        """Estimated fee for terminating the sector at the current head"""
        sector = self.get_sector_info(ctx, miner_id, sector_number)
        head = self.chain_head(ctx)
        penalty = estimate_termination_penalty(
            sector.expected_storage_pledge,
            sector.expected_day_reward,
            sector.activation,
            head.height,
        )
        return SectorPenalty(
            miner_id=sector.miner_id,
            sector_number=sector.sector_number,
            penalty=penalty,
            current_epoch=head.height,
            activation=sector.activation,
            expected_storage_pledge=sector.expected_storage_pledge,
            expected_day_reward=sector.expected_day_reward,
        )

    def get_sector_vested(self, ctx: CallContext, miner_id: str, sector_number: int) -> SectorVesting:
        sector = self.get_sector_info(ctx, miner_id, sector_number)
        state = self.get_miner_state(ctx, miner_id)
        return SectorVesting(
            miner_id=sector.miner_id,
            sector_number=sector.sector_number,
            initial_pledge=sector.initial_pledge,
            expected_day_reward=sector.expected_day_reward,
            expected_storage_pledge=sector.expected_storage_pledge,
            miner_vesting_funds=state.locked_funds,
        )

    # Miner

    def get_miner_info(self, ctx: CallContext, miner_id: str) -> MinerInfo:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerInfo", [miner_id, HEAD])
        return MinerInfo.from_rpc(_require_found(result, f"miner {miner_id}"))

    def get_miner_power(self, ctx: CallContext, miner_id: str) -> MinerPower:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerPower", [miner_id, HEAD])
        return MinerPower.from_rpc(_require_found(result, f"power of {miner_id}"))

    def get_miner_available_balance(self, ctx: CallContext, miner_id: str) -> str:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerAvailableBalance", [miner_id, HEAD])
        return _big_result(result, "StateMinerAvailableBalance")

    def get_miner_faults(self, ctx: CallContext, miner_id: str) -> List[int]:
        miner_id = _require_miner_id(miner_id)
        return decode_sector_numbers(self._call(ctx, "StateMinerFaults", [miner_id, HEAD]), "StateMinerFaults")

    def get_miner_recoveries(self, ctx: CallContext, miner_id: str) -> List[int]:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerRecoveries", [miner_id, HEAD])
        return decode_sector_numbers(result, "StateMinerRecoveries")

    def get_miner_sector_count(self, ctx: CallContext, miner_id: str) -> SectorCount:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerSectorCount", [miner_id, HEAD])
        return SectorCount.from_rpc(_require_found(result, f"sector count of {miner_id}"))

    def get_miner_deadlines(self, ctx: CallContext, miner_id: str) -> List[Deadline]:
        miner_id = _require_miner_id(miner_id)
        result = _list_result(self._call(ctx, "StateMinerDeadlines", [miner_id, HEAD]), "StateMinerDeadlines")
        return [Deadline.from_rpc(item, index) for index, item in enumerate(result)]

    def get_miner_proving_deadline(self, ctx: CallContext, miner_id: str) -> ProvingDeadline:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateMinerProvingDeadline", [miner_id, HEAD])
        return ProvingDeadline.from_rpc(_require_found(result, f"proving deadline of {miner_id}"))

    def get_miner_partitions(self, ctx: CallContext, miner_id: str, deadline_index: int) -> List[Partition]:
        miner_id = _require_miner_id(miner_id)
        if isinstance(deadline_index, bool) or not isinstance(deadline_index, int) or deadline_index < 0:
            raise InvalidParamsError(f"invalid deadline index: {deadline_index!r}")
        result = _list_result(
            self._call(ctx, "StateMinerPartitions", [miner_id, deadline_index, HEAD]),
            "StateMinerPartitions",
        )
        return [Partition.from_rpc(item, deadline_index, index) for index, item in enumerate(result)]

    def get_miner_state(self, ctx: CallContext, miner_id: str) -> MinerActorState:
        miner_id = _require_miner_id(miner_id)
        result = self._call(ctx, "StateReadState", [miner_id, HEAD])
        return MinerActorState.from_rpc(_require_found(result, f"actor state of {miner_id}"))

    def get_miner_initial_pledge_collateral(self, ctx: CallContext, miner_id: str, sector_number: int) -> str:
        sector = self.get_sector_info(ctx, miner_id, sector_number)
        result = self._call(
            ctx,
            "StateMinerInitialPledgeCollateral",
            [sector.miner_id, sector.to_pre_commit_info(), HEAD],
        )
        return _big_result(result, "StateMinerInitialPledgeCollateral")

    def get_miner_pre_commit_deposit(self, ctx: CallContext, miner_id: str, sector_number: int) -> str:
        sector = self.get_sector_info(ctx, miner_id, sector_number)
        result = self._call(
            ctx,
            "StateMinerPreCommitDepositForPower",
            [sector.miner_id, sector.to_pre_commit_info(), HEAD],
        )
        return _big_result(result, "StateMinerPreCommitDepositForPower")

    # Wallet

    def get_wallet_balance(self, ctx: CallContext, address: str) -> str:
        if not isinstance(address, str) or not address.strip():
            raise InvalidParamsError("address is required")
        return _big_result(self._call(ctx, "WalletBalance", [address.strip()]), "WalletBalance")
