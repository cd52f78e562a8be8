#!/usr/bin/env python3
"""
Lotus Data Models
Typed records decoded from Lotus JSON-RPC results

Monetary and power amounts stay decimal strings of arbitrary-precision
integers; they are only formatted for display by the presentation layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .exceptions import MalformedResponseError
from .utils import bitfield_to_list, parse_big_int


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedResponseError(f"{what}: expected object, got {type(data).__name__}")
    return data


def _big(data: Dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if value is None:
        return "0"
    amount = parse_big_int(value)
    if amount is None:
        raise MalformedResponseError(f"{what}: {key} is not an integer amount: {value!r}")
    return str(amount)


def _int(data: Dict[str, Any], key: str, what: str, default: int = 0) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponseError(f"{what}: {key} is not an integer: {value!r}")
    return value


def _str(data: Dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedResponseError(f"{what}: {key} is not a string: {value!r}")
    return value


def _list(data: Dict[str, Any], key: str, what: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponseError(f"{what}: {key} is not a list: {value!r}")
    return value


def _bitfield(data: Dict[str, Any], key: str, what: str) -> List[int]:
    runs = _list(data, key, what)
    if not all(isinstance(run, int) and not isinstance(run, bool) for run in runs):
        raise MalformedResponseError(f"{what}: {key} is not a run-length bitfield")
    return bitfield_to_list(runs)


def _cid(value: Any) -> str:
    """CIDs arrive as {"/": "bafy..."}"""
    if isinstance(value, dict):
        return str(value.get("/", ""))
    if isinstance(value, str):
        return value
    return ""


def decode_sector_numbers(result: Any, what: str) -> List[int]:
    """Decode a bitfield result ([skip, run, ...]) into sector numbers"""
    if result is None:
        return []
    return _bitfield({"bits": result}, "bits", what)


@dataclass
class ChainHead:
    height: int
    cids: List[str] = None

    def __post_init__(self):
        if self.cids is None:
            self.cids = []

    @classmethod
    def from_rpc(cls, result: Any) -> "ChainHead":
        data = _require_dict(result, "ChainHead")
        return cls(
            height=_int(data, "Height", "ChainHead"),
            cids=[_cid(cid) for cid in _list(data, "Cids", "ChainHead")],
        )


@dataclass
class SectorRecord:
    """On-chain sector information (StateSectorGetInfo)"""
    sector_number: int
    state: str = "Committed"
    seal_proof: int = 0
    sealed_cid: str = ""
    deal_ids: List[int] = None
    activation: int = 0
    expiration: int = 0
    deal_weight: str = "0"
    verified_deal_weight: str = "0"
    initial_pledge: str = "0"
    expected_day_reward: str = "0"
    expected_storage_pledge: str = "0"
    miner_id: Optional[str] = None
    deadline: Optional[int] = None
    partition: Optional[int] = None

    def __post_init__(self):
        if self.deal_ids is None:
            self.deal_ids = []

    @classmethod
    def from_rpc(cls, result: Any, miner_id: Optional[str] = None) -> "SectorRecord":
        what = "SectorOnChainInfo"
        data = _require_dict(result, what)
        deal_ids = _list(data, "DealIDs", what)
        if not all(isinstance(deal, int) for deal in deal_ids):
            raise MalformedResponseError(f"{what}: DealIDs must be integers")
        return cls(
            sector_number=_int(data, "SectorNumber", what),
            seal_proof=_int(data, "SealProof", what),
            sealed_cid=_cid(data.get("SealedCID")),
            deal_ids=deal_ids,
            activation=_int(data, "Activation", what),
            expiration=_int(data, "Expiration", what),
            deal_weight=_big(data, "DealWeight", what),
            verified_deal_weight=_big(data, "VerifiedDealWeight", what),
            initial_pledge=_big(data, "InitialPledge", what),
            expected_day_reward=_big(data, "ExpectedDayReward", what),
            expected_storage_pledge=_big(data, "ExpectedStoragePledge", what),
            miner_id=miner_id,
        )

    def to_pre_commit_info(self) -> Dict[str, Any]:
        """SectorPreCommitInfo argument for the pledge/deposit estimation procedures"""
        return {
            "SealProof": self.seal_proof,
            "SectorNumber": self.sector_number,
            "SealedCID": {"/": self.sealed_cid},
            "SealRandEpoch": self.activation,
            "DealIDs": self.deal_ids,
            "Expiration": self.expiration,
            "UnsealedCid": None,
        }


@dataclass
class SectorLocation:
    sector_number: int
    deadline: int
    partition: int

    @classmethod
    def from_rpc(cls, result: Any, sector_number: int) -> "SectorLocation":
        data = _require_dict(result, "SectorLocation")
        return cls(
            sector_number=sector_number,
            deadline=_int(data, "Deadline", "SectorLocation"),
            partition=_int(data, "Partition", "SectorLocation"),
        )


@dataclass
class SectorPenalty:
    miner_id: str
    sector_number: int
    penalty: str
    current_epoch: int
    activation: int
    expected_storage_pledge: str = "0"
    expected_day_reward: str = "0"


@dataclass
class SectorVesting:
    miner_id: str
    sector_number: int
    initial_pledge: str
    expected_day_reward: str
    expected_storage_pledge: str
    miner_vesting_funds: str = "0"


@dataclass
class MinerInfo:
    """Static miner actor information (StateMinerInfo)"""
    owner: str
    worker: str
    beneficiary: str = ""
    new_worker: str = ""
    control_addresses: List[str] = None
    peer_id: str = ""
    multiaddrs: List[str] = None
    sector_size: int = 0
    window_post_proof_type: int = 0
    window_post_partition_sectors: int = 0
    consensus_fault_elapsed: int = 0

    def __post_init__(self):
        if self.control_addresses is None:
            self.control_addresses = []
        if self.multiaddrs is None:
            self.multiaddrs = []

    @classmethod
    def from_rpc(cls, result: Any) -> "MinerInfo":
        what = "MinerInfo"
        data = _require_dict(result, what)
        owner = _str(data, "Owner", what)
        worker = _str(data, "Worker", what)
        if not owner or not worker:
            raise MalformedResponseError(f"{what}: missing Owner or Worker address")
        return cls(
            owner=owner,
            worker=worker,
            beneficiary=_str(data, "Beneficiary", what) or owner,
            new_worker=_str(data, "NewWorker", what),
            control_addresses=[str(addr) for addr in _list(data, "ControlAddresses", what)],
            peer_id=_str(data, "PeerId", what),
            multiaddrs=[str(addr) for addr in _list(data, "Multiaddrs", what)],
            sector_size=_int(data, "SectorSize", what),
            window_post_proof_type=_int(data, "WindowPoStProofType", what),
            window_post_partition_sectors=_int(data, "WindowPoStPartitionSectors", what),
            consensus_fault_elapsed=_int(data, "ConsensusFaultElapsed", what),
        )


@dataclass
class MinerPower:
    raw_byte_power: str = "0"
    quality_adj_power: str = "0"
    network_raw_byte_power: str = "0"
    network_quality_adj_power: str = "0"
    has_min_power: bool = False

    @classmethod
    def from_rpc(cls, result: Any) -> "MinerPower":
        what = "MinerPower"
        data = _require_dict(result, what)
        miner = _require_dict(data.get("MinerPower") or {}, f"{what}.MinerPower")
        total = _require_dict(data.get("TotalPower") or {}, f"{what}.TotalPower")
        return cls(
            raw_byte_power=_big(miner, "RawBytePower", what),
            quality_adj_power=_big(miner, "QualityAdjPower", what),
            network_raw_byte_power=_big(total, "RawBytePower", what),
            network_quality_adj_power=_big(total, "QualityAdjPower", what),
            has_min_power=bool(data.get("HasMinPower", False)),
        )


@dataclass
class SectorCount:
    live: int = 0
    active: int = 0
    faulty: int = 0

    @classmethod
    def from_rpc(cls, result: Any) -> "SectorCount":
        data = _require_dict(result, "SectorCount")
        return cls(
            live=_int(data, "Live", "SectorCount"),
            active=_int(data, "Active", "SectorCount"),
            faulty=_int(data, "Faulty", "SectorCount"),
        )


@dataclass
class ProvingDeadline:
    """Current window PoSt deadline (StateMinerProvingDeadline)"""
    current_epoch: int = 0
    period_start: int = 0
    index: int = 0
    open: int = 0
    close: int = 0
    challenge: int = 0
    fault_cutoff: int = 0
    period_deadlines: int = 0
    proving_period: int = 0
    challenge_window: int = 0

    @classmethod
    def from_rpc(cls, result: Any) -> "ProvingDeadline":
        what = "ProvingDeadline"
        data = _require_dict(result, what)
        return cls(
            current_epoch=_int(data, "CurrentEpoch", what),
            period_start=_int(data, "PeriodStart", what),
            index=_int(data, "Index", what),
            open=_int(data, "Open", what),
            close=_int(data, "Close", what),
            challenge=_int(data, "Challenge", what),
            fault_cutoff=_int(data, "FaultCutoff", what),
            period_deadlines=_int(data, "WPoStPeriodDeadlines", what),
            proving_period=_int(data, "WPoStProvingPeriod", what),
            challenge_window=_int(data, "WPoStChallengeWindow", what),
        )


@dataclass
class Deadline:
    index: int
    post_submissions: List[int] = None
    disputable_proof_count: int = 0

    def __post_init__(self):
        if self.post_submissions is None:
            self.post_submissions = []

    @classmethod
    def from_rpc(cls, result: Any, index: int) -> "Deadline":
        what = "Deadline"
        data = _require_dict(result, what)
        return cls(
            index=index,
            post_submissions=_bitfield(data, "PostSubmissions", what),
            disputable_proof_count=_int(data, "DisputableProofCount", what),
        )


@dataclass
class Partition:
    deadline: int
    index: int
    all_sectors: List[int] = None
    faulty_sectors: List[int] = None
    recovering_sectors: List[int] = None
    live_sectors: List[int] = None
    active_sectors: List[int] = None

    def __post_init__(self):
        for name in ("all_sectors", "faulty_sectors", "recovering_sectors", "live_sectors", "active_sectors"):
            if getattr(self, name) is None:
                setattr(self, name, [])

    @classmethod
    def from_rpc(cls, result: Any, deadline: int, index: int) -> "Partition":
        what = "Partition"
        data = _require_dict(result, what)
        return cls(
            deadline=deadline,
            index=index,
            all_sectors=_bitfield(data, "AllSectors", what),
            faulty_sectors=_bitfield(data, "FaultySectors", what),
            recovering_sectors=_bitfield(data, "RecoveringSectors", what),
            live_sectors=_bitfield(data, "LiveSectors", what),
            active_sectors=_bitfield(data, "ActiveSectors", what),
        )

    def sector_state(self, sector_number: int) -> str:
        if sector_number in self.faulty_sectors:
            return "Faulty"
        if sector_number in self.recovering_sectors:
            return "Recovering"
        if sector_number in self.active_sectors:
            return "Active"
        if sector_number in self.live_sectors:
            return "Live"
        return "Terminated"


@dataclass
class MinerActorState:
    """Locked-funds view of the miner actor state (StateReadState)"""
    balance: str = "0"
    initial_pledge: str = "0"
    pre_commit_deposits: str = "0"
    locked_funds: str = "0"
    fee_debt: str = "0"

    @classmethod
    def from_rpc(cls, result: Any) -> "MinerActorState":
        what = "ActorState"
        data = _require_dict(result, what)
        state = _require_dict(data.get("State") or {}, f"{what}.State")
        return cls(
            balance=_big(data, "Balance", what),
            initial_pledge=_big(state, "InitialPledge", what),
            pre_commit_deposits=_big(state, "PreCommitDeposits", what),
            locked_funds=_big(state, "LockedFunds", what),
            fee_debt=_big(state, "FeeDebt", what),
        )


@dataclass
class AddressBalance:
    role: str
    address: str
    balance: str = "0"


@dataclass
class MinerAggregate:
    """Comprehensive miner view assembled from many independent RPC calls"""
    miner_id: str

    # Addresses
    owner: str = ""
    worker: str = ""
    beneficiary: str = ""
    control_addresses: List[str] = None
    address_balances: List[AddressBalance] = None
    peer_id: str = ""

    # Basic
    sector_size: int = 0
    window_post_proof_type: int = 0

    # Power
    raw_byte_power: str = "0"
    quality_adj_power: str = "0"
    network_raw_byte_power: str = "0"
    network_quality_adj_power: str = "0"
    network_power_share: float = 0.0
    network_qa_power_share: float = 0.0
    has_min_power: bool = False

    # Funds
    available_balance: str = "0"
    actor_balance: str = "0"
    initial_pledge: str = "0"
    pre_commit_deposits: str = "0"
    vesting_funds: str = "0"
    fee_debt: str = "0"
    total_locked: str = "0"

    # Sectors
    total_sectors: int = 0
    live_sectors: int = 0
    active_sectors: int = 0
    faulty_sectors: List[int] = None
    recovering_sectors: List[int] = None

    # Deadlines
    current_epoch: int = 0
    current_deadline: int = 0
    proving_period_start: int = 0
    deadline_open: int = 0
    deadline_close: int = 0
    deadline_count: int = 0
    current_deadline_partitions: int = 0
    current_deadline_sectors: int = 0

    # Rewards
    blocks_mined: int = 0
    total_rewards: str = "0"

    # Aggregation bookkeeping
    formatted: Dict[str, str] = None
    sources: List[str] = None
    errors: List[str] = None
    data_completeness: float = 0.0

    def __post_init__(self):
        if self.control_addresses is None:
            self.control_addresses = []
        if self.address_balances is None:
            self.address_balances = []
        if self.faulty_sectors is None:
            self.faulty_sectors = []
        if self.recovering_sectors is None:
            self.recovering_sectors = []
        if self.formatted is None:
            self.formatted = {}
        if self.sources is None:
            self.sources = []
        if self.errors is None:
            self.errors = []
