#!/usr/bin/env python3
"""
Miner Info Aggregator
Fans out many independent Lotus calls and joins them into one MinerAggregate
"""

import concurrent.futures
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..context import CallContext
from ..exceptions import AuthenticationError, ClientError, RequestCancelledError, RPCTimeoutError
from ..models import AddressBalance, MinerAggregate
from ..utils import (
    add_big_ints,
    format_bytes,
    format_fil,
    format_percentage,
    power_share,
)
from .client import _require_miner_id

logger = logging.getLogger(__name__)

FOUNDATIONAL_TASKS = frozenset({"miner_info"})

BEST_EFFORT_TASKS = frozenset({
    "power",
    "available_balance",
    "faults",
    "recoveries",
    "sector_count",
    "active_sectors",
    "proving_deadline",
    "deadlines",
    "miner_state",
    "current_partitions",
})

BALANCE_TASK_PREFIX = "balance:"

# How often the join loop re-checks the caller's context
POLL_INTERVAL = 0.05


def is_best_effort(task: str) -> bool:
    return task in BEST_EFFORT_TASKS or task.startswith(BALANCE_TASK_PREFIX)


class MinerInfoAggregator:
    """
    Comprehensive miner view

    Only ``miner_info`` is foundational: its failure fails the aggregate.
    Best-effort sub-calls that fail leave their fields at zero values and are
    listed in ``errors``. Authentication failures are always fatal.
    """

    def __init__(self, client, timeout: float = 30.0, max_workers: int = 8):
        self.client = client
        self.timeout = timeout
        self.max_workers = max_workers

    def _initial_tasks(self, miner_id: str) -> List[Tuple[str, Callable[[CallContext], Any]]]:
        client = self.client
        return [
            ("miner_info", lambda ctx: client.get_miner_info(ctx, miner_id)),
            ("power", lambda ctx: client.get_miner_power(ctx, miner_id)),
            ("available_balance", lambda ctx: client.get_miner_available_balance(ctx, miner_id)),
            ("faults", lambda ctx: client.get_miner_faults(ctx, miner_id)),
            ("recoveries", lambda ctx: client.get_miner_recoveries(ctx, miner_id)),
            ("sector_count", lambda ctx: client.get_miner_sector_count(ctx, miner_id)),
            ("active_sectors", lambda ctx: client.list_sectors(ctx, miner_id, only_active=True)),
            ("proving_deadline", lambda ctx: client.get_miner_proving_deadline(ctx, miner_id)),
            ("deadlines", lambda ctx: client.get_miner_deadlines(ctx, miner_id)),
            ("miner_state", lambda ctx: client.get_miner_state(ctx, miner_id)),
        ]

    def _dependent_tasks(self, miner_id: str, task: str, result: Any) -> List[Tuple[str, Callable]]:
        """Tasks that need the result of ``task`` as input"""
        client = self.client
        tasks = []
        if task == "miner_info":
            for address in _address_roles(result):
                tasks.append((
                    f"{BALANCE_TASK_PREFIX}{address}",
                    lambda ctx, address=address: client.get_wallet_balance(ctx, address),
                ))
        elif task == "proving_deadline":
            index = result.index
            tasks.append((
                "current_partitions",
                lambda ctx: client.get_miner_partitions(ctx, miner_id, index),
            ))
        return tasks

    def aggregate(self, ctx: Optional[CallContext], miner_id: str) -> MinerAggregate:
        """
        Collect miner information concurrently

        Raises:
            InvalidParamsError: empty miner id (no calls are made)
            ClientError: the foundational call failed, or any call failed authentication
            RPCTimeoutError: deadline expired; ``partial`` holds the data joined so far
            RequestCancelledError: ctx was cancelled; ``partial`` holds the data joined so far
        """
        miner_id = _require_miner_id(miner_id)
        ctx = ctx or CallContext.background()
        op_ctx = ctx.with_timeout(self.timeout)

        results: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        submitted: List[str] = []

        logger.info(f"Aggregating miner info for {miner_id}")
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="thctl-aggregate"
        )
        pending: Dict[concurrent.futures.Future, str] = {}

        def submit(tasks):
            for name, fn in tasks:
                submitted.append(name)
                pending[executor.submit(fn, op_ctx)] = name

        try:
            submit(self._initial_tasks(miner_id))

            interrupted = False
            while pending:
                if op_ctx.done:
                    break
                done, _ = concurrent.futures.wait(
                    pending,
                    timeout=min(POLL_INTERVAL, op_ctx.remaining()),
                    return_when=concurrent.futures.FIRST_COMPLETED,
                )
                # Record the whole batch before deciding whether to stop
                fatal = None
                for future in done:
                    name = pending.pop(future)
                    try:
                        result = future.result()
                    except ClientError as e:
                        if op_ctx.done and isinstance(e, (RPCTimeoutError, RequestCancelledError)):
                            # Cut off by this aggregate's deadline or cancellation
                            logger.debug(f"Interrupted: {name} for {miner_id}: {e}")
                            interrupted = True
                        elif isinstance(e, AuthenticationError):
                            logger.error(f"FAILED: {name} for {miner_id}: authentication failed")
                            fatal = e
                        elif not is_best_effort(name):
                            logger.error(f"FAILED: {name} for {miner_id}: {e}")
                            fatal = fatal or e
                        else:
                            logger.warning(f"Tolerated failure of {name} for {miner_id}: {e}")
                            errors[name] = str(e)
                        continue

                    logger.debug(f"SUCCESS: {name} for {miner_id}")
                    results[name] = result
                    submit(self._dependent_tasks(miner_id, name, result))

                if fatal is not None:
                    raise fatal
                if interrupted:
                    break

            if pending or interrupted:
                aggregate = self._build(miner_id, results, errors, submitted)
                logger.warning(f"Aggregation for {miner_id} stopped early with {len(pending)} calls outstanding")
                raise op_ctx.error(partial=aggregate)
        finally:
            op_ctx.cancel()
            executor.shutdown(wait=False, cancel_futures=True)

        aggregate = self._build(miner_id, results, errors, submitted)
        logger.info(f"Aggregated {miner_id}: {len(aggregate.sources)}/{len(submitted)} sources, "
                    f"completeness {aggregate.data_completeness:.0%}")
        return aggregate

    def _build(self, miner_id: str, results: Dict[str, Any], errors: Dict[str, str],
               submitted: List[str]) -> MinerAggregate:
        aggregate = MinerAggregate(miner_id=miner_id)

        info = results.get("miner_info")
        if info is not None:
            aggregate.owner = info.owner
            aggregate.worker = info.worker
            aggregate.beneficiary = info.beneficiary
            aggregate.control_addresses = list(info.control_addresses)
            aggregate.peer_id = info.peer_id
            aggregate.sector_size = info.sector_size
            aggregate.window_post_proof_type = info.window_post_proof_type

            for address, role in _address_roles(info).items():
                balance = results.get(f"{BALANCE_TASK_PREFIX}{address}")
                if balance is not None:
                    aggregate.address_balances.append(AddressBalance(role=role, address=address, balance=balance))

        power = results.get("power")
        if power is not None:
            aggregate.raw_byte_power = power.raw_byte_power
            aggregate.quality_adj_power = power.quality_adj_power
            aggregate.network_raw_byte_power = power.network_raw_byte_power
            aggregate.network_quality_adj_power = power.network_quality_adj_power
            aggregate.network_power_share = power_share(power.raw_byte_power, power.network_raw_byte_power)
            aggregate.network_qa_power_share = power_share(power.quality_adj_power,
                                                           power.network_quality_adj_power)
            aggregate.has_min_power = power.has_min_power

        if "available_balance" in results:
            aggregate.available_balance = results["available_balance"]

        state = results.get("miner_state")
        if state is not None:
            aggregate.actor_balance = state.balance
            aggregate.initial_pledge = state.initial_pledge
            aggregate.pre_commit_deposits = state.pre_commit_deposits
            aggregate.vesting_funds = state.locked_funds
            aggregate.fee_debt = state.fee_debt
            aggregate.total_locked = add_big_ints(state.initial_pledge, state.pre_commit_deposits,
                                                  state.locked_funds)

        aggregate.faulty_sectors = list(results.get("faults") or [])
        aggregate.recovering_sectors = list(results.get("recoveries") or [])

        count = results.get("sector_count")
        if count is not None:
            aggregate.total_sectors = count.live
            aggregate.live_sectors = count.live
            aggregate.active_sectors = count.active
        elif "active_sectors" in results:
            aggregate.total_sectors = len(results["active_sectors"]) + len(aggregate.faulty_sectors)
            aggregate.live_sectors = aggregate.total_sectors
            aggregate.active_sectors = aggregate.total_sectors - len(aggregate.faulty_sectors)

        proving = results.get("proving_deadline")
        if proving is not None:
            aggregate.current_epoch = proving.current_epoch
            aggregate.current_deadline = proving.index
            aggregate.proving_period_start = proving.period_start
            aggregate.deadline_open = proving.open
            aggregate.deadline_close = proving.close
            aggregate.deadline_count = proving.period_deadlines

        if results.get("deadlines"):
            aggregate.deadline_count = len(results["deadlines"])

        partitions = results.get("current_partitions")
        if partitions is not None:
            aggregate.current_deadline_partitions = len(partitions)
            aggregate.current_deadline_sectors = sum(len(p.live_sectors) for p in partitions)

        aggregate.sources = sorted(results)
        aggregate.errors = [f"{name}: {message}" for name, message in sorted(errors.items())]
        if submitted:
            aggregate.data_completeness = len(results) / len(submitted)
        aggregate.formatted = _format_aggregate(aggregate)
        return aggregate


def _address_roles(info) -> Dict[str, str]:
    """Distinct addresses of a miner in display order, mapped to their roles"""
    roles: Dict[str, List[str]] = {}
    entries = [("owner", info.owner), ("worker", info.worker), ("beneficiary", info.beneficiary)]
    entries += [(f"control-{i}", address) for i, address in enumerate(info.control_addresses)]
    for role, address in entries:
        if address:
            roles.setdefault(address, []).append(role)
    return {address: "/".join(names) for address, names in roles.items()}


def _format_aggregate(aggregate: MinerAggregate) -> Dict[str, str]:
    return {
        "sector_size": format_bytes(aggregate.sector_size),
        "raw_byte_power": format_bytes(aggregate.raw_byte_power),
        "quality_adj_power": format_bytes(aggregate.quality_adj_power),
        "network_raw_byte_power": format_bytes(aggregate.network_raw_byte_power),
        "network_quality_adj_power": format_bytes(aggregate.network_quality_adj_power),
        "network_power_share": format_percentage(aggregate.network_power_share),
        "network_qa_power_share": format_percentage(aggregate.network_qa_power_share),
        "available_balance": format_fil(aggregate.available_balance),
        "actor_balance": format_fil(aggregate.actor_balance),
        "initial_pledge": format_fil(aggregate.initial_pledge),
        "pre_commit_deposits": format_fil(aggregate.pre_commit_deposits),
        "vesting_funds": format_fil(aggregate.vesting_funds),
        "fee_debt": format_fil(aggregate.fee_debt),
        "total_locked": format_fil(aggregate.total_locked),
        "total_rewards": format_fil(aggregate.total_rewards),
    }
