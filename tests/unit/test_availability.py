from uuid import uuid4

import pytest
from fakes import FakeOracle

from queue_router.infra.availability import check_availability, is_online_within


@pytest.mark.asyncio
async def test_check_availability_reports_each_operator() -> None:
    oracle = FakeOracle()
    online, offline = uuid4(), uuid4()
    oracle.online.add(online)

    result = await check_availability(oracle, [online, offline], timeout=0.1)

    assert result == {online: True, offline: False}


@pytest.mark.asyncio
async def test_candidates_are_checked_in_one_batch() -> None:
    oracle = FakeOracle()
    operator_ids = [uuid4() for _ in range(12)]
    oracle.online |= set(operator_ids)

    result = await check_availability(oracle, operator_ids, timeout=0.1)

    assert all(result[operator_id] for operator_id in operator_ids)
    assert oracle.batches == [operator_ids]
    assert oracle.calls == []


@pytest.mark.asyncio
async def test_slow_batch_counts_everyone_offline() -> None:
    oracle = FakeOracle()
    slow, fine = uuid4(), uuid4()
    oracle.online |= {slow, fine}
    oracle.slow.add(slow)

    result = await check_availability(oracle, [slow, fine], timeout=0.05)

    assert result == {slow: False, fine: False}


@pytest.mark.asyncio
async def test_failing_batch_counts_everyone_offline() -> None:
    oracle = FakeOracle()
    broken, fine = uuid4(), uuid4()
    oracle.online |= {broken, fine}
    oracle.failing.add(broken)

    result = await check_availability(oracle, [broken, fine], timeout=0.1)

    assert result == {broken: False, fine: False}


@pytest.mark.asyncio
async def test_duplicate_ids_are_checked_once() -> None:
    oracle = FakeOracle()
    operator_id = uuid4()

    result = await check_availability(oracle, [operator_id, operator_id], timeout=0.1)

    assert result == {operator_id: False}
    assert oracle.batches == [[operator_id]]


@pytest.mark.asyncio
async def test_empty_candidate_list_skips_the_lookup() -> None:
    oracle = FakeOracle()

    assert await check_availability(oracle, [], timeout=0.1) == {}
    assert oracle.batches == []


@pytest.mark.asyncio
async def test_single_check_honors_timeout() -> None:
    oracle = FakeOracle()
    operator_id = uuid4()
    oracle.online.add(operator_id)
    oracle.slow.add(operator_id)

    assert await is_online_within(oracle, operator_id, timeout=0.01) is False
