import asyncio
import logging
import uuid

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.exc import ProgrammingError

from config import Settings
from orderdesk.app.domain import (
    Conflict,
    Forbidden,
    InternalError,
    InvalidOrderId,
    InvalidReason,
    InvalidStatus,
    InvalidTransition,
    TransitionOk,
    WriteRejected,
)
from orderdesk.app.obs import TransitionEmitter
from orderdesk.app.repos_sqlalchemy import events_repo_sql, orders_repo_sql
from orderdesk.app.services import authorizer, transition_order
from orderdesk.tests._seed_orders import RESTAURANT_A, principal


class RecordingEmitter(TransitionEmitter):
    def __init__(self) -> None:
        super().__init__()
        self.outcomes = []

    def emit(self, outcome, ctx, exc=None):
        self.outcomes.append(outcome)
        super().emit(outcome, ctx, exc)


class _PermissionDenied(Exception):
    sqlstate = "42501"


def _denied() -> ProgrammingError:
    return ProgrammingError("UPDATE orders", {}, _PermissionDenied())


async def _events(seeded, order_id):
    async with seeded.Session() as session:
        return await events_repo_sql.list_for_order(session, order_id)


@pytest.mark.anyio
async def test_paid_to_preparing_commits_and_audits(seeded):
    order_id = await seeded.order("paid")
    emitter = RecordingEmitter()

    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a"), emitter=emitter
        )

    assert isinstance(outcome, TransitionOk)
    assert outcome.from_status == "paid"
    assert outcome.audited is True
    assert outcome.order.status == "preparing"
    assert outcome.order.restaurant_id == RESTAURANT_A
    assert outcome.order.updated_at is not None
    assert emitter.outcomes == [outcome]
    assert await seeded.status_of(order_id) == "preparing"

    events = await _events(seeded, order_id)
    assert len(events) == 1
    assert events[0]["from_status"] == "paid"
    assert events[0]["to_status"] == "preparing"
    assert events[0]["changed_by"] == "editor-a"
    assert events[0]["reason"] is None


@pytest.mark.anyio
async def test_reason_is_trimmed_and_recorded(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "cancelled", principal("owner-a"), "  out of stock "
        )
    assert isinstance(outcome, TransitionOk)
    events = await _events(seeded, order_id)
    assert events[0]["reason"] == "out of stock"


@pytest.mark.anyio
async def test_full_lifecycle(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        for target in ("paid", "preparing", "ready", "completed"):
            outcome = await transition_order(
                session, order_id, target, principal("editor-a")
            )
            assert isinstance(outcome, TransitionOk), target
    events = await _events(seeded, order_id)
    assert [(e["from_status"], e["to_status"]) for e in events] == [
        ("pending", "paid"),
        ("paid", "preparing"),
        ("preparing", "ready"),
        ("ready", "completed"),
    ]


@pytest.mark.anyio
async def test_ready_to_cancelled_is_rejected_with_allowed(seeded):
    order_id = await seeded.order("ready")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "cancelled", principal("editor-a")
        )
    assert outcome == InvalidTransition(from_status="ready", allowed=("completed",))
    assert await seeded.status_of(order_id) == "ready"
    assert await _events(seeded, order_id) == []


@pytest.mark.anyio
async def test_resubmitting_current_status_is_invalid(seeded):
    order_id = await seeded.order("paid")
    async with seeded.Session() as session:
        outcome = await transition_order(session, order_id, "paid", principal("editor-a"))
    assert outcome == InvalidTransition(
        from_status="paid", allowed=("preparing", "cancelled")
    )


@pytest.mark.anyio
@pytest.mark.parametrize("terminal", ["completed", "cancelled", "expired"])
async def test_terminal_orders_never_move(seeded, terminal):
    order_id = await seeded.order(terminal)
    async with seeded.Session() as session:
        for target in ("pending", "paid", "preparing", "ready", "cancelled"):
            outcome = await transition_order(
                session, order_id, target, principal("owner-a")
            )
            assert outcome == InvalidTransition(from_status=terminal, allowed=())
    assert await seeded.status_of(order_id) == terminal


@pytest.mark.anyio
@pytest.mark.parametrize("bad_id", ["not-a-uuid", "", "1234", None, 42])
async def test_malformed_order_id(seeded, bad_id):
    async with seeded.Session() as session:
        outcome = await transition_order(session, bad_id, "paid", principal("owner-a"))
    assert isinstance(outcome, InvalidOrderId)


@pytest.mark.anyio
async def test_order_id_checked_before_status(seeded):
    async with seeded.Session() as session:
        outcome = await transition_order(session, "nope", "bogus", None)
    assert isinstance(outcome, InvalidOrderId)


@pytest.mark.anyio
async def test_uppercase_order_id_is_accepted(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id.upper(), "paid", principal("editor-a")
        )
    assert isinstance(outcome, TransitionOk)
    assert outcome.order.id == order_id


@pytest.mark.anyio
@pytest.mark.parametrize("requested", ["PAID", "shipped", "", None, 5, ["paid"]])
async def test_unknown_status(seeded, requested):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, requested, principal("editor-a")
        )
    assert isinstance(outcome, InvalidStatus)
    assert await seeded.status_of(order_id) == "pending"


@pytest.mark.anyio
async def test_overlong_reason_is_rejected(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "cancelled", principal("editor-a"), "x" * 501
        )
    assert outcome == InvalidReason(max_length=500)
    assert await seeded.status_of(order_id) == "pending"


@pytest.mark.anyio
async def test_other_tenant_sees_forbidden(seeded):
    order_id = await seeded.order("paid")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-b")
        )
    assert outcome == Forbidden()
    assert await seeded.status_of(order_id) == "paid"


@pytest.mark.anyio
async def test_missing_order_looks_like_other_tenant(seeded):
    async with seeded.Session() as session:
        missing = await transition_order(
            session, str(uuid.uuid4()), "paid", principal("editor-a")
        )
    assert missing == Forbidden()


@pytest.mark.anyio
async def test_no_principal_is_forbidden(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(session, order_id, "paid", None)
    assert outcome == Forbidden()


@pytest.mark.anyio
async def test_viewer_cannot_mutate(seeded):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(session, order_id, "paid", principal("viewer-a"))
    assert outcome == Forbidden()
    assert await seeded.status_of(order_id) == "pending"


@pytest.mark.anyio
async def test_minimum_role_is_configurable(seeded, monkeypatch):
    monkeypatch.setattr(
        authorizer, "get_settings", lambda: Settings(min_mutation_role="manager")
    )
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        editor = await transition_order(session, order_id, "paid", principal("editor-a"))
        owner = await transition_order(session, order_id, "paid", principal("owner-a"))
    assert editor == Forbidden()
    assert isinstance(owner, TransitionOk)


@pytest.mark.anyio
async def test_concurrent_transition_loses_with_conflict(seeded, monkeypatch):
    order_id = await seeded.order("paid")
    original = orders_repo_sql.compare_and_set_status
    raced = []

    async def racing_cas(session, oid, expected, new, now=None):
        # a second instance cancels the order between our read and our write
        if not raced:
            raced.append(True)
            async with seeded.Session() as other:
                won = await transition_order(
                    other, oid, "cancelled", principal("owner-a")
                )
            assert isinstance(won, TransitionOk)
        return await original(session, oid, expected, new, now)

    monkeypatch.setattr(orders_repo_sql, "compare_and_set_status", racing_cas)

    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a")
        )

    assert outcome == Conflict(current="cancelled", expected="paid")
    assert await seeded.status_of(order_id) == "cancelled"
    events = await _events(seeded, order_id)
    assert [(e["from_status"], e["to_status"]) for e in events] == [
        ("paid", "cancelled")
    ]


@pytest.mark.anyio
async def test_audit_failure_does_not_undo_transition(seeded, monkeypatch, caplog):
    order_id = await seeded.order("paid")

    async def broken_insert(*args, **kwargs):
        raise RuntimeError("events table unavailable")

    monkeypatch.setattr(events_repo_sql, "insert_event", broken_insert)
    before = REGISTRY.get_sample_value("order_audit_failures_total") or 0.0
    caplog.set_level(logging.INFO, logger="orderdesk.transitions")

    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a")
        )

    assert isinstance(outcome, TransitionOk)
    assert outcome.audited is False
    assert await seeded.status_of(order_id) == "preparing"
    assert REGISTRY.get_sample_value("order_audit_failures_total") == before + 1
    assert any(
        getattr(r, "event", None) == "audit_write_failed" for r in caplog.records
    )


@pytest.mark.anyio
async def test_storage_error_is_internal_and_changes_nothing(seeded, monkeypatch):
    order_id = await seeded.order("paid")

    async def broken_cas(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(orders_repo_sql, "compare_and_set_status", broken_cas)
    emitter = RecordingEmitter()

    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a"), emitter=emitter
        )

    assert isinstance(outcome, InternalError)
    uuid.UUID(outcome.error_id)
    assert emitter.outcomes == [outcome]
    assert await seeded.status_of(order_id) == "paid"


@pytest.mark.anyio
async def test_store_refusing_write_is_write_rejected(seeded, monkeypatch):
    order_id = await seeded.order("paid")

    async def refused(*args, **kwargs):
        raise _denied()

    monkeypatch.setattr(orders_repo_sql, "compare_and_set_status", refused)
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a")
        )
    assert outcome == WriteRejected()
    assert await seeded.status_of(order_id) == "paid"


@pytest.mark.anyio
async def test_store_refusing_read_is_forbidden(seeded, monkeypatch):
    order_id = await seeded.order("paid")

    async def refused(*args, **kwargs):
        raise _denied()

    monkeypatch.setattr(orders_repo_sql, "load_for_user", refused)
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a")
        )
    assert outcome == Forbidden()


@pytest.mark.anyio
@pytest.mark.parametrize("reason", [{"a": 1}, ["late"], 42, True])
async def test_non_string_reason_is_rejected(seeded, reason):
    order_id = await seeded.order("pending")
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "cancelled", principal("editor-a"), reason
        )
    assert outcome == InvalidReason(max_length=500)
    assert await seeded.status_of(order_id) == "pending"
    assert await _events(seeded, order_id) == []


@pytest.mark.anyio
async def test_update_filtered_by_store_is_write_rejected(seeded, monkeypatch):
    order_id = await seeded.order("paid")

    async def filtered(*args, **kwargs):
        # row-level security hides the row from the UPDATE: zero rows, no error
        return None

    monkeypatch.setattr(orders_repo_sql, "compare_and_set_status", filtered)
    emitter = RecordingEmitter()
    async with seeded.Session() as session:
        outcome = await transition_order(
            session, order_id, "preparing", principal("editor-a"), emitter=emitter
        )

    assert outcome == WriteRejected()
    assert emitter.outcomes == [outcome]
    assert await seeded.status_of(order_id) == "paid"
    assert await _events(seeded, order_id) == []


@pytest.mark.anyio
async def test_simultaneous_requests_have_one_winner(seeded, monkeypatch):
    order_id = await seeded.order("paid")
    original = orders_repo_sql.compare_and_set_status
    arrived = []
    both_read = asyncio.Event()

    async def gated_cas(*args, **kwargs):
        # hold each write until both requests have read ``paid``
        arrived.append(True)
        if len(arrived) == 2:
            both_read.set()
        await asyncio.wait_for(both_read.wait(), timeout=5)
        return await original(*args, **kwargs)

    monkeypatch.setattr(orders_repo_sql, "compare_and_set_status", gated_cas)

    async def request(status, user_id):
        async with seeded.Session() as session:
            return await transition_order(session, order_id, status, principal(user_id))

    outcomes = await asyncio.gather(
        request("preparing", "editor-a"), request("cancelled", "owner-a")
    )

    winners = [o for o in outcomes if isinstance(o, TransitionOk)]
    losers = [o for o in outcomes if isinstance(o, Conflict)]
    assert len(winners) == 1
    assert len(losers) == 1
    final = await seeded.status_of(order_id)
    assert final == winners[0].order.status
    assert losers[0] == Conflict(current=final, expected="paid")
    events = await _events(seeded, order_id)
    assert [(e["from_status"], e["to_status"]) for e in events] == [("paid", final)]
