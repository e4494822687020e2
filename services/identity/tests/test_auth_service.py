from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import delete

from app.auth.models import PendingOTP, Unverified, User, Verified
from app.auth.service import (
    check_otp,
    consume_otp,
    create_credential,
    create_session_token,
    decode_session_token,
    get_user_by_email,
    get_user_by_id,
    is_locked,
    issue_otp,
    record_failed_login,
    record_successful_login,
    resolve_session,
)
from app.auth.utils import generate_otp
from app.exceptions import (
    AccountLocked,
    AlreadyVerified,
    InvalidOTP,
    NoOTPIssued,
    OTPExpired,
    TokenExpired,
    TokenInvalid,
    UserAlreadyExists,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _new_user(session, email: str = "svc@example.com") -> User:
    user = await create_credential(
        session,
        email=email,
        first_name="Grace",
        last_name="Hopper",
        password="secret123",
    )
    await session.commit()
    return user


# ── Credential store ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_credential_starts_unverified(db_session) -> None:
    user = await _new_user(db_session, "Svc@Example.com")
    assert user.email == "svc@example.com"
    assert user.password_hash != "secret123"
    assert user.failed_login_attempts == 0
    assert user.state == Unverified()


@pytest.mark.asyncio
async def test_create_credential_duplicate_email_any_case(db_session) -> None:
    await _new_user(db_session, "dup@example.com")
    with pytest.raises(UserAlreadyExists):
        await _new_user(db_session, "DUP@example.com")


@pytest.mark.asyncio
async def test_lookup_is_case_insensitive(db_session) -> None:
    user = await _new_user(db_session)
    found = await get_user_by_email(db_session, "  SVC@example.COM ")
    assert found is not None and found.id == user.id


# ── OTP lifecycle ─────────────────────────────────────────────────────────────

def test_generate_otp_is_six_digits() -> None:
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6 and code.isdigit()


@pytest.mark.asyncio
async def test_issue_otp_sets_ten_minute_expiry(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    assert user.state == Unverified(PendingOTP(code, NOW + timedelta(minutes=10)))


@pytest.mark.asyncio
async def test_consume_otp_verifies_once(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)

    await consume_otp(db_session, user, code, now=NOW + timedelta(minutes=1))
    assert user.is_verified
    assert user.state == Verified()
    assert user.otp_code is None and user.otp_expires_at is None

    with pytest.raises(AlreadyVerified):
        await consume_otp(db_session, user, code, now=NOW + timedelta(minutes=2))


@pytest.mark.asyncio
async def test_consume_otp_at_expiry_instant_is_expired(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    with pytest.raises(OTPExpired):
        await consume_otp(db_session, user, code, now=NOW + timedelta(seconds=600))
    assert not user.is_verified


@pytest.mark.asyncio
async def test_consume_otp_just_before_expiry_succeeds(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    await consume_otp(db_session, user, code, now=NOW + timedelta(seconds=599))
    assert user.is_verified


@pytest.mark.asyncio
async def test_consume_otp_wrong_code(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    wrong = "000000" if code != "000000" else "111111"
    with pytest.raises(InvalidOTP):
        await consume_otp(db_session, user, wrong, now=NOW)
    assert not user.is_verified
    # A mismatch does not burn the pending code
    await consume_otp(db_session, user, code, now=NOW)
    assert user.is_verified


@pytest.mark.asyncio
async def test_consume_otp_without_issued_code(db_session) -> None:
    user = await _new_user(db_session)
    with pytest.raises(NoOTPIssued):
        await consume_otp(db_session, user, "123456", now=NOW)


@pytest.mark.asyncio
async def test_reissue_replaces_previous_code(db_session) -> None:
    user = await _new_user(db_session)
    first = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    second = first
    while second == first:
        second = await issue_otp(db_session, user, expire_seconds=600, now=NOW)

    with pytest.raises(InvalidOTP):
        await consume_otp(db_session, user, first, now=NOW)
    await consume_otp(db_session, user, second, now=NOW)
    assert user.is_verified


@pytest.mark.asyncio
async def test_issue_otp_refused_once_verified(db_session) -> None:
    user = await _new_user(db_session)
    code = await issue_otp(db_session, user, expire_seconds=600, now=NOW)
    await consume_otp(db_session, user, code, now=NOW)
    with pytest.raises(AlreadyVerified):
        await issue_otp(db_session, user, expire_seconds=600, now=NOW)


def test_check_otp_order_expiry_before_mismatch() -> None:
    state = Unverified(PendingOTP("123456", NOW))
    with pytest.raises(OTPExpired):
        check_otp(state, "999999", NOW)
    with pytest.raises(AlreadyVerified):
        check_otp(Verified(), "123456", NOW)
    with pytest.raises(NoOTPIssued):
        check_otp(Unverified(), "123456", NOW)


# ── Concurrent OTP consumption (stale snapshots in separate sessions) ─────────

@pytest.mark.asyncio
async def test_two_verifications_with_same_code_only_one_wins(session_factory) -> None:
    async with session_factory() as setup:
        user = await _new_user(setup)
        code = await issue_otp(setup, user, expire_seconds=600, now=NOW)
        await setup.commit()
        user_id = user.id

    async with session_factory() as first, session_factory() as second:
        # Both requests read the row while it still holds the pending code
        stale = await get_user_by_id(second, user_id)
        winner = await get_user_by_id(first, user_id)

        await consume_otp(first, winner, code, now=NOW)
        await first.commit()

        with pytest.raises(AlreadyVerified):
            await consume_otp(second, stale, code, now=NOW)


@pytest.mark.asyncio
async def test_verification_racing_a_resend_loses(session_factory) -> None:
    async with session_factory() as setup:
        user = await _new_user(setup)
        old_code = await issue_otp(setup, user, expire_seconds=600, now=NOW)
        await setup.commit()
        user_id = user.id

    async with session_factory() as resender, session_factory() as verifier:
        stale = await get_user_by_id(verifier, user_id)

        fresh = await get_user_by_id(resender, user_id)
        new_code = old_code
        while new_code == old_code:
            new_code = await issue_otp(resender, fresh, expire_seconds=600, now=NOW)
        await resender.commit()

        with pytest.raises(InvalidOTP):
            await consume_otp(verifier, stale, old_code, now=NOW)
        assert not stale.is_verified


# ── Lockout guard ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fifth_failure_locks_for_two_hours(db_session) -> None:
    user = await _new_user(db_session)
    for attempt in range(1, 5):
        locked = await record_failed_login(
            db_session, user, max_attempts=5, lock_seconds=7200, now=NOW
        )
        assert not locked
        assert user.failed_login_attempts == attempt

    assert await record_failed_login(
        db_session, user, max_attempts=5, lock_seconds=7200, now=NOW
    )
    assert user.locked_until == NOW + timedelta(hours=2)
    assert user.failed_login_attempts == 0
    assert is_locked(user, NOW + timedelta(hours=1, minutes=59))
    assert not is_locked(user, NOW + timedelta(hours=2))


@pytest.mark.asyncio
async def test_success_resets_counter_not_lock(db_session) -> None:
    user = await _new_user(db_session)
    for _ in range(3):
        await record_failed_login(db_session, user, max_attempts=5, lock_seconds=7200, now=NOW)
    await record_successful_login(db_session, user, now=NOW)
    assert user.failed_login_attempts == 0

    for _ in range(5):
        await record_failed_login(db_session, user, max_attempts=5, lock_seconds=7200, now=NOW)
    locked_until = user.locked_until
    await record_successful_login(db_session, user, now=NOW + timedelta(hours=3))
    assert user.locked_until == locked_until


@pytest.mark.asyncio
async def test_failure_after_expired_lock_restarts_count(db_session) -> None:
    user = await _new_user(db_session)
    for _ in range(5):
        await record_failed_login(db_session, user, max_attempts=5, lock_seconds=7200, now=NOW)

    later = NOW + timedelta(hours=3)
    locked = await record_failed_login(
        db_session, user, max_attempts=5, lock_seconds=7200, now=later
    )
    assert not locked
    assert user.failed_login_attempts == 1
    assert user.locked_until is None


@pytest.mark.asyncio
async def test_concurrent_failures_are_not_lost(session_factory) -> None:
    async with session_factory() as setup:
        user = await _new_user(setup)
        user_id = user.id

    async with session_factory() as first, session_factory() as second:
        a = await get_user_by_id(first, user_id)
        b = await get_user_by_id(second, user_id)
        assert a.failed_login_attempts == b.failed_login_attempts == 0

        await record_failed_login(first, a, max_attempts=5, lock_seconds=7200, now=NOW)
        await first.commit()
        # b still believes the counter is 0
        await record_failed_login(second, b, max_attempts=5, lock_seconds=7200, now=NOW)
        await second.commit()
        assert b.failed_login_attempts == 2


async def _user_with_failures(session_factory, failures: int):
    async with session_factory() as setup:
        user = await _new_user(setup)
        for _ in range(failures):
            await record_failed_login(setup, user, max_attempts=5, lock_seconds=7200, now=NOW)
        await setup.commit()
        return user.id


@pytest.mark.asyncio
async def test_success_racing_a_locking_failure_is_refused(session_factory) -> None:
    user_id = await _user_with_failures(session_factory, 4)

    async with session_factory() as winner, session_factory() as loser:
        # Both logins read the row before either writes
        stale = await get_user_by_id(winner, user_id)
        locker = await get_user_by_id(loser, user_id)
        assert not is_locked(stale, NOW)

        assert await record_failed_login(
            loser, locker, max_attempts=5, lock_seconds=7200, now=NOW
        )
        await loser.commit()

        with pytest.raises(AccountLocked):
            await record_successful_login(winner, stale, now=NOW)
        assert is_locked(stale, NOW)


@pytest.mark.asyncio
async def test_failure_racing_a_locking_failure_is_not_counted(session_factory) -> None:
    user_id = await _user_with_failures(session_factory, 4)

    async with session_factory() as first, session_factory() as second:
        a = await get_user_by_id(first, user_id)
        b = await get_user_by_id(second, user_id)

        await record_failed_login(first, a, max_attempts=5, lock_seconds=7200, now=NOW)
        await first.commit()

        with pytest.raises(AccountLocked):
            await record_failed_login(second, b, max_attempts=5, lock_seconds=7200, now=NOW)
        # The lock from the fifth failure stands and the counter is not restarted
        assert b.failed_login_attempts == 0
        assert b.locked_until == NOW + timedelta(hours=2)


# ── Session tokens ────────────────────────────────────────────────────────────

def test_session_token_round_trip(settings) -> None:
    user_id = uuid4()
    assert decode_session_token(create_session_token(user_id, settings), settings) == user_id


def test_expired_session_token(settings) -> None:
    issued = datetime.now(timezone.utc) - timedelta(seconds=settings.jwt_expire_seconds + 60)
    token = create_session_token(uuid4(), settings, now=issued)
    with pytest.raises(TokenExpired):
        decode_session_token(token, settings)


def test_token_signed_with_other_secret_is_invalid(settings) -> None:
    other = settings.model_copy(update={"jwt_secret": "someone-else"})
    token = create_session_token(uuid4(), other)
    with pytest.raises(TokenInvalid):
        decode_session_token(token, settings)


def test_token_for_other_audience_is_invalid(settings) -> None:
    other = settings.model_copy(update={"jwt_audience": "billing"})
    with pytest.raises(TokenInvalid):
        decode_session_token(create_session_token(uuid4(), other), settings)


@pytest.mark.asyncio
async def test_resolve_session_rejects_unverified_and_deleted(db_session, settings) -> None:
    user = await _new_user(db_session)
    token = create_session_token(user.id, settings)
    with pytest.raises(TokenInvalid):
        await resolve_session(db_session, token, settings)

    code = await issue_otp(db_session, user, expire_seconds=600)
    await consume_otp(db_session, user, code)
    await db_session.commit()
    assert (await resolve_session(db_session, token, settings)).id == user.id

    await db_session.execute(delete(User).where(User.id == user.id))
    await db_session.commit()
    with pytest.raises(TokenInvalid):
        await resolve_session(db_session, token, settings)
