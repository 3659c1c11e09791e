import time

from core.state import SessionState
from interview_room.conversation import QAPair, Session, SessionRepository


def _session(**kwargs) -> Session:
    return Session(summary="summary", history=[QAPair(question="Q1?")], **kwargs)


def test_session_repository_add_touch_terminate_evict():
    repository = SessionRepository(idle_ttl_sec=3600, terminated_ttl_sec=600)

    session = repository.add(_session())
    assert repository.get(session.session_id) is session
    assert session.session_id in repository
    assert len(repository) == 1

    before_touch = float(session.updated_at)
    time.sleep(0.01)
    repository.touch(session.session_id)
    assert float(session.updated_at) >= before_touch

    repository.mark_terminated(session.session_id)
    assert session.state == SessionState.TERMINATED

    # terminated sessions expire on the shorter ttl
    assert repository.evict_expired(now_ts=session.updated_at + 60) == 0
    assert repository.evict_expired(now_ts=session.updated_at + 601) == 1
    assert repository.get(session.session_id) is None


def test_idle_sessions_expire_but_generating_ones_are_kept():
    repository = SessionRepository(idle_ttl_sec=100, terminated_ttl_sec=10)
    idle = repository.add(_session())
    busy = repository.add(_session())
    busy.begin_answer("in flight")

    now = max(idle.updated_at, busy.updated_at)
    assert repository.evict_expired(now_ts=now + 50) == 0
    assert repository.evict_expired(now_ts=now + 101) == 1
    assert idle.session_id not in repository
    assert busy.session_id in repository


def test_unknown_ids_are_ignored():
    repository = SessionRepository()

    assert repository.get("") is None
    assert repository.get(None) is None
    repository.touch("missing")
    repository.mark_terminated("missing")
    assert len(repository) == 0


def test_session_requires_a_first_question():
    try:
        Session(summary="s", history=[])
    except ValueError:
        pass
    else:
        raise AssertionError("empty history must be rejected")
