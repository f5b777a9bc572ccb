from securescan.session_state import ScanSessionState


def test_create_and_update():
    sessions = ScanSessionState()
    sessions.create("a")
    assert sessions.update("a", status="scanning", progress=25, current_step="Running ESLint analysis...")
    progress = sessions.get("a")
    assert progress.to_dict() == {
        "status": "scanning", "progress": 25, "current_step": "Running ESLint analysis...",
    }


def test_progress_never_decreases_and_is_clamped():
    sessions = ScanSessionState()
    sessions.create("a")
    sessions.update("a", progress=50)
    sessions.update("a", progress=10)
    assert sessions.get("a").progress == 50
    sessions.update("a", progress=250)
    assert sessions.get("a").progress == 100


def test_get_returns_copy():
    sessions = ScanSessionState()
    sessions.create("a")
    sessions.get("a").status = "completed"
    assert sessions.get("a").status == "pending"


def test_unknown_session_is_ignored():
    sessions = ScanSessionState()
    assert not sessions.update("missing", status="scanning")
    assert sessions.get("missing") is None
    assert not sessions.cancel("missing")
    assert not sessions.is_cancelled("missing")


def test_cancel_blocks_further_updates():
    sessions = ScanSessionState()
    sessions.create("a")
    sessions.update("a", status="scanning", progress=25)
    assert sessions.cancel("a")
    assert sessions.is_cancelled("a")
    assert not sessions.update("a", status="completed", progress=100)
    assert sessions.get("a").status == "failed"


def test_delete_clears_cancel_flag():
    sessions = ScanSessionState()
    sessions.create("a")
    sessions.cancel("a")
    sessions.delete("a")
    assert sessions.get("a") is None
    assert not sessions.is_cancelled("a")
