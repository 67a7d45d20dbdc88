from editlab.applier import ApplyError, BatchApplier, backup_name
from editlab.governance import PathSafetyValidator
from editlab.history import HistoryLog
from editlab.models import Change, Verdict


def _change(file, action, content, safe=True, risk=None):
    return Change(file=file, action=action, content=content, verdict=Verdict(safe=safe, risk=risk))


def _applier(project, log=None):
    return BatchApplier(project, ".editlab/backups", log if log is not None else HistoryLog())


def test_backup_name_flattens_separators():
    assert backup_name("src/utils/a.py", 1700000000000) == "src_utils_a.py.1700000000000.bak"
    assert backup_name("src\\win\\b.py", 5) == "src_win_b.py.5.bak"


def test_create_writes_file_and_records_entry_without_backup(project):
    log = HistoryLog()

    result = _applier(project, log).apply([_change("utils/trim.txt", "create", "TRIM=true")], "B1")

    assert (project / "utils" / "trim.txt").read_text() == "TRIM=true"
    assert result.ok
    [entry] = result.entries
    assert entry.action == "create"
    assert entry.backup_ref is None
    assert entry.batch_id == "B1"
    assert log.entries == [entry]


def test_modify_backs_up_exact_prior_bytes(project):
    target = project / "app.py"
    original = b"line one\r\nline two\r\n\xe2\x9c\x93\n"
    target.write_bytes(original)

    result = _applier(project).apply([_change("app.py", "modify", "new body\n")], "B1")

    [entry] = result.entries
    assert entry.action == "modify"
    assert entry.backup_ref.read_bytes() == original
    assert entry.backup_ref.parent == (project / ".editlab" / "backups").resolve()
    assert entry.backup_ref.name == f"app.py.{entry.timestamp}.bak"
    assert target.read_text() == "new body\n"


def test_entries_follow_plan_order_and_share_batch_id(project):
    (project / "b.txt").write_text("b0")
    changes = [
        _change("a.txt", "create", "a"),
        _change("b.txt", "modify", "b1"),
        _change("c/d.txt", "create", "d"),
    ]

    result = _applier(project).apply(changes, "B7")

    assert [e.file for e in result.entries] == ["a.txt", "b.txt", "c/d.txt"]
    assert {e.batch_id for e in result.entries} == {"B7"}


def test_batch_id_generated_when_missing(project):
    result = _applier(project).apply([_change("a.txt", "create", "a")])

    assert result.batch_id
    assert result.entries[0].batch_id == result.batch_id


def test_failed_write_does_not_stop_the_batch(project):
    # A directory where a file should go makes the second write fail.
    (project / "second.txt").mkdir()
    log = HistoryLog()
    changes = [
        _change("first.txt", "create", "1"),
        _change("second.txt", "create", "2"),
        _change("third.txt", "create", "3"),
    ]

    result = _applier(project, log).apply(changes, "B1")

    assert [e.file for e in result.entries] == ["first.txt", "third.txt"]
    assert len(result.failures) == 1
    assert isinstance(result.failures[0], ApplyError)
    assert result.failures[0].file == "second.txt"
    assert (project / "third.txt").read_text() == "3"
    assert [e.file for e in log] == ["first.txt", "third.txt"]


def test_modify_of_missing_file_is_recorded_as_create(project):
    result = _applier(project).apply([_change("ghost.txt", "modify", "boo")], "B1")

    [entry] = result.entries
    assert entry.action == "create"
    assert entry.backup_ref is None


def test_create_over_existing_file_keeps_a_backup(project):
    (project / "exists.txt").write_text("keep me")

    result = _applier(project).apply([_change("exists.txt", "create", "replaced")], "B1")

    [entry] = result.entries
    assert entry.action == "modify"
    assert entry.backup_ref.read_text() == "keep me"


def test_same_file_twice_gets_distinct_backups(project):
    (project / "twice.txt").write_text("v0")
    changes = [_change("twice.txt", "modify", "v1"), _change("twice.txt", "modify", "v2")]

    result = _applier(project).apply(changes, "B1")

    first, second = result.entries
    assert first.backup_ref != second.backup_ref
    assert first.backup_ref.read_text() == "v0"
    assert second.backup_ref.read_text() == "v1"


def test_flagged_changes_are_recorded_as_flagged(project):
    result = _applier(project).apply(
        [_change("risky.py", "create", "eval(input())", safe=False, risk="eval of user input")], "B1"
    )

    [entry] = result.entries
    assert entry.flagged is True
    assert entry.risk == "eval of user input"


def test_validator_rejects_unsafe_targets(project):
    applier = BatchApplier(project, ".editlab/backups", HistoryLog(), validator=PathSafetyValidator(project))

    result = applier.apply([_change("../escape.txt", "create", "x")], "B1")

    assert result.entries == []
    assert result.failures[0].file == "../escape.txt"
    assert not (project.parent / "escape.txt").exists()


def test_purge_backups_removes_session_backups(project):
    (project / "a.txt").write_text("a0")
    applier = _applier(project)
    result = applier.apply([_change("a.txt", "modify", "a1")], "B1")
    backup = result.entries[0].backup_ref

    removed = applier.purge_backups()

    assert removed == [backup]
    assert not backup.exists()
