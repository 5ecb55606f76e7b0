"""Tests for the SQLite models."""

from ministry_scanner.database.db_manager import DatabaseManager
from ministry_scanner.database.models import Church, Member, Minister


def test_database_is_initialized(db_manager) -> None:
    assert db_manager.is_initialized()
    assert db_manager.table_exists("members")
    assert not db_manager.table_exists("users")
    assert not db_manager.ensure_schema()


def test_ensure_schema_creates_missing_tables(tmp_path) -> None:
    manager = DatabaseManager(tmp_path / "fresh.db")

    assert manager.missing_tables() == ["churches", "members", "ministers"]
    assert manager.ensure_schema()
    assert manager.is_initialized()
    assert manager.fetch_one("SELECT COUNT(*) AS total FROM members") == {"total": 0}


def test_member_create_get_joins_church(db_manager) -> None:
    church_id = Church(db_manager).create("Redeemer Main", "Quezon City")
    members = Member(db_manager)

    member_id = members.create("Juan", "Dela Cruz", church_id=church_id, email="juan@example.com",
                               unknown_field="ignored")
    record = members.get_by_id(member_id)

    assert record["first_name"] == "Juan"
    assert record["church_name"] == "Redeemer Main"
    assert record["is_active"] == 1
    assert "unknown_field" not in record


def test_deleting_church_keeps_its_members(db_manager) -> None:
    churches = Church(db_manager)
    church_id = churches.create("Redeemer North")
    members = Member(db_manager)
    member_id = members.create("Ana", "Santos", church_id=church_id)

    assert churches.delete(church_id)
    record = members.get_by_id(member_id)
    assert record["church_id"] is None
    assert record["church_name"] is None


def test_get_by_id_missing_returns_none(db_manager) -> None:
    assert Member(db_manager).get_by_id(999) is None
    assert Minister(db_manager).get_by_id(999) is None


def test_update_changes_fields_and_ignores_unknown(db_manager) -> None:
    ministers = Minister(db_manager)
    minister_id = ministers.create("Maria", "Reyes")

    assert ministers.update(minister_id, telephone="02-8123-4567", bogus="x")
    assert ministers.get_by_id(minister_id)["telephone"] == "02-8123-4567"
    assert not ministers.update(minister_id, bogus="x")


def test_update_rejected_by_constraint_returns_false(db_manager) -> None:
    members = Member(db_manager)
    member_id = members.create("Juan", "Dela Cruz")

    assert not members.update(member_id, gender="unknown")
    assert members.get_by_id(member_id)["gender"] is None


def test_delete(db_manager) -> None:
    members = Member(db_manager)
    member_id = members.create("Juan", "Dela Cruz")

    assert members.delete(member_id)
    assert members.get_by_id(member_id) is None
    assert members.count() == 0


def test_search_matches_words_and_full_names(db_manager) -> None:
    members = Member(db_manager)
    members.create("Juan", "Dela Cruz", middle_name="Santos")
    members.create("Ana", "Santos")
    members.create("Pedro", "Penduko")

    def names(query):
        return [f"{row['first_name']} {row['last_name']}" for row in members.search(query)]

    assert names("santos") == ["Ana Santos", "Juan Dela Cruz"]
    assert names("juan dela") == ["Juan Dela Cruz"]
    assert names("Juan Santos Dela") == ["Juan Dela Cruz"]
    assert names("pedro santos") == []
    assert names("j") == []
    assert names("  ") == []


def test_search_limit(db_manager) -> None:
    ministers = Minister(db_manager)
    for index in range(5):
        ministers.create(f"Pastor{index}", "Reyes")

    assert len(ministers.search("reyes", limit=3)) == 3


def test_created_since_includes_today(db_manager) -> None:
    members = Member(db_manager)
    members.create("Juan", "Dela Cruz")
    members.create("Old", "Timer")
    db_manager.execute_update(
        "UPDATE members SET created_at = datetime('now', '-40 days') WHERE first_name = 'Old'"
    )

    recent = members.created_since(30)

    assert [row["first_name"] for row in recent] == ["Juan"]
