from gmtracker.backend.library import HazardProfile, InMemoryLibrary, ItemProfile, PostgresLibrary


def test_in_memory_library_returns_only_known_ids() -> None:
    library = InMemoryLibrary()
    library.add_creature(1, level=3)
    library.add_hazard(2, level=4, complex=True)
    library.add_item(3, price=25.0, level=2, consumable=True)
    library.add_item(4, price=None)

    assert library.creature_levels([1, 99]) == {1: 3}
    assert library.hazard_profiles([2, 99]) == {2: HazardProfile(level=4, complex=True)}
    assert library.item_profiles([3, 4, 99]) == {
        3: ItemProfile(price=25.0, level=2, consumable=True),
        4: ItemProfile(price=None),
    }


class _FakeCursor:
    def __init__(self, rows: list[tuple]) -> None:
        self.rows = rows
        self.commands: list[tuple[str, tuple]] = []

    def execute(self, sql: str, params: tuple) -> None:
        self.commands.append((sql, params))

    def fetchall(self) -> list[tuple]:
        return self.rows

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self, rows: list[tuple]) -> None:
        self.cursor_instance = _FakeCursor(rows)
        self.committed = False

    def cursor(self) -> _FakeCursor:
        return self.cursor_instance

    def commit(self) -> None:
        self.committed = True

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _PostgresLibraryWithFakeConnection(PostgresLibrary):
    def __init__(self, rows: list[tuple]) -> None:
        super().__init__(database_url="postgresql://local")
        self.fake_connection = _FakeConnection(rows)
        self.connections = 0

    def _connect(self) -> _FakeConnection:
        self.connections += 1
        return self.fake_connection


def test_postgres_library_queries_unique_ids_once() -> None:
    library = _PostgresLibraryWithFakeConnection(rows=[(5, 2, True)])

    profiles = library.hazard_profiles([5, 5, 6])

    assert profiles == {5: HazardProfile(level=2, complex=True)}
    sql, params = library.fake_connection.cursor_instance.commands[0]
    assert "library_hazards" in sql
    assert params == ([5, 6],)


def test_postgres_library_skips_query_for_empty_ids() -> None:
    library = _PostgresLibraryWithFakeConnection(rows=[])

    assert library.creature_levels([]) == {}
    assert library.connections == 0


def test_postgres_library_upserts_items() -> None:
    library = _PostgresLibraryWithFakeConnection(rows=[])

    library.add_item(8, price=12.5, level=4, consumable=True)

    sql, params = library.fake_connection.cursor_instance.commands[0]
    assert "ON CONFLICT" in sql
    assert "consumable = EXCLUDED.consumable" in sql
    assert params == (8, 12.5, 4, True)
    assert library.fake_connection.committed is True


def test_postgres_library_reads_item_level_and_consumable_flag() -> None:
    library = _PostgresLibraryWithFakeConnection(rows=[(3, 25, 2, True), (4, None, 0, False)])

    profiles = library.item_profiles([3, 4])

    assert profiles == {
        3: ItemProfile(price=25.0, level=2, consumable=True),
        4: ItemProfile(price=None, level=0, consumable=False),
    }
    sql, _ = library.fake_connection.cursor_instance.commands[0]
    assert "level, consumable" in sql
