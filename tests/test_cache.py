"""Tests for the metadata cache."""

import threading

from scoped_query.catalog.cache import MISSING, MetadataCache
from scoped_query.catalog.schema import ColumnCandidate, ResolvedColumn
from scoped_query.plan.predicates import TypeClass

USERS_HOTEL = ColumnCandidate("users", "hotel", ("hotel_id",))


def test_unknown_keys_miss():
    """Test lookups on empty cache return the MISSING sentinel."""
    cache = MetadataCache()

    assert cache.column_exists("users", "hotel_id") is MISSING
    assert cache.column_type("users", "hotel_id") is MISSING
    assert cache.table_exists("users") is MISSING
    assert cache.attribute(USERS_HOTEL) is MISSING


def test_negative_answers_are_cached():
    """Test False and None are stored, not confused with a miss."""
    cache = MetadataCache()

    cache.remember_column_exists("users", "hotel", False)
    cache.remember_resolution("users", ("hotel_id",), (), None)

    assert cache.column_exists("users", "hotel") is False
    assert cache.resolution("users", ("hotel_id",), ()) is None


def test_first_write_wins():
    """Test a second write for the same key keeps the first value."""
    cache = MetadataCache()

    assert cache.remember_column_exists("users", "hotel_id", True) is True
    assert cache.remember_column_exists("users", "hotel_id", False) is True
    assert cache.column_exists("users", "hotel_id") is True


def test_keys_are_exact():
    """Test table and column names are not case folded."""
    cache = MetadataCache()
    cache.remember_column_exists("users", "hotelId", True)

    assert cache.column_exists("users", "hotelid") is MISSING
    assert cache.column_exists("Users", "hotelId") is MISSING


def test_disabled_cache_stores_nothing():
    """Test a disabled cache returns the value but never stores it."""
    cache = MetadataCache(enabled=False)

    assert cache.remember_table_exists("users", True) is True
    assert cache.table_exists("users") is MISSING


def test_invalidate_single_table():
    """Test invalidating one table keeps other tables' entries."""
    cache = MetadataCache()
    cache.remember_column_exists("users", "hotel_id", True)
    cache.remember_column_type("users", "hotel_id", "integer")
    cache.remember_table_exists("users", True)
    cache.remember_column_exists("hotels", "id", True)
    cache.remember_attribute(USERS_HOTEL, ResolvedColumn("users", "hotel", "hotel_id", TypeClass.NUMERIC))
    cache.remember_table_resolution(("hotels",), "hotels")

    cache.invalidate("users")

    assert cache.column_exists("users", "hotel_id") is MISSING
    assert cache.column_type("users", "hotel_id") is MISSING
    assert cache.table_exists("users") is MISSING
    assert cache.attribute(USERS_HOTEL) is MISSING
    assert cache.table_resolution(("hotels",)) is MISSING
    assert cache.column_exists("hotels", "id") is True


def test_invalidate_everything():
    """Test invalidate() without a table clears all entries."""
    cache = MetadataCache()
    cache.remember_column_exists("users", "hotel_id", True)
    cache.remember_column_exists("hotels", "id", True)

    cache.invalidate()

    stats = cache.stats()
    assert stats["columns"] == 0
    assert cache.column_exists("hotels", "id") is MISSING


def test_stats_count_hits_and_misses():
    """Test hit and miss counters."""
    cache = MetadataCache()
    cache.column_exists("users", "hotel_id")
    cache.remember_column_exists("users", "hotel_id", True)
    cache.column_exists("users", "hotel_id")
    cache.column_exists("users", "hotel_id")

    stats = cache.stats()
    assert stats["misses"] == 1
    assert stats["hits"] == 2
    assert stats["columns"] == 1


def test_concurrent_writers_observe_one_answer():
    """Test racing writers all get the value that won."""
    cache = MetadataCache()
    workers = 16
    barrier = threading.Barrier(workers)
    results = [None] * workers

    def write(index):
        barrier.wait()
        resolved = ResolvedColumn("users", "hotel", f"candidate_{index}", TypeClass.TEXT)
        results[index] = cache.remember_attribute(USERS_HOTEL, resolved)

    threads = []
    for index in range(workers):
        thread = threading.Thread(target=write, args=(index,))
        threads.append(thread)
        thread.start()
    for thread in threads:
        thread.join()

    winner = cache.attribute(USERS_HOTEL)
    assert winner is not MISSING
    for result in results:
        assert result is winner
