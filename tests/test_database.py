import logging

from amenity_reservations.database import acquire_write_lock, log_slow_queries


def test_slow_statements_are_logged(db_engine, caplog):
    log_slow_queries(db_engine, threshold=-1.0)
    with caplog.at_level(logging.WARNING, logger="amenity_reservations.database"):
        with db_engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    assert "Slow query" in caplog.text
    assert "SELECT 1" in caplog.text


def test_write_lock_starts_the_sqlite_transaction_once(session_factory):
    session = session_factory()
    try:
        driver = session.connection().connection.driver_connection
        assert not driver.in_transaction

        acquire_write_lock(session)
        assert driver.in_transaction

        # Already inside a transaction: no nested BEGIN
        acquire_write_lock(session)
        assert driver.in_transaction
    finally:
        session.rollback()
        session.close()
