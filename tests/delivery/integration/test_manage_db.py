"""Schema management against the in-memory provider."""

from delivery.domain import delivery
from delivery.utils.db import drop_db, setup_db


def test_setup_db_skips_non_rdbms_providers(delivery_bed):
    assert setup_db(delivery) == []


def test_drop_db_skips_non_rdbms_providers(delivery_bed):
    assert drop_db(delivery) == []
