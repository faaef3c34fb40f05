import pytest

from reconciler.config.models import Table


@pytest.fixture()
def make_table():
    def _make(name, records, headers=None):
        if headers is None:
            return Table.from_records(name, records)
        return Table(name=name, headers=list(headers), records=list(records))
    return _make
