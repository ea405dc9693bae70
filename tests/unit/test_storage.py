"""Unit tests for collection persistence and the catalog store."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from zoo_portal.business.models import CatalogRecord
from zoo_portal.data.storage import (
    BOOKINGS,
    CatalogStore,
    InMemoryCollectionStore,
    JsonFileCollectionStore,
    StorageError,
)


def make_record(animal_id, name='Ellie Elephant', species='Elephant'):
    return CatalogRecord(id=animal_id, name=name, species=species)


@pytest.mark.unit
class TestInMemoryCollectionStore:

    def test_append_then_read(self):
        store = InMemoryCollectionStore()

        store.append(BOOKINGS, {'visitorName': 'Ada'})
        store.append(BOOKINGS, {'visitorName': 'Grace'})

        assert [r['visitorName'] for r in store.read(BOOKINGS)] == ['Ada', 'Grace']

    def test_reads_are_copies(self):
        store = InMemoryCollectionStore()
        store.append(BOOKINGS, {'visitorName': 'Ada'})

        store.read(BOOKINGS)[0]['visitorName'] = 'Mallory'

        assert store.read(BOOKINGS)[0]['visitorName'] == 'Ada'

    def test_unknown_collection_is_empty(self):
        assert InMemoryCollectionStore().read('members') == []


@pytest.mark.unit
class TestJsonFileCollectionStore:

    def test_append_writes_json_array(self, tmp_path):
        store = JsonFileCollectionStore(tmp_path / 'data')

        store.append(BOOKINGS, {'visitorName': 'Ada'})
        store.append(BOOKINGS, {'visitorName': 'Grace'})

        on_disk = json.loads((tmp_path / 'data' / 'bookings.json').read_text(encoding='utf-8'))
        assert on_disk == [{'visitorName': 'Ada'}, {'visitorName': 'Grace'}]
        assert store.read(BOOKINGS) == on_disk

    def test_no_temporary_files_left_behind(self, tmp_path):
        store = JsonFileCollectionStore(tmp_path)

        store.append(BOOKINGS, {'visitorName': 'Ada'})

        assert sorted(p.name for p in tmp_path.iterdir()) == ['bookings.json']

    def test_corrupt_collection_raises(self, tmp_path):
        (tmp_path / 'bookings.json').write_text('{not json', encoding='utf-8')
        store = JsonFileCollectionStore(tmp_path)

        with pytest.raises(StorageError):
            store.append(BOOKINGS, {'visitorName': 'Ada'})

    def test_non_array_collection_raises(self, tmp_path):
        (tmp_path / 'bookings.json').write_text('{"a": 1}', encoding='utf-8')

        with pytest.raises(StorageError):
            JsonFileCollectionStore(tmp_path).read(BOOKINGS)

    @pytest.mark.parametrize('name', ['', '.hidden', '../escape'])
    def test_invalid_collection_names(self, tmp_path, name):
        with pytest.raises(StorageError):
            JsonFileCollectionStore(tmp_path).read(name)


@pytest.mark.unit
class TestCatalogStore:

    def test_replace_is_wholesale(self):
        store = CatalogStore([make_record(1), make_record(2)])

        store.replace([make_record(3, 'Leo Lion', 'Lion')])

        assert [r.id for r in store.snapshot()] == [3]

    def test_append_and_find(self):
        store = CatalogStore()

        store.append(make_record(7, 'Bao Panda', 'Panda'))

        assert store.find(7).name == 'Bao Panda'
        assert store.find(8) is None
        assert len(store) == 1

    def test_taken_id_is_moved_past_highest(self):
        store = CatalogStore([make_record(3), make_record(9)])

        stored = store.append(make_record(3, 'Bao Panda', 'Panda'))

        assert stored.id == 10
        assert store.find(10).name == 'Bao Panda'
        assert store.find(3).name == 'Ellie Elephant'

    def test_concurrent_appends_keep_ids_unique(self):
        store = CatalogStore()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: store.append(make_record(5)), range(20)))

        assert sorted(r.id for r in store.snapshot()) == list(range(5, 25))

    def test_snapshot_is_detached(self):
        store = CatalogStore([make_record(1)])

        snapshot = store.snapshot()
        store.append(make_record(2))

        assert len(snapshot) == 1

    def test_bundled_catalog_loads(self, app):
        store = CatalogStore.from_json_file(app.config['ANIMALS_PATH'])

        assert [r.name for r in store.snapshot()] == ['Ellie', 'Raja', 'Bao', 'Leo']

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageError, match='Unable to read animals.json'):
            CatalogStore.from_json_file(tmp_path / 'animals.json')

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'animals.json'
        path.write_text('[{', encoding='utf-8')

        with pytest.raises(StorageError, match='Invalid JSON in animals.json'):
            CatalogStore.from_json_file(path)

    def test_invalid_record(self, tmp_path):
        path = tmp_path / 'animals.json'
        path.write_text('[{"name": "No Id"}]', encoding='utf-8')

        with pytest.raises(StorageError, match='Invalid animal record'):
            CatalogStore.from_json_file(path)

    def test_write_json_file_round_trips_aliases(self, tmp_path):
        store = CatalogStore([make_record(1)])
        path = tmp_path / 'out' / 'animals.json'

        store.write_json_file(path)

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data[0]['feedingSchedule'] == []
        assert CatalogStore.from_json_file(path).find(1).name == 'Ellie Elephant'
