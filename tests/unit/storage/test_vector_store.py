"""
Unit tests for the durable vector log and its in-memory mirror
"""

import numpy as np
import pytest

from vectodb.core.exceptions.custom_exceptions import (
    CorruptStoreError,
    DimensionMismatchError,
    StorageIOError,
    ValidationError,
)
from vectodb.storage.vector_store import (
    BASE_FILENAME,
    VectorStore,
    record_dtype,
    record_length,
)

DIM = 8


class TestVectorStore:
    """Test appends, replay and reads"""

    def test_new_store_is_empty(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            assert store.size == 0
            assert len(store) == 0
            assert (work_dir / BASE_FILENAME).exists()
            assert store.slice(0, 0).shape == (0, DIM)

    def test_append_writes_fixed_length_records(self, work_dir, make_vectors):
        vectors = make_vectors(5)
        with VectorStore(work_dir, DIM) as store:
            store.append([10, 11, 12, 13, 14], vectors)
            assert store.size == 5

        path = work_dir / BASE_FILENAME
        assert path.stat().st_size == 5 * record_length(DIM)
        records = np.fromfile(path, dtype=record_dtype(DIM))
        np.testing.assert_array_equal(records["id"], [10, 11, 12, 13, 14])
        np.testing.assert_array_equal(records["vector"], vectors)

    def test_reopen_replays_log(self, work_dir, make_vectors):
        first = make_vectors(3)
        second = make_vectors(4)
        with VectorStore(work_dir, DIM) as store:
            store.append([1, 2, 3], first)
            store.append([4, 5, 6, 7], second)

        with VectorStore(work_dir, DIM) as reopened:
            assert reopened.size == 7
            np.testing.assert_array_equal(
                reopened.slice(0, 7), np.vstack([first, second])
            )
            np.testing.assert_array_equal(reopened.ids, [1, 2, 3, 4, 5, 6, 7])
            np.testing.assert_array_equal(reopened.get(5), second[1])

    def test_mirror_grows_past_initial_capacity(self, work_dir, make_vectors):
        vectors = make_vectors(50)
        with VectorStore(work_dir, DIM, initial_capacity=2) as store:
            for i in range(0, 50, 7):
                store.append(np.arange(i, min(i + 7, 50)), vectors[i : i + 7])
            assert store.size == 50
            np.testing.assert_array_equal(store.slice(0, 50), vectors)

    def test_old_views_survive_growth(self, work_dir, make_vectors):
        vectors = make_vectors(4)
        with VectorStore(work_dir, DIM, initial_capacity=2) as store:
            store.append([0, 1], vectors[:2])
            view = store.slice(0, 2)
            store.append([2, 3], vectors[2:])
            np.testing.assert_array_equal(view, vectors[:2])

    def test_single_vector_is_accepted(self, work_dir, make_vectors):
        vector = make_vectors(1)[0]
        with VectorStore(work_dir, DIM) as store:
            store.append([42], vector)
            assert store.size == 1
            assert store.position_of(42) == 0

    def test_empty_batch_is_noop(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            store.append([], np.empty((0, DIM), dtype=np.float32))
            assert store.size == 0

    def test_duplicate_ids_are_kept(self, work_dir, make_vectors):
        vectors = make_vectors(2)
        with VectorStore(work_dir, DIM) as store:
            store.append([9, 9], vectors)
            assert store.size == 2
            assert store.position_of(9) == 1
            assert list(store.unique_ids()) == [9]

    def test_records_iterates_in_log_order(self, work_dir, make_vectors):
        vectors = make_vectors(3)
        with VectorStore(work_dir, DIM) as store:
            store.append([7, 8, 9], vectors)
            records = list(store.records())
        assert [r.id for r in records] == [7, 8, 9]
        np.testing.assert_array_equal(records[2].vector, vectors[2])

    def test_ids_at_maps_missing_positions(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            store.append([100, 200], make_vectors(2))
            np.testing.assert_array_equal(store.ids_at([1, -1, 0]), [200, -1, 100])


class TestVectorStoreErrors:
    """Test validation and corruption handling"""

    def test_dimension_mismatch_rejected(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            with pytest.raises(DimensionMismatchError):
                store.append([1, 2], make_vectors(2, dim=DIM + 1))
            assert store.size == 0
        assert (work_dir / BASE_FILENAME).stat().st_size == 0

    def test_ragged_batch_rejected(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            with pytest.raises(DimensionMismatchError):
                store.append([1, 2], [[0.0] * DIM, [0.0] * (DIM - 1)])

    def test_id_count_mismatch_rejected(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            with pytest.raises(ValidationError) as exc_info:
                store.append([1], make_vectors(2))
            assert exc_info.value.error_code == "STORE_ID_COUNT_MISMATCH"
            assert store.size == 0

    def test_out_of_range_id_rejected(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            with pytest.raises(ValidationError) as exc_info:
                store.append([2**64], make_vectors(1))
            assert exc_info.value.error_code == "STORE_INVALID_IDS"
            assert store.size == 0
        assert (work_dir / BASE_FILENAME).stat().st_size == 0

    def test_non_positive_dimension_rejected(self, work_dir):
        with pytest.raises(ValidationError):
            VectorStore(work_dir, 0)

    def test_truncated_log_is_corrupt(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            store.append([1, 2], make_vectors(2))

        path = work_dir / BASE_FILENAME
        data = path.read_bytes()
        path.write_bytes(data[:-3])

        with pytest.raises(CorruptStoreError) as exc_info:
            VectorStore(work_dir, DIM)
        assert exc_info.value.error_code == "STORE_LOG_CORRUPT"
        assert "not multiple of record length" in str(exc_info.value)

    def test_reopen_with_other_dimension_is_corrupt(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            store.append([1], make_vectors(1))
        # 8 + 4*8 = 40 bytes is not a multiple of 8 + 4*5 = 28
        with pytest.raises(CorruptStoreError):
            VectorStore(work_dir, 5)

    def test_append_after_close_fails(self, work_dir, make_vectors):
        store = VectorStore(work_dir, DIM)
        store.close()
        assert store.closed
        with pytest.raises(StorageIOError):
            store.append([1], make_vectors(1))

    def test_invalid_slice_bounds(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            store.append([1, 2], make_vectors(2))
            with pytest.raises(ValueError):
                store.slice(1, 3)
            with pytest.raises(ValueError):
                store.vectors_at([0, 2])
