"""
Tests for DistributedLock.
"""

import pytest

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock


class TestDistributedLock:
    def test_acquire_sets_prefixed_key_with_ttl(self, mock_redis):
        lock = DistributedLock("withdrawal:abc", ttl=60, blocking=False)

        assert lock.acquire() is True
        assert lock.is_held

        args, kwargs = mock_redis.set.call_args
        assert args[0] == "lock:withdrawal:abc"
        assert kwargs == {"nx": True, "ex": 60}

    def test_each_acquisition_uses_a_fresh_token(self, mock_redis):
        first = DistributedLock("a", blocking=False)
        second = DistributedLock("b", blocking=False)
        first.acquire()
        second.acquire()

        tokens = [call.args[1] for call in mock_redis.set.call_args_list]
        assert tokens[0] != tokens[1]

    def test_non_blocking_fails_when_held(self, mock_redis):
        mock_redis.set.return_value = False
        lock = DistributedLock("task:job", blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert exc_info.value.details["key"] == "lock:task:job"
        assert not lock.is_held

    def test_blocking_retries_until_free(self, mock_redis, mocker):
        mocker.patch("payments.locks.time.sleep")
        mock_redis.set.side_effect = [False, False, True]

        lock = DistributedLock("withdrawal:abc", timeout=5)

        assert lock.acquire() is True
        assert mock_redis.set.call_count == 3

    def test_blocking_times_out(self, mock_redis):
        mock_redis.set.return_value = False

        with pytest.raises(LockAcquisitionError):
            DistributedLock("withdrawal:abc", timeout=0).acquire()

    def test_release_runs_owner_check_script(self, mock_redis):
        lock = DistributedLock("k", blocking=False)
        lock.acquire()
        token = mock_redis.set.call_args.args[1]

        assert lock.release() is True

        mock_redis.eval.assert_called_once_with(DistributedLock.RELEASE_SCRIPT, 1, "lock:k", token)
        assert not lock.is_held

    def test_release_without_acquire_is_noop(self, mock_redis):
        assert DistributedLock("k").release() is False
        mock_redis.eval.assert_not_called()

    def test_context_manager_releases_on_error(self, mock_redis):
        with pytest.raises(RuntimeError):
            with DistributedLock("k", blocking=False) as lock:
                assert lock.is_held
                raise RuntimeError("boom")

        assert not lock.is_held
        mock_redis.eval.assert_called_once()
