"""Tests for ObservableValue."""

import threading

from iptv_catalog.utils.observable import ObservableValue


class TestObservableValue:
    def test_set_notifies_subscribers(self) -> None:
        flag = ObservableValue(False, name="flag")
        seen = []
        flag.subscribe(seen.append)

        flag.set(True)
        flag.set(False)

        assert seen == [True, False]
        assert flag.value is False

    def test_compare_and_set(self) -> None:
        flag = ObservableValue(False)
        seen = []
        flag.subscribe(seen.append)

        assert flag.compare_and_set(False, True) is True
        assert flag.compare_and_set(False, True) is False
        assert seen == [True]

    def test_unsubscribe(self) -> None:
        value = ObservableValue(0)
        seen = []
        unsubscribe = value.subscribe(seen.append)

        value.set(1)
        unsubscribe()
        unsubscribe()
        value.set(2)

        assert seen == [1]

    def test_failing_subscriber_does_not_block_others(self) -> None:
        value = ObservableValue(0)
        seen = []

        def broken(_):
            raise RuntimeError("subscriber bug")

        value.subscribe(broken)
        value.subscribe(seen.append)

        value.set(5)

        assert seen == [5]
        assert value.get() == 5

    def test_only_one_thread_wins_compare_and_set(self) -> None:
        flag = ObservableValue(False)
        wins = []
        barrier = threading.Barrier(8)

        def contend() -> None:
            barrier.wait()
            if flag.compare_and_set(False, True):
                wins.append(threading.get_ident())

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(wins) == 1
