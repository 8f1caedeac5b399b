"""
Tests for the Debouncer.

Requires Python 3.11+.
"""

import asyncio
import threading
from pathlib import Path

import pytest

from fakes import BASE_MTIME_NS, SECOND_NS, touch
from watcher.debouncer import Debouncer

WINDOW = 0.02
SETTLE = 0.12


@pytest.fixture
def changed() -> list[Path]:
    """Paths emitted by the debouncer."""
    return []


@pytest.fixture
def debouncer(changed: list[Path]) -> Debouncer:
    """Debouncer that records emitted paths."""
    return Debouncer(delay_ms=int(WINDOW * 1000), callback=changed.append)


class TestPrime:
    """Test cases for the initial modification time snapshot."""

    def test_prime_records_mtime(self, debouncer: Debouncer, text_file: Path):
        """Test priming stores the file's current mtime."""
        assert debouncer.prime(text_file) == BASE_MTIME_NS
        assert debouncer.last_seen(text_file) == BASE_MTIME_NS

    def test_prime_missing_file_records_zero(self, debouncer: Debouncer, tmp_path: Path):
        """Test a file that cannot be stat'ed starts from zero."""
        missing = tmp_path / "missing.md"

        assert debouncer.prime(missing) == 0
        assert debouncer.last_seen(missing) == 0

    def test_forget_drops_record(self, debouncer: Debouncer, text_file: Path):
        """Test forget removes the mtime record."""
        debouncer.prime(text_file)
        debouncer.forget(text_file)

        assert debouncer.last_seen(text_file) is None


class TestCoalescing:
    """Test cases for burst coalescing and mtime filtering."""

    @pytest.mark.asyncio
    async def test_burst_emits_once(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test many raw signals within one window produce one event."""
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS, "# Edited\n")

        for _ in range(10):
            debouncer.signal(text_file)

        assert debouncer.pending_count == 1
        await asyncio.sleep(SETTLE)

        assert changed == [text_file]
        assert debouncer.pending_count == 0
        assert debouncer.last_seen(text_file) == BASE_MTIME_NS + SECOND_NS

    @pytest.mark.asyncio
    async def test_unchanged_mtime_emits_nothing(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test metadata-only events without a newer mtime are dropped."""
        debouncer.prime(text_file)
        text_file.chmod(0o600)

        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        assert changed == []

    @pytest.mark.asyncio
    async def test_older_mtime_emits_nothing(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test a file whose mtime moved backwards does not reload."""
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS - SECOND_NS)

        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        assert changed == []
        assert debouncer.last_seen(text_file) == BASE_MTIME_NS

    @pytest.mark.asyncio
    async def test_deleted_file_emits_nothing(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test a failed stat is treated as transient."""
        debouncer.prime(text_file)
        text_file.unlink()

        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        assert changed == []
        assert debouncer.last_seen(text_file) == BASE_MTIME_NS

    @pytest.mark.asyncio
    async def test_recreated_file_emits(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test a file that disappears and comes back newer reloads once."""
        debouncer.prime(text_file)
        text_file.unlink()
        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        text_file.write_text("# Back\n")
        touch(text_file, BASE_MTIME_NS + SECOND_NS)
        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        assert changed == [text_file]

    @pytest.mark.asyncio
    async def test_monotonic_across_windows(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test t1 < t2 < t3 in separate windows yields three ordered events."""
        debouncer.prime(text_file)
        seen: list[int] = []

        for step in (1, 2, 3):
            touch(text_file, BASE_MTIME_NS + step * SECOND_NS)
            debouncer.signal(text_file)
            await asyncio.sleep(SETTLE)
            seen.append(debouncer.last_seen(text_file))

        assert len(changed) == 3
        assert seen == sorted(seen)
        assert seen[-1] == BASE_MTIME_NS + 3 * SECOND_NS

    @pytest.mark.asyncio
    async def test_files_debounce_independently(
        self, debouncer: Debouncer, changed: list[Path], tmp_path: Path
    ):
        """Test pending timers are kept per file."""
        a = tmp_path / "a.md"
        b = tmp_path / "b.md"
        for path in (a, b):
            path.write_text("x")
            touch(path, BASE_MTIME_NS)
            debouncer.prime(path)
            touch(path, BASE_MTIME_NS + SECOND_NS)

        debouncer.signal(a)
        debouncer.signal(b)
        debouncer.signal(a)

        assert debouncer.pending_count == 2
        await asyncio.sleep(SETTLE)

        assert sorted(changed) == sorted([a, b])


class TestLifecycle:
    """Test cases for forget, flush, clear and thread handoff."""

    @pytest.mark.asyncio
    async def test_forget_does_not_cancel_timer(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test a timer pending at forget fires as a no-op."""
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS)
        debouncer.signal(text_file)
        debouncer.forget(text_file)

        assert debouncer.pending_count == 1
        await asyncio.sleep(SETTLE)

        assert changed == []
        assert debouncer.pending_count == 0

    @pytest.mark.asyncio
    async def test_flush_fires_immediately(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test flush evaluates pending files without waiting."""
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS)
        debouncer.signal(text_file)

        assert debouncer.flush() == [text_file]
        assert changed == [text_file]

        await asyncio.sleep(SETTLE)
        assert changed == [text_file]

    @pytest.mark.asyncio
    async def test_clear_cancels_pending(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test clear drops pending timers without emitting."""
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS)
        debouncer.signal(text_file)
        debouncer.clear()

        await asyncio.sleep(SETTLE)

        assert changed == []
        assert debouncer.pending_paths == []

    @pytest.mark.asyncio
    async def test_signal_from_watcher_thread(
        self, debouncer: Debouncer, changed: list[Path], text_file: Path
    ):
        """Test raw signals from another thread are marshalled to the loop."""
        debouncer.set_event_loop(asyncio.get_running_loop())
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS)

        thread = threading.Thread(target=debouncer.signal_threadsafe, args=(text_file,))
        thread.start()
        thread.join()
        await asyncio.sleep(SETTLE)

        assert changed == [text_file]

    def test_signal_threadsafe_without_loop_is_dropped(
        self, debouncer: Debouncer, text_file: Path
    ):
        """Test a raw signal before any loop is attached is ignored."""
        debouncer.signal_threadsafe(text_file)

        assert debouncer.pending_count == 0

    @pytest.mark.asyncio
    async def test_async_callback(self, text_file: Path):
        """Test coroutine callbacks are scheduled on the loop."""
        received: list[Path] = []

        async def on_change(path: Path) -> None:
            received.append(path)

        debouncer = Debouncer(delay_ms=int(WINDOW * 1000), callback=on_change)
        debouncer.prime(text_file)
        touch(text_file, BASE_MTIME_NS + SECOND_NS)
        debouncer.signal(text_file)
        await asyncio.sleep(SETTLE)

        assert received == [text_file]

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self, text_file: Path):
        """Test a callback error does not break later events."""
        calls: list[Path] = []

        def on_change(path: Path) -> None:
            calls.append(path)
            raise RuntimeError("boom")

        debouncer = Debouncer(delay_ms=int(WINDOW * 1000), callback=on_change)
        debouncer.prime(text_file)

        for step in (1, 2):
            touch(text_file, BASE_MTIME_NS + step * SECOND_NS)
            debouncer.signal(text_file)
            await asyncio.sleep(SETTLE)

        assert calls == [text_file, text_file]

    @pytest.mark.asyncio
    async def test_pending_accessors_take_lock(self, debouncer: Debouncer, text_file: Path):
        """Test pending state is read under the lock shared with watcher threads."""
        debouncer.prime(text_file)
        debouncer.signal(text_file)
        results: list[object] = []

        def read_pending() -> None:
            results.append(debouncer.pending_count)
            results.append(debouncer.pending_paths)

        with debouncer._lock:
            reader = threading.Thread(target=read_pending)
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
            assert results == []

        reader.join(timeout=1.0)
        assert results == [1, [text_file]]
        debouncer.clear()
