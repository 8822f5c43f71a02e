#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Standalone tests for run lock, error taxonomy, termination and notifications.

Run: python test_security_modules.py
"""

import os
import sys
import tempfile
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add current directory to path
sys.path.insert(0, str(Path(__file__).parent))


def test_run_lock():
    """Test per-instance run lock."""
    print("Testing run-lock...")

    from run_lock import RunLockError, acquire_run_lock, lock_path

    base = Path(tempfile.mkdtemp())
    test_lock = lock_path(base, "unit")
    assert test_lock.name == ".run_lock_unit"

    lock1 = acquire_run_lock(base, "unit")
    try:
        with lock1:
            assert lock1.acquired, "Lock should be acquired"
            assert test_lock.exists(), "Lock file should exist"
            assert test_lock.read_text().strip() == str(os.getpid())

            # A second live holder is simulated with the parent process id
            lock2 = acquire_run_lock(base, "unit")
            test_lock.write_text(f"{os.getppid()}\n")
            try:
                with lock2:
                    assert False, "Should not acquire lock twice"
            except RunLockError as exc:
                assert "running" in str(exc).lower(), f"Expected 'running' in error: {exc}"
                print("  ✓ Concurrent lock correctly prevented")

        # After exiting context, lock should be released
        assert not test_lock.exists(), "Lock file should be cleaned up"
        print("  ✓ Lock cleanup successful")
    finally:
        if test_lock.exists():
            test_lock.unlink()

    # Stale lock left by a dead process
    test_lock.write_text("999999999\n")
    lock3 = acquire_run_lock(base, "unit")
    try:
        with lock3:
            assert lock3.acquired, "Should acquire stale lock"
            print("  ✓ Stale lock removal works")
    finally:
        if test_lock.exists():
            test_lock.unlink()

    # Other instances are independent
    with acquire_run_lock(base, "a"), acquire_run_lock(base, "b"):
        print("  ✓ Different instances lock independently")

    print("✓ Run-lock tests passed\n")


def test_tx_errors():
    """Test transaction error classification."""
    print("Testing transaction error classification...")

    from eth_abi import encode

    from tx_errors import (
        GasError,
        InsufficientLiquidityError,
        NonceError,
        RevertError,
        SlippageError,
        TimeoutError,
        TransactionError,
        classify_error,
        decode_revert_reason,
    )

    assert isinstance(classify_error("nonce too low"), NonceError)
    assert isinstance(classify_error("replacement transaction underpriced"), NonceError)
    print("  ✓ Nonce error classified")

    assert isinstance(classify_error("insufficient funds for gas * price + value"), GasError)
    print("  ✓ Gas error classified")

    assert isinstance(classify_error("execution reverted: UniswapV2Router: INSUFFICIENT_OUTPUT_AMOUNT"), SlippageError)
    assert isinstance(classify_error("UniswapV2Library: INSUFFICIENT_LIQUIDITY"), InsufficientLiquidityError)
    print("  ✓ Slippage/liquidity errors classified")

    assert isinstance(classify_error("execution reverted"), RevertError)
    assert isinstance(classify_error("request timed out"), TimeoutError)
    generic = classify_error("something odd")
    assert type(generic) is TransactionError
    print("  ✓ Revert/timeout/generic classified")

    payload = "0x08c379a0" + encode(["string"], ["TRANSFER_FAILED"]).hex()
    assert decode_revert_reason(payload) == "TRANSFER_FAILED"
    panic = "0x4e487b71" + encode(["uint256"], [0x11]).hex()
    assert decode_revert_reason(panic) == "Arithmetic overflow/underflow"
    assert decode_revert_reason("0xdeadbeef") is None
    assert decode_revert_reason("0x08c379a0zz") is None
    assert decode_revert_reason(None) is None

    reverted = classify_error("execution reverted", payload)
    assert isinstance(reverted, RevertError) and reverted.reason == "TRANSFER_FAILED"
    print("  ✓ Revert reasons decoded")

    print("✓ Transaction error tests passed\n")


def test_terminate_signal():
    """Test cooperative termination."""
    print("Testing terminate signal...")

    from terminate import TerminateSignal

    terminate = TerminateSignal()
    assert not terminate.is_set()
    assert terminate.wait(0) is False

    timer = threading.Timer(0.05, terminate.set, args=("SIGTERM",))
    started = time.monotonic()
    timer.start()
    assert terminate.wait(10) is True, "wait should wake on termination"
    assert time.monotonic() - started < 5
    print("  ✓ Wait interrupted by termination")

    terminate.set("second")
    status = terminate.status()
    assert status["terminating"] is True
    assert status["reason"] == "SIGTERM", "first reason is kept"
    print("✓ Terminate signal tests passed\n")


def test_telegram_notifier():
    """Test Telegram notifier gating and request shape."""
    print("Testing telegram notifier...")

    from notify import TelegramNotifier, build_cycle_message
    from orchestrator import CycleReport, CycleStatus

    assert TelegramNotifier({"enabled": False}).send("hi") is False

    conf = {"enabled": True, "bot_token_env": "TEST_TG_TOKEN", "chat_id_env": "TEST_TG_CHAT"}
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("TEST_TG_TOKEN", None)
        assert TelegramNotifier(conf).send("hi") is False
        print("  ✓ Missing token skipped")

        os.environ["TEST_TG_TOKEN"] = "123:abc"
        os.environ["TEST_TG_CHAT"] = "42"
        with patch("notify.requests.get", return_value=MagicMock(ok=True)) as get:
            assert TelegramNotifier(conf).send("hi") is True
            url = get.call_args[0][0]
            assert url == "https://api.telegram.org/bot123:abc/sendMessage"
            assert get.call_args[1]["params"] == {"chat_id": "42", "text": "hi"}
            assert get.call_args[1]["timeout"] == 10
        print("  ✓ Message sent")

    report = CycleReport(status=CycleStatus.POSTPONED, txn_count=8, reason="Gas is greater than reward")
    report.finished_at = report.started_at + 3
    msg = build_cycle_message("tomb-wftm", "WFTM-TOMB_TSHARE", report)
    assert "postponed" in msg and "Gas is greater than reward" in msg
    print("  ✓ Cycle message built")
    print("✓ Telegram tests passed\n")


def main():
    """Run all tests."""
    print("=" * 60)
    print("Running Security Module Tests")
    print("=" * 60)
    print()

    tests = [
        test_run_lock,
        test_tx_errors,
        test_terminate_signal,
        test_telegram_notifier,
    ]

    failed = []
    for test_func in tests:
        try:
            test_func()
        except Exception as exc:
            print(f"✗ {test_func.__name__} FAILED: {exc}\n")
            import traceback
            traceback.print_exc()
            failed.append(test_func.__name__)

    print("=" * 60)
    if failed:
        print(f"FAILED: {len(failed)} test(s)")
        for name in failed:
            print(f"  - {name}")
        return 1
    print("SUCCESS: All tests passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
