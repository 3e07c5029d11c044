from __future__ import annotations

import threading
import time

from fixtures import StubConverter

from preserve_utils.convert import registry as registry_mod
from preserve_utils.convert.probe import LINUX, WINDOWS
from preserve_utils.convert.registry import ConverterRegistry


def _catalog():
    return [
        StubConverter("alpha", {"fmt/1": ["fmt/2"]}).variant,
        StubConverter("beta", {"fmt/1": ["fmt/2"]}, available=False).variant,
        StubConverter(
            "gamma", {"fmt/1": ["fmt/2"]}, operating_systems={WINDOWS}
        ).variant,
        StubConverter("delta", {"fmt/3": ["fmt/4"]}).variant,
    ]


def test_usable_converters_filters_and_keeps_order():
    registry = ConverterRegistry(_catalog(), host_os=LINUX)

    names = [variant.name for variant in registry.usable_converters()]

    assert names == ["alpha", "delta"]
    assert registry.excluded() == ("beta", "gamma")


def test_usable_converters_respects_host_os():
    registry = ConverterRegistry(_catalog(), host_os=WINDOWS)

    names = [variant.name for variant in registry.usable_converters()]

    assert names == ["alpha", "gamma", "delta"]


def test_usable_converters_probes_once():
    calls = []

    def probe(variant, host_os):
        calls.append(variant.name)
        return True

    registry = ConverterRegistry(_catalog(), host_os=LINUX, probe=probe)

    first = registry.usable_converters()
    second = registry.usable_converters()

    assert first is second
    assert calls == ["alpha", "beta", "gamma", "delta"]


def test_concurrent_first_access_builds_once():
    calls = []
    lock = threading.Lock()

    def slow_probe(variant, host_os):
        with lock:
            calls.append(variant.name)
        time.sleep(0.01)
        return variant.name != "beta"

    registry = ConverterRegistry(_catalog(), host_os=LINUX, probe=slow_probe)
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(registry.usable_converters())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 4
    assert len(results) == 8
    assert all(result is results[0] for result in results)
    assert [v.name for v in results[0]] == ["alpha", "gamma", "delta"]


def test_empty_registry_is_not_an_error():
    registry = ConverterRegistry(
        [StubConverter("off", {}, available=False).variant], host_os=LINUX
    )

    assert registry.usable_converters() == ()
    assert registry.excluded() == ("off",)


def test_default_registry_is_shared(monkeypatch):
    monkeypatch.setattr(registry_mod, "_DEFAULT", None)

    first = registry_mod.default_registry()
    second = registry_mod.default_registry()

    assert first is second
    assert [v.name for v in first.catalog] == [
        "pillow",
        "ghostscript",
        "libreoffice",
        "email-to-pdf",
        "msgconvert",
    ]
