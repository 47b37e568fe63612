import threading

from closure_bridge.mangle import Mangler


def test_origin_id_is_stable_and_idempotent():
    mangler = Mangler(seed="build-1")
    first = mangler.origin_id("./dep.js")
    assert first == mangler.origin_id("./dep.js")
    assert first.startswith("o") and len(first) == 9
    assert mangler.origin(first) == "./dep.js"
    assert Mangler(seed="build-1").origin_id("./dep.js") == first
    assert Mangler(seed="build-2").origin_id("./dep.js") != first


def test_mangle_and_resolve_are_inverse():
    mangler = Mangler()
    origin_id = mangler.origin_id("lit")
    for name in ("html", "render", "default", "$", "_private"):
        mangled = mangler.mangle(name, origin_id)
        assert mangled == f"{name}__{origin_id}"
        assert mangler.resolve(mangled) == name
        assert mangler.mangled_name(name) == mangled


def test_collision_keeps_first_mapping_and_records_anomaly(caplog):
    mangler = Mangler()
    first = mangler.mangle("render", mangler.origin_id("a"))
    with caplog.at_level("WARNING"):
        second = mangler.mangle("render", mangler.origin_id("b"))
    assert first != second
    assert mangler.mangled_name("render") == first
    assert mangler.resolve(second) == "render"
    assert [anomaly.kind for anomaly in mangler.anomalies] == ["MangleCollision"]
    assert "MangleCollision" in caplog.text


def test_unknown_names_resolve_to_none():
    mangler = Mangler()
    assert mangler.resolve("nope__o12345678") is None
    assert mangler.mangled_name("nope") is None
    assert mangler.origin("o12345678") is None


def test_shared_mangler_is_consistent_across_threads():
    mangler = Mangler()
    results = []

    def worker():
        results.append(mangler.origin_id("shared"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(set(results)) == 1
