from core.dev.import_graph import (
    build_import_graph,
    detect_cycles,
    forbidden_edges,
)

# Layering:
#   core.errors/metrics/eventbus/events/config -> foundation
#   core.registry, core.engine -> descriptors, gateway contract, runtimes
#   core.lifecycle -> orchestrator; only entrypoints import it.
FOUNDATION = (
    "core.errors",
    "core.metrics",
    "core.eventbus",
    "core.events",
    "core.config",
    "core.registry",
    "core.engine",
)


def test_import_graph_no_cycles_and_forbidden_edges():
    graph = build_import_graph("core")
    cycles = detect_cycles(graph)
    assert not cycles, f"Import cycles detected: {cycles}"
    rules = [(src, "core.lifecycle") for src in FOUNDATION]
    # orchestrator talks to the gateway contract, never to runtime internals
    rules += [
        ("core.lifecycle", "core.engine.backends"),
        ("core.lifecycle", "core.engine.downloader"),
        ("core.lifecycle", "core.engine.storage"),
        ("core.config", "core.engine"),
        ("core.config", "core.registry"),
    ]
    bad = forbidden_edges(graph, rules)
    assert not bad, f"Forbidden import edges: {bad}"


def test_engine_contract_is_mapped():
    graph = build_import_graph("core")
    assert "core.engine.gateway" in graph["core.lifecycle.orchestrator"]
    assert "core.engine.local" in graph["core.lifecycle.orchestrator"]
    assert "core.engine.exceptions" in graph["core.engine"]
